"""Rust toolchain descriptor.

Parsed from the packaged toolchain configs (see rbuild.toolchain_configs)
into a frozen dataclass, replacing dict.get() lookups in the action
construction code.
"""

import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict

from ..build.build_profiles import CompilationModeOpts, default_compilation_mode_opts
from ..providers.files import File


@dataclass(frozen=True)
class RustToolchain:
    """Description of the rustc toolchain for one target platform.

    Attributes:
        target_triple: Target triple passed to ``--target``
        target_arch: Target CPU architecture (e.g. "x86_64", "wasm32")
        os: Target operating system (e.g. "linux", "darwin", "windows")
        rustc: The rustc executable
        rust_lib: Standard library files for the target
        rustc_lib: Shared libraries rustc itself needs at runtime
        crosstool_files: Extra files the linker invocation needs
        dylib_ext: Shared library extension, including the dot
        staticlib_ext: Static library extension, including the dot
        binary_ext: Executable extension, including the dot ("" on unix)
        compilation_mode_opts: Codegen options per compilation mode
        stdlib_linkflags: Flags C/C++ linkers need to link the standard library
    """

    target_triple: str
    target_arch: str
    os: str
    rustc: File
    rust_lib: tuple[File, ...] = ()
    rustc_lib: tuple[File, ...] = ()
    crosstool_files: tuple[File, ...] = ()
    dylib_ext: str = ".so"
    staticlib_ext: str = ".a"
    binary_ext: str = ""
    compilation_mode_opts: Dict[str, CompilationModeOpts] = field(default_factory=default_compilation_mode_opts)
    stdlib_linkflags: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], toolchain_root: str = "") -> "RustToolchain":
        """
        Parse a toolchain configuration.

        Args:
            data: Raw configuration dictionary from JSON
            toolchain_root: Directory the config's relative paths resolve against

        Returns:
            RustToolchain instance

        Raises:
            ValueError: If required fields are missing
        """
        try:
            target_triple = data["target_triple"]
            target_arch = data["target_arch"]
            os_name = data["os"]
            rustc = data["rustc"]
        except KeyError as e:
            raise ValueError(f"Missing required field in toolchain config: {e}")

        def _files(key: str) -> tuple[File, ...]:
            return tuple(_resolve(toolchain_root, path) for path in data.get(key, []))

        modes_data = data.get("compilation_mode_opts")
        if modes_data:
            compilation_mode_opts = {
                mode: CompilationModeOpts(
                    opt_level=str(opts["opt_level"]),
                    debug_info=str(opts["debug_info"]),
                )
                for mode, opts in modes_data.items()
            }
        else:
            compilation_mode_opts = default_compilation_mode_opts()

        return cls(
            target_triple=target_triple,
            target_arch=target_arch,
            os=os_name,
            rustc=_resolve(toolchain_root, rustc),
            rust_lib=_files("rust_lib"),
            rustc_lib=_files("rustc_lib"),
            crosstool_files=_files("crosstool_files"),
            dylib_ext=data.get("dylib_ext", ".so"),
            staticlib_ext=data.get("staticlib_ext", ".a"),
            binary_ext=data.get("binary_ext", ""),
            compilation_mode_opts=compilation_mode_opts,
            stdlib_linkflags=tuple(data.get("stdlib_linkflags", [])),
        )


def _resolve(root: str, path: str) -> File:
    """Resolve a config path against the toolchain root."""
    if not root or path.startswith("/"):
        return File(path)
    return File(posixpath.join(root, path))
