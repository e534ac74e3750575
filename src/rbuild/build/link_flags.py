"""Link flag assembly.

Computes rpaths and the rustc flags that locate crate and native library
dependencies:

    --extern NAME=PATH      one per direct crate, under its alias name
    -Ldependency=DIR        one per distinct transitive crate directory
    -Lnative=DIR            one per distinct native library directory
    -ldylib=NAME            one per transitive shared library
    -lstatic=NAME           one per transitive static library

Static and shared variants of one library are emitted as they come, no
precedence between the two forms is applied.
"""

import logging
import posixpath
from typing import Iterable

from ..providers.crate import AliasableDepInfo, CrateInfo, CrateType
from ..providers.dep_info import DepInfo
from ..providers.files import File, Label
from ..toolchains.cc_toolchain import CcToolchain, FeatureConfiguration
from ..toolchains.rust_toolchain import RustToolchain
from .args import Args
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Operating systems whose loader honours rpath entries relative to the binary.
RPATH_SUPPORTED_OS = ("linux",)


class RuntimeLinkingError(ConfigurationError):
    """Raised when shared libraries must be found at runtime on an OS without rpath support."""

    pass


def relativize(path: str, start: str) -> str:
    """Path of ``path`` relative to the directory ``start``.

    An empty path is the workspace root.

    >>> relativize("", "rbuild-out/bin/app")
    '../../..'
    """
    return posixpath.relpath(path or ".", start or ".")


def get_dir_names(files: Iterable[File]) -> list[str]:
    """Distinct directories of ``files``, in first-seen order."""
    dirs: dict[str, None] = {}
    for f in files:
        dirs[f.dirname] = None
    return list(dirs)


def compute_rpaths(label: Label, toolchain: RustToolchain, output_dir: str, dep_info: DepInfo) -> list[str]:
    """Determine the rpaths of an artifact for runtime linking of shared libraries.

    Args:
        label: Label of the current target
        toolchain: The current Rust toolchain
        output_dir: Output directory of the current target
        dep_info: Dependency info of the current target

    Returns:
        One path per distinct shared library directory, relative to ``output_dir``

    Raises:
        RuntimeLinkingError: If there are shared libraries and the target OS
            does not support rpaths
    """
    if not dep_info.transitive_dylibs:
        return []
    if toolchain.os not in RPATH_SUPPORTED_OS:
        libs = [lib.path for lib in dep_info.transitive_dylibs]
        raise RuntimeLinkingError(
            f"{label}: Runtime linking is not supported on {toolchain.os}, but found {libs}",
            label=label,
        )

    # Several shared libraries can live in the same directory.
    return [relativize(lib_dir, output_dir) for lib_dir in get_dir_names(dep_info.transitive_dylibs)]


def get_lib_name(lib: File) -> str:
    """Library name as passed to ``-l``: no extensions, no ``lib`` prefix.

    >>> get_lib_name(File("rbuild-out/native/libfoo.so.2"))
    'foo'
    """
    libname = lib.basename.split(".", 1)[0]
    if libname.startswith("lib"):
        return libname[3:]
    return libname


def add_crate_link_flags(args: Args, dep_info: DepInfo) -> None:
    """Add ``--extern`` and ``-Ldependency`` flags.

    Crates are passed with ``--extern`` whatever their type.
    """
    args.add_all(dep_info.direct_crates, map_each=_crate_to_link_flag)
    args.add_all(
        dep_info.transitive_crates,
        map_each=_get_crate_dirname,
        uniquify=True,
        format_each="-Ldependency=%s",
    )


def add_native_link_flags(
    args: Args,
    dep_info: DepInfo,
    crate_type: CrateType,
    cc_toolchain: CcToolchain,
    feature_configuration: FeatureConfiguration,
) -> None:
    """Add linker flags for the native libraries of every dependency.

    Args:
        args: Command line to add to
        dep_info: Dependency info of the current target
        crate_type: Crate type of the current target
        cc_toolchain: The native toolchain
        feature_configuration: Enabled native toolchain features
    """
    native_libs = list(dep_info.transitive_dylibs) + list(dep_info.transitive_staticlibs)
    args.add_all(native_libs, map_each=_get_dirname, uniquify=True, format_each="-Lnative=%s")

    if crate_type.is_rust_library:
        return

    args.add_all(dep_info.transitive_dylibs, map_each=get_lib_name, format_each="-ldylib=%s")
    args.add_all(dep_info.transitive_staticlibs, map_each=get_lib_name, format_each="-lstatic=%s")

    if crate_type.is_shared_library:
        # Shared libraries link the C++ runtime dynamically (libstdc++.so, libc++.so).
        runtime_libs = cc_toolchain.dynamic_runtime_lib(feature_configuration)
        lib_flag = "-ldylib=%s"
    else:
        runtime_libs = cc_toolchain.static_runtime_lib(feature_configuration)
        lib_flag = "-lstatic=%s"
    logger.debug(f"Linking {len(runtime_libs)} C++ runtime libraries for a {crate_type} crate")
    args.add_all(runtime_libs, map_each=_get_dirname, format_each="-Lnative=%s")
    args.add_all(runtime_libs, map_each=get_lib_name, format_each=lib_flag)


def _crate_to_link_flag(dep: AliasableDepInfo) -> list[str]:
    return ["--extern", f"{dep.name}={dep.dep.output.path}"]


def _get_crate_dirname(crate: CrateInfo) -> str:
    return crate.output.dirname


def _get_dirname(f: File) -> str:
    return f.dirname or "."
