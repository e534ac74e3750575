"""rustc command line and environment construction.

construct_arguments() builds the full command line of one compile action,
process wrapper arguments first:

    --env-file F ... --arg-file F ... --subst pwd=${pwd}
    [--copy-output SRC DST] [--touch-file MARKER]
    -- RUSTC <core flags> [<linker flags>] [<native link flags>] <crate link flags>

Identical inputs always produce an identical command line and environment,
the result is used as a cache key by the host build system. ``${pwd}`` is
substituted by the process wrapper with the execution root when the action
runs.
"""

import logging
import posixpath
from typing import Optional, Sequence

from ..providers.crate import LEGACY_EDITION, CrateInfo, CrateType
from ..providers.dep_info import DepInfo
from ..providers.files import File, Label
from ..toolchains.cc_toolchain import (
    CPP_LINK_EXECUTABLE_ACTION_NAME,
    CcToolchain,
    FeatureConfiguration,
    LinkVariables,
)
from ..toolchains.rust_toolchain import RustToolchain
from .args import Args
from .build_context import BuildContext
from .build_profiles import get_compilation_mode_opts
from .errors import ConfigurationError
from .link_flags import add_crate_link_flags, add_native_link_flags, compute_rpaths

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "0.0.0"
DEFAULT_EMIT = ("dep-info", "link")

# Architectures linked by rustc's built-in linker rather than the native toolchain.
BUILTIN_LINKER_ARCHS = ("wasm32",)


class VersionFormatError(ConfigurationError):
    """Raised when a crate version is not of the form MAJOR.MINOR.PATCH[-PRE]."""

    pass


def parse_version(version: str, label: Optional[Label] = None) -> tuple[str, str, str, str]:
    """Split a version into major, minor, patch and pre-release parts.

    >>> parse_version("1.2.3-beta")
    ('1', '2', '3', 'beta')

    Raises:
        VersionFormatError: If the version has fewer than three parts
    """
    parts = version.split(".", 2)
    if len(parts) != 3:
        raise VersionFormatError(
            f"{label}: version {version!r} must have the form MAJOR.MINOR.PATCH[-PRE]",
            label=label,
        )
    major, minor, patch = parts
    pre = ""
    if "-" in patch:
        patch, pre = patch.split("-", 1)
    return major, minor, patch, pre


def get_rustc_env(label: Label, version: Optional[str], toolchain: RustToolchain) -> dict[str, str]:
    """Base environment of a rustc invocation.

    Args:
        label: Label of the target, its name is the package name
        version: Crate version, ``0.0.0`` when not set
        toolchain: The current Rust toolchain

    Returns:
        The cargo compatible environment variables
    """
    version = version if version is not None else DEFAULT_VERSION
    major, minor, patch, pre = parse_version(version, label)
    return {
        "CARGO_CFG_TARGET_ARCH": toolchain.target_arch,
        "CARGO_CFG_TARGET_OS": toolchain.os,
        "CARGO_PKG_AUTHORS": "",
        "CARGO_PKG_DESCRIPTION": "",
        "CARGO_PKG_HOMEPAGE": "",
        "CARGO_PKG_NAME": label.name,
        "CARGO_PKG_VERSION": version,
        "CARGO_PKG_VERSION_MAJOR": major,
        "CARGO_PKG_VERSION_MINOR": minor,
        "CARGO_PKG_VERSION_PATCH": patch,
        "CARGO_PKG_VERSION_PRE": pre,
    }


def get_linker_and_args(
    ctx: BuildContext,
    cc_toolchain: CcToolchain,
    feature_configuration: FeatureConfiguration,
    rpaths: Sequence[str],
) -> tuple[str, list[str], dict[str, str]]:
    """Ask the native toolchain how to link an executable.

    Returns:
        (linker path, link flags, link environment) tuple
    """
    link_variables = LinkVariables(
        is_linking_dynamic_library=False,
        runtime_library_search_directories=tuple(rpaths),
        user_link_flags=ctx.user_link_flags,
    )
    link_args = cc_toolchain.get_command_line(feature_configuration, CPP_LINK_EXECUTABLE_ACTION_NAME, link_variables)
    link_env = cc_toolchain.get_environment_variables(
        feature_configuration, CPP_LINK_EXECUTABLE_ACTION_NAME, link_variables
    )
    ld = cc_toolchain.get_tool_for_action(feature_configuration, CPP_LINK_EXECUTABLE_ACTION_NAME)
    return ld, link_args, link_env


def add_edition_flags(args: Args, crate_info: CrateInfo) -> None:
    """Add ``--edition`` unless the crate uses the legacy edition."""
    if crate_info.edition != LEGACY_EDITION:
        args.add(f"--edition={crate_info.edition}")


def construct_arguments(
    ctx: BuildContext,
    toolchain: RustToolchain,
    tool_path: str,
    cc_toolchain: CcToolchain,
    feature_configuration: FeatureConfiguration,
    crate_type: CrateType,
    crate_info: CrateInfo,
    dep_info: DepInfo,
    output_hash: Optional[str],
    rust_flags: Sequence[str],
    out_dir: Optional[str],
    build_env_files: Sequence[File],
    build_flags_files: Sequence[File],
    maker_path: Optional[File] = None,
    emit: Sequence[str] = DEFAULT_EMIT,
) -> tuple[Args, dict[str, str]]:
    """Build the command line and environment of a rustc invocation.

    Args:
        ctx: Build context of the target
        toolchain: The current Rust toolchain
        tool_path: Path of rustc
        cc_toolchain: The native toolchain
        feature_configuration: Enabled native toolchain features
        crate_type: Crate type used to pick native link flags
        crate_info: The crate being compiled
        dep_info: Dependency info of the crate
        output_hash: Hash appended to metadata and output names, if any
        rust_flags: Extra rustc flags from the caller
        out_dir: Build script output directory, if any
        build_env_files: Environment files for the process wrapper
        build_flags_files: Flag files for the process wrapper
        maker_path: Marker file touched after a successful run (lint actions)
        emit: Values of ``--emit``

    Returns:
        (Args, environment) tuple

    Raises:
        CompilationModeError: If the toolchain does not know the compilation mode
        RuntimeLinkingError: If shared libraries need rpaths the target OS lacks
        VersionFormatError: If the version attribute is malformed
    """
    attrs = ctx.attrs
    output_dir = crate_info.output.dirname
    env = get_rustc_env(ctx.label, attrs.version, toolchain)

    # Process wrapper arguments
    args = Args()
    for build_env_file in build_env_files:
        args.add_pair("--env-file", build_env_file.path)
    args.add_all([f.path for f in build_flags_files], before_each="--arg-file")

    # The execution root is only known when the action runs.
    args.add_pair("--subst", "pwd=${pwd}")

    components = f"${{pwd}}/{ctx.label.workspace_root}/{ctx.label.package}".split("/")
    env["CARGO_MANIFEST_DIR"] = "/".join(c for c in components if c)
    if out_dir is not None:
        env["OUT_DIR"] = "${pwd}/" + out_dir

    # rustc names binaries after the crate name, which has '_' where the
    # target name may have '-'.
    if crate_info.type is CrateType.BIN:
        generated_file = crate_info.name + toolchain.binary_ext
        src = posixpath.join(crate_info.output.dirname, generated_file)
        dst = crate_info.output.path
        if src != dst:
            args.add_all(["--copy-output", src, dst])

    if maker_path is not None:
        args.add_pair("--touch-file", maker_path.path)

    args.add("--")
    args.add(tool_path)

    # rustc arguments
    args.add(crate_info.root.path)
    args.add(f"--crate-name={crate_info.name}")
    args.add(f"--crate-type={crate_info.type}")
    if attrs.error_format is not None:
        args.add(f"--error-format={attrs.error_format}")

    # Mangle symbols to disambiguate crates with the same name
    extra_filename = f"-{output_hash}" if output_hash else ""
    args.add(f"--codegen=metadata={extra_filename}")
    args.add(f"--out-dir={output_dir}")
    args.add(f"--codegen=extra-filename={extra_filename}")

    compilation_mode = get_compilation_mode_opts(ctx.compilation_mode, toolchain, ctx.label)
    args.add(f"--codegen=opt-level={compilation_mode.opt_level}")
    args.add(f"--codegen=debuginfo={compilation_mode.debug_info}")

    args.add("--remap-path-prefix=${pwd}=.")
    args.add("--emit=" + ",".join(emit))
    args.add("--color=always")
    args.add(f"--target={toolchain.target_triple}")
    args.add_all(attrs.crate_features, before_each="--cfg", format_each='feature="%s"')
    if attrs.linker_script is not None:
        args.add(attrs.linker_script.path, format="--codegen=link-arg=-T%s")

    # Standard library search path
    rust_lib_paths = list(dict.fromkeys(f.dirname for f in toolchain.rust_lib))
    args.add_all(rust_lib_paths, before_each="-L")

    args.add_all(rust_flags)
    args.add_all(attrs.rustc_flags)
    add_edition_flags(args, crate_info)

    if "link" in emit:
        if toolchain.target_arch not in BUILTIN_LINKER_ARCHS:
            rpaths = compute_rpaths(ctx.label, toolchain, output_dir, dep_info)
            ld, link_args, link_env = get_linker_and_args(ctx, cc_toolchain, feature_configuration, rpaths)
            env.update(link_env)
            args.add(f"--codegen=linker={ld}")
            args.add_joined("--codegen", link_args, join_with=" ", format_joined="link-args=%s")

        add_native_link_flags(args, dep_info, crate_type, cc_toolchain, feature_configuration)

    # Needed even without linking, dependents locate crates through them.
    add_crate_link_flags(args, dep_info)

    if crate_info.type is CrateType.PROC_MACRO and crate_info.edition != LEGACY_EDITION:
        args.add("--extern")
        args.add("proc_macro")

    # Tests locate sibling binaries through CARGO_BIN_EXE_<name>.
    for data in attrs.data:
        if data.crate_info is not None and data.crate_info.type is CrateType.BIN:
            env[f"CARGO_BIN_EXE_{data.crate_info.output.basename}"] = data.crate_info.output.short_path

    env.update(ctx.location_expander(crate_info.rustc_env, attrs.data + attrs.compile_data, ctx.label))

    # Lint tools complain about an undefined sysroot otherwise.
    env["SYSROOT"] = ""

    logger.debug(f"{ctx.label}: {len(args)} rustc arguments, {len(env)} environment variables")
    return args, env
