"""Compile action orchestration.

rustc_compile_action() is the entry point for configuring one crate:

    1. Resolve the native toolchain and its feature configuration
    2. Collect and validate the dependencies (dependency_collector)
    3. Collect the action inputs, folding in build script outputs
    4. Construct the command line and environment (arguments)
    5. Register a single "Rustc" action with the build context's registrar
    6. Return the providers dependents consume

Every configuration error is raised before the action is registered.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..providers.cc_info import CcInfo
from ..providers.crate import CrateInfo, CrateType
from ..providers.default_info import DefaultInfo, Runfiles
from ..providers.dep_info import BuildInfo, DepInfo
from ..providers.files import File
from ..providers.unique_set import UniqueSet
from ..toolchains.cc_toolchain import CcToolchain
from ..toolchains.rust_toolchain import RustToolchain
from .arguments import DEFAULT_VERSION, construct_arguments
from .build_context import BuildContext, find_cc_toolchain
from .build_script_inputs import gather_build_script_inputs
from .cc_interop import establish_cc_info, link_archive_alias
from .dependency_collector import collect_deps

logger = logging.getLogger(__name__)

RUSTC_MNEMONIC = "Rustc"


@dataclass(frozen=True)
class CompileInputs:
    """Inputs of a compile action and what the command line needs to know about them.

    Attributes:
        files: Every file the action reads, deduplicated
        out_dir: Build script output directory, if any
        build_env_files: Environment files, in ``--env-file`` order
        build_flags_files: Flag files, in ``--arg-file`` order
    """

    files: UniqueSet[File]
    out_dir: Optional[str] = None
    build_env_files: tuple[File, ...] = ()
    build_flags_files: tuple[File, ...] = ()


@dataclass(frozen=True)
class CompileResult:
    """Providers of a configured crate.

    Attributes:
        cc_info: Native library description, None when native targets cannot link the crate
        crate_info: The crate, unchanged
        dep_info: Transitive dependency information
        default_info: Output, runfiles and executable
    """

    cc_info: Optional[CcInfo]
    crate_info: CrateInfo
    dep_info: DepInfo
    default_info: DefaultInfo


def collect_inputs(
    ctx: BuildContext,
    toolchain: RustToolchain,
    cc_toolchain: CcToolchain,
    crate_info: CrateInfo,
    dep_info: DepInfo,
    build_info: Optional[BuildInfo],
) -> CompileInputs:
    """Gather the inputs of a rustc action.

    Args:
        ctx: Build context of the target
        toolchain: The current Rust toolchain
        cc_toolchain: The native toolchain
        crate_info: The crate being compiled
        dep_info: Dependency info of the crate
        build_info: Outputs of the crate's build script, if any

    Returns:
        CompileInputs
    """
    attrs = ctx.attrs
    direct: list[File] = list(crate_info.srcs)
    direct.extend(attrs.data_files)
    direct.extend(attrs.compile_data_files)
    direct.extend(dep_info.transitive_libs)
    direct.append(toolchain.rustc)
    direct.extend(toolchain.crosstool_files)
    if build_info is not None:
        direct.extend([build_info.rustc_env, build_info.flags])
    if attrs.linker_script is not None:
        direct.append(attrs.linker_script)

    compile_inputs = UniqueSet(
        direct,
        transitive=[
            UniqueSet(toolchain.rustc_lib),
            UniqueSet(toolchain.rust_lib),
            UniqueSet(cc_toolchain.all_files),
        ],
    )

    script_inputs = gather_build_script_inputs(build_info)
    if script_inputs.inputs:
        compile_inputs = UniqueSet(script_inputs.inputs, transitive=[compile_inputs])

    build_env_files = list(attrs.rustc_env_files)
    if script_inputs.build_env_file is not None:
        build_env_files.append(script_inputs.build_env_file)
    compile_inputs = UniqueSet(build_env_files, transitive=[compile_inputs])

    return CompileInputs(
        files=compile_inputs,
        out_dir=script_inputs.out_dir,
        build_env_files=tuple(build_env_files),
        build_flags_files=script_inputs.build_flags_files,
    )


def format_progress_message(ctx: BuildContext, crate_info: CrateInfo) -> str:
    """Progress line such as ``Compiling Rust bin hello v1.0.0 (3 files)``."""
    version = ctx.attrs.version
    formatted_version = f" v{version}" if version is not None and version != DEFAULT_VERSION else ""
    return f"Compiling Rust {crate_info.type} {ctx.label.name}{formatted_version} ({len(crate_info.srcs)} files)"


def rustc_compile_action(
    ctx: BuildContext,
    toolchain: RustToolchain,
    crate_type: CrateType,
    crate_info: CrateInfo,
    output_hash: Optional[str] = None,
    rust_flags: Sequence[str] = (),
    environ: Optional[Mapping[str, str]] = None,
) -> CompileResult:
    """Register the rustc action of a crate and return its providers.

    Args:
        ctx: Build context of the target
        toolchain: The current Rust toolchain
        crate_type: Crate type of the target
        crate_info: The crate to compile
        output_hash: Hash of the crate root, appended to output names
        rust_flags: Extra rustc flags
        environ: Extra environment variables for the action; location
            references in values are expanded like ``rustc_env``

    Returns:
        CompileResult

    Raises:
        ConfigurationError: If the target is misconfigured; nothing is
            registered in that case
    """
    cc_toolchain, feature_configuration = find_cc_toolchain(ctx)

    dep_info, build_info = collect_deps(
        ctx.label,
        crate_info.deps,
        crate_info.proc_macro_deps,
        crate_info.aliases,
        toolchain,
    )

    compile_inputs = collect_inputs(ctx, toolchain, cc_toolchain, crate_info, dep_info, build_info)

    args, env = construct_arguments(
        ctx,
        toolchain,
        toolchain.rustc.path,
        cc_toolchain,
        feature_configuration,
        crate_type,
        crate_info,
        dep_info,
        output_hash,
        rust_flags,
        compile_inputs.out_dir,
        compile_inputs.build_env_files,
        compile_inputs.build_flags_files,
    )
    if environ:
        env.update(ctx.location_expander(environ, ctx.attrs.data + ctx.attrs.compile_data, ctx.label))

    # Everything that can fail is done before registration.
    cc_info, archive_alias = establish_cc_info(ctx, crate_info, toolchain, cc_toolchain, feature_configuration)

    logger.debug(f"{ctx.label}: {len(compile_inputs.files)} inputs, output {crate_info.output.path}")
    ctx.actions.run(
        executable=ctx.process_wrapper,
        inputs=compile_inputs.files.to_list(),
        outputs=[crate_info.output],
        env=env,
        arguments=args.to_list(),
        mnemonic=RUSTC_MNEMONIC,
        progress_message=format_progress_message(ctx, crate_info),
    )
    # The alias links the rustc output, so it is registered after it.
    if archive_alias is not None:
        link_archive_alias(ctx, crate_info, archive_alias)

    runfiles = Runfiles(files=tuple(UniqueSet(list(dep_info.transitive_dylibs) + ctx.attrs.data_files)))

    is_executable = crate_info.type is CrateType.BIN or crate_info.is_test or ctx.attrs.out_binary
    return CompileResult(
        cc_info=cc_info,
        crate_info=crate_info,
        dep_info=dep_info,
        default_info=DefaultInfo(
            files=UniqueSet([crate_info.output]),
            runfiles=runfiles,
            executable=crate_info.output if is_executable else None,
        ),
    )
