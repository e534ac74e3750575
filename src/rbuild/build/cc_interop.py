"""Native interop bridge.

Describes a compiled crate as a C/C++ library (CcInfo) so native targets can
link against it.

Design:
    Native linkers only accept static libraries with a known archive
    extension. An rlib is an ar archive too, so for lib/rlib crates an alias
    with the toolchain's static library extension is declared next to the
    output (alias_archive_extension) and the alias is what native targets
    see. This is an interop shim; the rlib itself is unchanged. The symlink
    is registered by link_archive_alias, after the compile action.
"""

import logging
from typing import Optional

from ..providers.cc_info import CcInfo, LibraryToLink, LinkerInput, LinkingContext, merge_cc_infos
from ..providers.crate import CrateInfo, CrateType
from ..providers.files import File
from ..providers.unique_set import UniqueSet
from ..toolchains.cc_toolchain import CcToolchain, FeatureConfiguration
from ..toolchains.rust_toolchain import RustToolchain
from .build_context import BuildContext
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

INTEROP_CRATE_TYPES = (CrateType.STATICLIB, CrateType.CDYLIB, CrateType.RLIB, CrateType.LIB)


class CrateTypeError(ConfigurationError):
    """Raised when a crate type cannot be described as a native library."""

    pass


def alias_archive_extension(ctx: BuildContext, crate_info: CrateInfo, toolchain: RustToolchain) -> File:
    """Declare ``<crate name><staticlib ext>`` next to the crate output.

    Returns:
        The alias file, in the output's directory
    """
    return ctx.actions.declare_file(crate_info.name + toolchain.staticlib_ext, sibling=crate_info.output)


def link_archive_alias(ctx: BuildContext, crate_info: CrateInfo, alias: File) -> None:
    """Register ``alias`` as a link to the crate output."""
    ctx.actions.symlink(output=alias, target_file=crate_info.output)
    logger.debug(f"{ctx.label}: aliased {crate_info.output.basename} as {alias.basename}")


def establish_cc_info(
    ctx: BuildContext,
    crate_info: CrateInfo,
    toolchain: RustToolchain,
    cc_toolchain: CcToolchain,
    feature_configuration: FeatureConfiguration,
) -> tuple[Optional[CcInfo], Optional[File]]:
    """Build the CcInfo of a crate, if native targets can link it.

    Nothing is registered here. When an archive alias is returned the
    caller links it with link_archive_alias.

    Args:
        ctx: Build context of the target
        crate_info: The compiled crate
        toolchain: The current Rust toolchain
        cc_toolchain: The native toolchain
        feature_configuration: Enabled native toolchain features

    Returns:
        A tuple (cc_info, alias). cc_info is merged with the CcInfo of the
        crate's dependencies, or None for tests, binaries, proc-macros,
        dylibs and wasm targets. alias is the declared archive alias of
        lib/rlib crates, None otherwise.

    Raises:
        CrateTypeError: If the crate type has no native library form
    """
    del cc_toolchain, feature_configuration  # Library creation needs neither
    if crate_info.is_test or crate_info.type not in INTEROP_CRATE_TYPES or ctx.attrs.out_binary:
        return None, None
    if toolchain.target_arch == "wasm32":
        return None, None

    dot_a = None
    if crate_info.type is CrateType.STATICLIB:
        library_to_link = LibraryToLink(static_library=crate_info.output, pic_static_library=crate_info.output)
    elif crate_info.type in (CrateType.RLIB, CrateType.LIB):
        dot_a = alias_archive_extension(ctx, crate_info, toolchain)
        library_to_link = LibraryToLink(static_library=dot_a, pic_static_library=dot_a)
    elif crate_info.type is CrateType.CDYLIB:
        library_to_link = LibraryToLink(dynamic_library=crate_info.output)
    else:
        raise CrateTypeError(
            f"{ctx.label}: crate type {crate_info.type} cannot be linked by native targets",
            label=ctx.label,
        )

    linker_input = LinkerInput(
        owner=ctx.label,
        libraries=(library_to_link,),
        user_link_flags=toolchain.stdlib_linkflags,
    )
    linking_context = LinkingContext(linker_inputs=UniqueSet([linker_input]))

    cc_infos = [dep.cc_info for dep in crate_info.deps if dep.cc_info is not None]
    cc_infos.append(CcInfo(linking_context=linking_context))
    return merge_cc_infos(cc_infos), dot_a
