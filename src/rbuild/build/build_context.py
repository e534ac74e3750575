"""Build Context - per-target configuration for compile action construction.

This module defines:
- RuleAttrs: the rule attributes of one target, with explicit optionals
- BuildContext: everything the compile action needs besides the crate and
  the Rust toolchain (label, attributes, action registrar, native toolchain)

Design:
    BuildContext is created once per target by the caller (the workspace
    analyser, or a host build system adapter) and flows unchanged through
    dependency collection, argument construction and action registration.
"""

from dataclasses import dataclass
from typing import Optional

from ..providers.files import File, Label
from ..providers.target import Target
from ..toolchains.cc_toolchain import CcToolchain, FeatureConfiguration
from .actions import ActionRegistrar
from .error_format import ErrorFormat
from .locations import LocationExpander, expand_locations


@dataclass(frozen=True)
class RuleAttrs:
    """Rule attributes of one target.

    Attributes:
        version: Crate version; None means the attribute was not set
        data: Runtime data dependencies
        compile_data: Files needed at compile time only
        crate_features: Enabled cargo features (each becomes a ``--cfg``)
        rustc_flags: Extra rustc flags declared on the rule
        rustc_env_files: Files with extra environment variables for rustc
        linker_script: Optional linker script passed to the linker
        out_binary: Force the output to be treated as a binary
        error_format: Optional ``--error-format`` value
        features: Native toolchain features requested by the target
        disabled_features: Native toolchain features disabled by the target
    """

    version: Optional[str] = None
    data: tuple[Target, ...] = ()
    compile_data: tuple[Target, ...] = ()
    crate_features: tuple[str, ...] = ()
    rustc_flags: tuple[str, ...] = ()
    rustc_env_files: tuple[File, ...] = ()
    linker_script: Optional[File] = None
    out_binary: bool = False
    error_format: Optional[ErrorFormat] = None
    features: tuple[str, ...] = ()
    disabled_features: tuple[str, ...] = ()

    @property
    def data_files(self) -> list[File]:
        """Default files of all data dependencies."""
        return [f for target in self.data for f in target.files]

    @property
    def compile_data_files(self) -> list[File]:
        """Default files of all compile_data dependencies."""
        return [f for target in self.compile_data for f in target.files]


@dataclass(frozen=True)
class BuildContext:
    """Per-target build context.

    Attributes:
        label: Label of the target being configured
        attrs: Rule attributes of the target
        actions: Registrar the compile action is handed to
        cc_toolchain: Native toolchain used for linking
        process_wrapper: Executable that wraps every rustc invocation
        compilation_mode: Active compilation mode name
        user_link_flags: Link flags from the command line (``--linkopt``)
        location_expander: Resolver for location references in rustc_env
    """

    label: Label
    attrs: RuleAttrs
    actions: ActionRegistrar
    cc_toolchain: CcToolchain
    process_wrapper: File
    compilation_mode: str = "fastbuild"
    user_link_flags: tuple[str, ...] = ()
    location_expander: LocationExpander = expand_locations


def find_cc_toolchain(ctx: BuildContext) -> tuple[CcToolchain, FeatureConfiguration]:
    """Resolve the native toolchain and feature configuration of a target.

    The active compilation mode is always requested as a feature, so
    toolchains can attach mode specific link flags.
    """
    cc_toolchain = ctx.cc_toolchain
    feature_configuration = cc_toolchain.configure_features(
        requested_features=(ctx.compilation_mode,) + ctx.attrs.features,
        unsupported_features=ctx.attrs.disabled_features,
    )
    return cc_toolchain, feature_configuration
