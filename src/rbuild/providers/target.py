"""Analysed targets as seen by their dependents."""

from dataclasses import dataclass
from typing import Optional

from .cc_info import CcInfo
from .crate import CrateInfo
from .default_info import DefaultInfo
from .dep_info import BuildInfo, DepInfo
from .files import File, Label


@dataclass(frozen=True, eq=False)
class Target:
    """A dependency together with the providers it exposes.

    Every provider is optional. A Rust library carries ``crate_info`` and
    ``dep_info`` (and usually ``cc_info``), a C/C++ library only ``cc_info``,
    a build script only ``build_info``.

    Attributes:
        label: Label of the target
        crate_info: Crate description, for Rust crates
        dep_info: Transitive dependency information, for Rust crates
        cc_info: Native linking context
        build_info: Build script outputs
        default_info: Default outputs and runfiles
    """

    label: Label
    crate_info: Optional[CrateInfo] = None
    dep_info: Optional[DepInfo] = None
    cc_info: Optional[CcInfo] = None
    build_info: Optional[BuildInfo] = None
    default_info: Optional[DefaultInfo] = None

    @property
    def files(self) -> list[File]:
        """Default output files of the target."""
        if self.default_info is None:
            return []
        return self.default_info.files.to_list()
