"""Provider types passed between analysed targets."""

from .cc_info import CcInfo, LibraryToLink, LinkerInput, LinkingContext, merge_cc_infos
from .crate import LEGACY_EDITION, AliasableDepInfo, CrateInfo, CrateType
from .default_info import DefaultInfo, Runfiles
from .dep_info import BuildInfo, DepInfo
from .files import File, Label
from .target import Target
from .unique_set import MergeOrder, UniqueSet

__all__ = [
    "AliasableDepInfo",
    "BuildInfo",
    "CcInfo",
    "CrateInfo",
    "CrateType",
    "DefaultInfo",
    "DepInfo",
    "File",
    "LEGACY_EDITION",
    "Label",
    "LibraryToLink",
    "LinkerInput",
    "LinkingContext",
    "MergeOrder",
    "Runfiles",
    "Target",
    "UniqueSet",
    "merge_cc_infos",
]
