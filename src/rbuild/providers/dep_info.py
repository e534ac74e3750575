"""Dependency aggregation providers: DepInfo and BuildInfo."""

from dataclasses import dataclass
from typing import Optional

from .crate import AliasableDepInfo, CrateInfo
from .files import File
from .unique_set import MergeOrder, UniqueSet


@dataclass(frozen=True)
class BuildInfo:
    """Outputs of a build script run.

    Attributes:
        out_dir: Directory the build script wrote generated sources to
        flags: File with extra rustc flags
        link_flags: File with extra linker flags
        rustc_env: File with extra environment variables for rustc
        dep_env: File with environment variables exported to dependents
    """

    out_dir: File
    flags: File
    link_flags: File
    rustc_env: File
    dep_env: Optional[File] = None


@dataclass(frozen=True)
class DepInfo:
    """Transitive dependency information of a crate.

    Attributes:
        direct_crates: Direct crate dependencies, in declaration order
        transitive_crates: Every crate reachable through dependencies
        transitive_dylibs: Native shared libraries, dependencies first
        transitive_staticlibs: Native static libraries
        transitive_libs: Every crate output and native library, flattened
        transitive_build_infos: Every build script output set in the graph
        dep_env: Environment file exported by the target's own build script
    """

    direct_crates: UniqueSet[AliasableDepInfo]
    transitive_crates: UniqueSet[CrateInfo]
    transitive_dylibs: UniqueSet[File]
    transitive_staticlibs: UniqueSet[File]
    transitive_libs: tuple[File, ...]
    transitive_build_infos: UniqueSet[BuildInfo]
    dep_env: Optional[File] = None

    @classmethod
    def empty(cls) -> "DepInfo":
        """DepInfo of a crate without dependencies."""
        return cls(
            direct_crates=UniqueSet(),
            transitive_crates=UniqueSet(),
            transitive_dylibs=UniqueSet(order=MergeOrder.TOPOLOGICAL),
            transitive_staticlibs=UniqueSet(),
            transitive_libs=(),
            transitive_build_infos=UniqueSet(),
        )
