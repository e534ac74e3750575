"""Dependency collection.

Validates the declared dependencies of a crate and aggregates them into a
DepInfo (plus the crate's BuildInfo, if a build script is among them).

Design:
    Every dependency is classified exactly once into a closed set of
    capabilities:

        CrateDependency          a Rust crate (CrateInfo + DepInfo)
        NativeLibraryDependency  a C/C++ library (CcInfo)
        BuildInfoDependency      build script outputs (BuildInfo)

    Aggregation then dispatches on the variant instead of probing providers.
    A target exposing several providers is classified by the first match in
    the order above.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Union

from ..providers.cc_info import CcInfo
from ..providers.crate import AliasableDepInfo, CrateInfo, CrateType
from ..providers.dep_info import BuildInfo, DepInfo
from ..providers.files import File, Label
from ..providers.target import Target
from ..providers.unique_set import MergeOrder, UniqueSet
from ..toolchains.rust_toolchain import RustToolchain
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class ProcMacroPlacementError(ConfigurationError):
    """Raised when a proc-macro crate is in deps, or a non proc-macro in proc_macro_deps."""

    pass


class UnsupportedDependencyError(ConfigurationError):
    """Raised when a dependency provides neither a crate, a native library nor build info."""

    pass


class DuplicateBuildInfoError(ConfigurationError):
    """Raised when more than one dependency provides build script outputs."""

    pass


@dataclass(frozen=True)
class CrateDependency:
    """A Rust crate dependency."""

    label: Label
    crate_info: CrateInfo
    dep_info: DepInfo


@dataclass(frozen=True)
class NativeLibraryDependency:
    """A C/C++ library dependency."""

    label: Label
    cc_info: CcInfo


@dataclass(frozen=True)
class BuildInfoDependency:
    """A build script dependency."""

    label: Label
    build_info: BuildInfo


ClassifiedDependency = Union[CrateDependency, NativeLibraryDependency, BuildInfoDependency]


def classify_dependency(label: Label, dep: Target) -> ClassifiedDependency:
    """Classify a dependency by the capability it provides.

    Args:
        label: Label of the target declaring the dependency
        dep: The dependency

    Returns:
        The dependency's capability variant

    Raises:
        UnsupportedDependencyError: If the dependency has none of the capabilities
    """
    if dep.crate_info is not None:
        return CrateDependency(
            label=dep.label,
            crate_info=dep.crate_info,
            dep_info=dep.dep_info if dep.dep_info is not None else DepInfo.empty(),
        )
    if dep.cc_info is not None:
        return NativeLibraryDependency(label=dep.label, cc_info=dep.cc_info)
    if dep.build_info is not None:
        return BuildInfoDependency(label=dep.label, build_info=dep.build_info)
    raise UnsupportedDependencyError(
        f"{label}: rust targets can only depend on rust_library, rust_*_library or cc_library targets, "
        f"but {dep.label} provides none of them",
        label=label,
    )


def validate_dependency_placement(label: Label, deps: Sequence[Target], proc_macro_deps: Sequence[Target]) -> None:
    """Check that proc-macro crates are declared in proc_macro_deps only.

    Raises:
        ProcMacroPlacementError: On the first misplaced dependency
    """
    for dep in deps:
        if dep.crate_info is not None and dep.crate_info.type is CrateType.PROC_MACRO:
            raise ProcMacroPlacementError(
                f"{label} listed {dep.label} in its deps, but it is a proc-macro. "
                "It should instead be listed in proc_macro_deps.",
                label=label,
            )
    for dep in proc_macro_deps:
        kind = _describe_kind(dep)
        if dep.crate_info is None or dep.crate_info.type is not CrateType.PROC_MACRO:
            raise ProcMacroPlacementError(
                f"{label} listed {dep.label} in its proc_macro_deps, but it is not proc-macro, it is a {kind}. "
                "It should probably instead be listed in deps.",
                label=label,
            )


def get_libs_for_static_executable(cc_info: CcInfo) -> list[File]:
    """Preferred artifact of every library of a native dependency.

    Static archives are preferred, the dependency is linked as if into a
    static executable.
    """
    libs = []
    for library in cc_info.libraries():
        artifact = library.preferred_artifact()
        if artifact is not None:
            libs.append(artifact)
    return libs


def is_dynamic_library(lib: File, toolchain: RustToolchain) -> bool:
    """Check whether ``lib`` is a shared library for the toolchain.

    The version number of a shared library may be absent, before the
    extension (``libfoo.2.dylib``) or after it (``libfoo.so.2``).
    """
    basename = lib.basename
    if basename.endswith(toolchain.dylib_ext):
        return True
    parts = basename.split(".", 2)
    return len(parts) > 1 and parts[1] == toolchain.dylib_ext[1:]


def is_static_library(lib: File, toolchain: RustToolchain) -> bool:
    """Check whether ``lib`` is a static archive for the toolchain."""
    return lib.basename.endswith(toolchain.staticlib_ext)


def collect_deps(
    label: Label,
    deps: Sequence[Target],
    proc_macro_deps: Sequence[Target],
    aliases: Mapping[Label, str],
    toolchain: RustToolchain,
) -> tuple[DepInfo, Optional[BuildInfo]]:
    """Walk the dependencies of a crate and collect its transitive dependencies.

    Args:
        label: Label of the current target
        deps: Declared dependencies, in declaration order
        proc_macro_deps: Declared proc-macro dependencies, in declaration order
        aliases: Dependency label to the name its crate is imported as
        toolchain: The current Rust toolchain

    Returns:
        (DepInfo, BuildInfo or None) tuple

    Raises:
        ProcMacroPlacementError: If a proc-macro is misplaced
        UnsupportedDependencyError: If a dependency has no usable capability
        DuplicateBuildInfoError: If several dependencies provide build info
    """
    validate_dependency_placement(label, deps, proc_macro_deps)

    direct_crates: list[AliasableDepInfo] = []
    transitive_crates: list[UniqueSet[CrateInfo]] = []
    transitive_dylibs: list[UniqueSet[File]] = []
    transitive_staticlibs: list[UniqueSet[File]] = []
    own_dylibs: list[File] = []
    own_staticlibs: list[File] = []
    transitive_build_infos: list[UniqueSet[BuildInfo]] = []
    build_info: Optional[BuildInfo] = None

    for dep in list(deps) + list(proc_macro_deps):
        classified = classify_dependency(label, dep)

        if isinstance(classified, CrateDependency):
            crate = classified.crate_info
            dep_info = classified.dep_info
            name = aliases.get(classified.label, crate.name)
            logger.debug(f"{label}: crate dependency {classified.label} as {name} ({crate.type})")
            direct_crates.append(AliasableDepInfo(name=name, dep=crate))
            transitive_crates.append(UniqueSet([crate], transitive=[dep_info.transitive_crates]))
            transitive_dylibs.append(dep_info.transitive_dylibs)
            transitive_staticlibs.append(dep_info.transitive_staticlibs)
            transitive_build_infos.append(dep_info.transitive_build_infos)

        elif isinstance(classified, NativeLibraryDependency):
            # Native libraries are always linked as for a static executable.
            libs = get_libs_for_static_executable(classified.cc_info)
            dylibs = [lib for lib in libs if is_dynamic_library(lib, toolchain)]
            staticlibs = [lib for lib in libs if is_static_library(lib, toolchain)]
            logger.debug(f"{label}: native dependency {classified.label} ({len(dylibs)} dynamic, {len(staticlibs)} static)")
            own_dylibs.extend(dylibs)
            own_staticlibs.extend(staticlibs)

        elif isinstance(classified, BuildInfoDependency):
            if build_info is not None:
                raise DuplicateBuildInfoError(
                    f"{label}: several deps are providing build information, only one is allowed in the dependencies "
                    f"(second one: {classified.label})",
                    label=label,
                )
            logger.debug(f"{label}: build script outputs from {classified.label}")
            build_info = classified.build_info
            transitive_build_infos.append(UniqueSet([build_info]))

    transitive_crates_set: UniqueSet[CrateInfo] = UniqueSet(transitive=transitive_crates)
    transitive_dylibs_set: UniqueSet[File] = UniqueSet(
        own_dylibs, transitive=transitive_dylibs, order=MergeOrder.TOPOLOGICAL
    )
    transitive_staticlibs_set: UniqueSet[File] = UniqueSet(own_staticlibs, transitive=transitive_staticlibs)
    transitive_libs: UniqueSet[File] = UniqueSet(
        [crate.output for crate in transitive_crates_set],
        transitive=[transitive_staticlibs_set, transitive_dylibs_set],
    )

    return (
        DepInfo(
            direct_crates=UniqueSet(direct_crates),
            transitive_crates=transitive_crates_set,
            transitive_dylibs=transitive_dylibs_set,
            transitive_staticlibs=transitive_staticlibs_set,
            transitive_libs=tuple(transitive_libs),
            transitive_build_infos=UniqueSet(transitive=transitive_build_infos),
            dep_env=build_info.dep_env if build_info is not None else None,
        ),
        build_info,
    )


def _describe_kind(dep: Target) -> str:
    if dep.crate_info is not None:
        return str(dep.crate_info.type)
    if dep.cc_info is not None:
        return "cc_library"
    if dep.build_info is not None:
        return "build script"
    return "target without rust providers"
