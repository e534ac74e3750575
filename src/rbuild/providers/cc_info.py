"""C/C++ linking providers.

A reduced model of the native toolchain's linking context: enough for the
native-interop bridge to describe a compiled crate as a static or dynamic
library and for the dependency collector to read native libraries back out.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .files import File, Label
from .unique_set import UniqueSet


@dataclass(frozen=True)
class LibraryToLink:
    """One library in its available forms.

    Attributes:
        static_library: Non-PIC static archive
        pic_static_library: PIC static archive
        interface_library: Import library (e.g. a Windows ``.lib`` stub)
        dynamic_library: Shared object
    """

    static_library: Optional[File] = None
    pic_static_library: Optional[File] = None
    interface_library: Optional[File] = None
    dynamic_library: Optional[File] = None

    def preferred_artifact(self) -> Optional[File]:
        """Artifact used when linking a static executable.

        Static forms are preferred over dynamic ones.
        """
        return self.static_library or self.pic_static_library or self.interface_library or self.dynamic_library


@dataclass(frozen=True)
class LinkerInput:
    """Libraries and flags contributed by a single owner."""

    owner: Label
    libraries: tuple[LibraryToLink, ...] = ()
    user_link_flags: tuple[str, ...] = ()


@dataclass(frozen=True)
class LinkingContext:
    """Linker inputs of a target and everything below it."""

    linker_inputs: UniqueSet[LinkerInput]


@dataclass(frozen=True)
class CcInfo:
    """Native-interop descriptor consumed by C/C++ targets."""

    linking_context: LinkingContext

    def libraries(self) -> list[LibraryToLink]:
        """All libraries of every linker input, in order."""
        return [lib for linker_input in self.linking_context.linker_inputs for lib in linker_input.libraries]


def merge_cc_infos(cc_infos: Iterable[CcInfo]) -> CcInfo:
    """Merge several CcInfo values into one flattened descriptor.

    Linker inputs keep the order of ``cc_infos``; an input shared by several
    of them is kept once.
    """
    return CcInfo(
        linking_context=LinkingContext(
            linker_inputs=UniqueSet(transitive=[info.linking_context.linker_inputs for info in cc_infos]),
        )
    )
