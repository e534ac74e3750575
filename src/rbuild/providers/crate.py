"""Crate level providers: CrateType, CrateInfo and AliasableDepInfo."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Mapping

from .files import File, Label

if TYPE_CHECKING:
    from .target import Target

# Edition that rustc assumes when no --edition flag is passed.
LEGACY_EDITION = "2015"


class CrateType(Enum):
    """Crate output forms accepted by ``rustc --crate-type``."""

    BIN = "bin"
    LIB = "lib"
    RLIB = "rlib"
    DYLIB = "dylib"
    CDYLIB = "cdylib"
    STATICLIB = "staticlib"
    PROC_MACRO = "proc-macro"

    def __str__(self) -> str:
        return self.value

    @property
    def is_rust_library(self) -> bool:
        """True for library forms that are not linked into a final artifact."""
        return self in (CrateType.LIB, CrateType.RLIB)

    @property
    def is_shared_library(self) -> bool:
        """True for crate types that produce a shared object."""
        return self in (CrateType.DYLIB, CrateType.CDYLIB)


@dataclass(frozen=True, eq=False)
class CrateInfo:
    """Everything rustc needs to know about one crate.

    Instances compare and hash by identity, the same crate reached through
    several dependency paths is therefore only counted once.

    Attributes:
        name: Crate name as passed to ``--crate-name``
        type: Crate output form
        root: Crate root source file
        srcs: All source files of the crate
        output: Artifact produced by compiling the crate
        edition: Rust edition ("2015", "2018", "2021", ...)
        is_test: Whether this crate is a test harness
        deps: Declared dependencies
        proc_macro_deps: Declared procedural macro dependencies
        aliases: Dependency label to the name the crate is imported as
        rustc_env: Extra environment variables for the rustc invocation,
            values may contain location references
    """

    name: str
    type: CrateType
    root: File
    srcs: tuple[File, ...]
    output: File
    edition: str = LEGACY_EDITION
    is_test: bool = False
    deps: tuple["Target", ...] = ()
    proc_macro_deps: tuple["Target", ...] = ()
    aliases: Mapping[Label, str] = field(default_factory=dict)
    rustc_env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, eq=False)
class AliasableDepInfo:
    """A direct crate dependency together with the name it is imported as."""

    name: str
    dep: CrateInfo
