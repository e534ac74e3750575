"""Default outputs of an analysed target."""

from dataclasses import dataclass, field
from typing import Optional

from .files import File
from .unique_set import UniqueSet


@dataclass(frozen=True)
class Runfiles:
    """Files that must be present next to an artifact when it runs."""

    files: tuple[File, ...] = ()


@dataclass(frozen=True)
class DefaultInfo:
    """Default files, runfiles and optional executable of a target."""

    files: UniqueSet[File]
    runfiles: Runfiles = field(default_factory=Runfiles)
    executable: Optional[File] = None
