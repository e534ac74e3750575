"""Compilation mode profiles.

Maps the host build system's compilation mode (fastbuild, dbg, opt) onto
rustc's optimization and debug-info levels.

Design:
    Each toolchain carries its own option table, keyed by mode name. The
    tables here are the defaults used when a toolchain config does not
    declare one. A mode missing from the toolchain's table is a
    configuration error, never a silent fallback.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..providers.files import Label
from .errors import ConfigurationError

if TYPE_CHECKING:
    from ..toolchains.rust_toolchain import RustToolchain


class CompilationMode(Enum):
    """Compilation modes understood by the default option table."""

    FASTBUILD = "fastbuild"
    DBG = "dbg"
    OPT = "opt"

    def __str__(self) -> str:
        """Return the string value for directory names and display."""
        return self.value


@dataclass(frozen=True)
class CompilationModeOpts:
    """rustc codegen options for one compilation mode.

    Attributes:
        opt_level: Value for ``--codegen=opt-level``
        debug_info: Value for ``--codegen=debuginfo``
    """

    opt_level: str
    debug_info: str


class CompilationModeError(ConfigurationError):
    """Raised when the toolchain has no options for the requested mode."""

    pass


PROFILES: dict[CompilationMode, CompilationModeOpts] = {
    CompilationMode.FASTBUILD: CompilationModeOpts(opt_level="0", debug_info="0"),
    CompilationMode.DBG: CompilationModeOpts(opt_level="0", debug_info="2"),
    CompilationMode.OPT: CompilationModeOpts(opt_level="3", debug_info="0"),
}


def default_compilation_mode_opts() -> dict[str, CompilationModeOpts]:
    """Default option table keyed by mode name."""
    return {mode.value: opts for mode, opts in PROFILES.items()}


def get_compilation_mode_opts(
    compilation_mode: str,
    toolchain: "RustToolchain",
    label: Optional[Label] = None,
) -> CompilationModeOpts:
    """Look up the codegen options for the active compilation mode.

    Args:
        compilation_mode: Active mode name (e.g. "opt")
        toolchain: Toolchain whose option table is consulted
        label: Target being configured, for error reporting

    Returns:
        Options for the mode

    Raises:
        CompilationModeError: If the toolchain does not know the mode
    """
    opts = toolchain.compilation_mode_opts.get(compilation_mode)
    if opts is None:
        raise CompilationModeError(
            f"Unrecognized compilation mode {compilation_mode} for toolchain {toolchain.target_triple}"
            + (f" (while configuring {label})" if label is not None else ""),
            label=label,
        )
    return opts


def format_profile_banner(compilation_mode: str, toolchain: Optional["RustToolchain"] = None) -> str:
    """Format a compilation mode banner for display.

    Args:
        compilation_mode: Active mode name
        toolchain: Toolchain in use (optional)

    Returns:
        Banner string such as ``MODE=opt TARGET=x86_64-unknown-linux-gnu``
    """
    parts = [f"MODE={compilation_mode}"]
    if toolchain is not None:
        parts.append(f"TARGET={toolchain.target_triple}")
    return " ".join(parts)
