"""
Console output for the rbuild command line.

Every line is prefixed with the time elapsed since the program started, in
MM:SS.cc format (minutes:seconds.centiseconds), so slow analysis steps are
easy to spot.

Example output:
    00:00.01 rbuild v0.1.0
    00:00.02 [1/3] Loading toolchain x86_64-unknown-linux-gnu...
    00:00.03       MODE=fastbuild TARGET=x86_64-unknown-linux-gnu
    00:00.05 [2/3] Loading workspace examples/hello.json...

Library code logs through the logging module instead; this module is for
the CLI only.
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: Optional[TextIO] = None
_verbose: bool = False


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Start the elapsed time clock.

    Args:
        output_stream: Stream to write to (defaults to the current sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """Enable or disable messages logged with ``verbose_only``."""
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Seconds since init_timer() (which is called on first use)."""
    if _start_time is None:
        init_timer(_output_stream)
    return time.time() - _start_time  # type: ignore[operator]


def format_timestamp() -> str:
    """Format the elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _write(message: str) -> None:
    stream = _output_stream if _output_stream is not None else sys.stdout
    stream.write(f"{format_timestamp()} {message}\n")
    stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """Log a message with timestamp."""
    if verbose_only and not _verbose:
        return
    _write(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log a step of the command.

    Format: [N/M] message
    """
    if verbose_only and not _verbose:
        return
    _write(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """Log an indented detail line."""
    if verbose_only and not _verbose:
        return
    _write(f"{' ' * indent}{message}")


def log_header(title: str, version: str) -> None:
    """Log the program banner."""
    _write(f"{title} v{version}")


def log_error(message: str) -> None:
    """Log an error message."""
    _write(f"ERROR: {message}")


class TimedLogger:
    """
    Context manager logging an operation and how long it took.

    Usage:
        with TimedLogger("Analysing targets", phase=(3, 3)) as timed:
            result = analyze(...)
            timed.detail(f"{len(result.targets)} targets")
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=self.verbose_only)
        return None

    def detail(self, message: str) -> None:
        """Log a detail line within this operation."""
        log_detail(message, verbose_only=self.verbose_only)
