"""Action registration.

The host build system owns scheduling, caching and sandboxing. This module
only defines the narrow interface the compile action code uses to hand an
action over, plus ActionRecorder, an in-memory implementation that keeps the
registered actions for inspection (CLI output and tests).
"""

import logging
import posixpath
import threading
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ..providers.files import File

logger = logging.getLogger(__name__)


class ActionRegistrationError(ValueError):
    """Raised when an action conflicts with an already registered one."""

    pass


@dataclass(frozen=True)
class RunAction:
    """An external command registered for execution.

    Attributes:
        executable: Program to run
        inputs: Files the command reads
        outputs: Files the command produces
        env: Environment of the command
        arguments: Command line, without the executable
        mnemonic: Short action kind (e.g. "Rustc")
        progress_message: Human-readable progress line
    """

    executable: File
    inputs: tuple[File, ...]
    outputs: tuple[File, ...]
    env: Mapping[str, str]
    arguments: tuple[str, ...]
    mnemonic: str
    progress_message: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "mnemonic": self.mnemonic,
            "progress_message": self.progress_message,
            "executable": self.executable.path,
            "arguments": list(self.arguments),
            "env": dict(self.env),
            "inputs": [f.path for f in self.inputs],
            "outputs": [f.path for f in self.outputs],
        }


@dataclass(frozen=True)
class SymlinkAction:
    """An output that is a link to another file."""

    output: File
    target_file: File


@runtime_checkable
class ActionRegistrar(Protocol):
    """Protocol of the host build system's action factory."""

    def run(
        self,
        executable: File,
        inputs: Sequence[File],
        outputs: Sequence[File],
        env: Mapping[str, str],
        arguments: Sequence[str],
        mnemonic: str,
        progress_message: str,
    ) -> None:
        """Register an external command. Nothing is returned to the caller."""
        ...

    def declare_file(self, name: str, sibling: Optional[File] = None) -> File:
        """Declare a new output file, optionally next to ``sibling``."""
        ...

    def symlink(self, output: File, target_file: File) -> None:
        """Register ``output`` as a link to ``target_file``."""
        ...


@dataclass
class ActionRecorder:
    """ActionRegistrar that records actions in memory.

    Thread-safe: targets may be analysed concurrently against one recorder.

    Attributes:
        output_dir: Directory files declared without a sibling are placed in
    """

    output_dir: str = "rbuild-out/bin"
    actions: list[RunAction] = field(default_factory=list)
    symlinks: list[SymlinkAction] = field(default_factory=list)
    _outputs: dict[str, str] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def run(
        self,
        executable: File,
        inputs: Sequence[File],
        outputs: Sequence[File],
        env: Mapping[str, str],
        arguments: Sequence[str],
        mnemonic: str,
        progress_message: str,
    ) -> None:
        """Record a run action.

        Raises:
            ActionRegistrationError: If an output is already produced by another action
        """
        action = RunAction(
            executable=executable,
            inputs=tuple(inputs),
            outputs=tuple(outputs),
            env=dict(env),
            arguments=tuple(arguments),
            mnemonic=mnemonic,
            progress_message=progress_message,
        )
        with self._lock:
            self._claim_outputs(action.outputs, progress_message)
            self.actions.append(action)
        logger.info(f"Registered {mnemonic} action: {progress_message}")
        logger.debug(f"{mnemonic} command: {executable.path} ... ({len(action.arguments)} args, {len(action.inputs)} inputs)")

    def declare_file(self, name: str, sibling: Optional[File] = None) -> File:
        """Declare an output file."""
        if sibling is not None:
            return sibling.sibling(name)
        return File(posixpath.join(self.output_dir, name), root_relative=name)

    def symlink(self, output: File, target_file: File) -> None:
        """Record a symlink action.

        Raises:
            ActionRegistrationError: If ``output`` is already produced by another action
        """
        with self._lock:
            self._claim_outputs((output,), f"symlink to {target_file.path}")
            self.symlinks.append(SymlinkAction(output=output, target_file=target_file))
        logger.debug(f"Registered symlink {output.path} -> {target_file.path}")

    def actions_by_mnemonic(self, mnemonic: str) -> list[RunAction]:
        """Recorded run actions of one kind, in registration order."""
        with self._lock:
            return [action for action in self.actions if action.mnemonic == mnemonic]

    def _claim_outputs(self, outputs: Sequence[File], owner: str) -> None:
        for output in outputs:
            previous = self._outputs.get(output.path)
            if previous is not None:
                raise ActionRegistrationError(f"Output {output.path} is produced by both '{previous}' and '{owner}'")
        for output in outputs:
            self._outputs[output.path] = owner
