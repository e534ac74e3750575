"""File handles and target labels.

These are pure value types: nothing here touches the filesystem. A File is
only a reference to a path that the host build system will materialize.
"""

import posixpath
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class File:
    """Reference to an input or output artifact.

    Attributes:
        path: Execution-root relative path (e.g. "rbuild-out/bin/foo/libfoo.rlib")
        root_relative: Path relative to the output root, used for runfiles.
            Defaults to ``path`` for source files.
    """

    path: str
    root_relative: Optional[str] = None

    @property
    def dirname(self) -> str:
        """Directory containing the file."""
        return posixpath.dirname(self.path)

    @property
    def basename(self) -> str:
        """Final path component."""
        return posixpath.basename(self.path)

    @property
    def short_path(self) -> str:
        """Runfiles-relative path of the file."""
        return self.root_relative if self.root_relative is not None else self.path

    def sibling(self, name: str) -> "File":
        """Return a file named ``name`` in the same directory."""
        short_dir = posixpath.dirname(self.short_path)
        return File(
            path=posixpath.join(self.dirname, name),
            root_relative=posixpath.join(short_dir, name) if short_dir else name,
        )

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class Label:
    """A target label such as ``@repo//pkg/sub:name``.

    Attributes:
        name: Target name
        package: Package path inside the workspace ("" for the root package)
        workspace_name: External repository name ("" for the main repository)
    """

    name: str
    package: str = ""
    workspace_name: str = ""

    @classmethod
    def parse(cls, raw: str) -> "Label":
        """Parse a label string.

        Accepts ``//pkg:name``, ``//pkg`` (name defaults to the last package
        component), ``@repo//pkg:name`` and ``:name``.

        Raises:
            ValueError: If the string is not a label.
        """
        text = raw.strip()
        workspace_name = ""
        if text.startswith("@"):
            if "//" not in text:
                raise ValueError(f"Invalid label (missing '//'): {raw!r}")
            workspace_name, text = text[1:].split("//", 1)
            text = "//" + text

        if text.startswith("//"):
            body = text[2:]
        elif text.startswith(":"):
            body = text
        else:
            raise ValueError(f"Invalid label (must start with '//', '@' or ':'): {raw!r}")

        if ":" in body:
            package, name = body.split(":", 1)
        else:
            package = body
            name = posixpath.basename(body)

        if not name:
            raise ValueError(f"Invalid label (empty target name): {raw!r}")

        return cls(name=name, package=package.strip("/"), workspace_name=workspace_name)

    @property
    def workspace_root(self) -> str:
        """Execution-root relative directory of the label's repository."""
        return f"external/{self.workspace_name}" if self.workspace_name else ""

    def __str__(self) -> str:
        prefix = f"@{self.workspace_name}" if self.workspace_name else ""
        return f"{prefix}//{self.package}:{self.name}"
