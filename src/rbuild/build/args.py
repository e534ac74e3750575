"""Command line container for action arguments.

Args accumulates a command line in insertion order. Its helpers cover the
few shapes rustc invocations need: a flag before every value, a format
template per value, deduplicated mapped values, and a single joined value.
"""

from typing import Any, Callable, Iterable, Optional


class Args:
    """Ordered command line builder.

    Example:
        >>> args = Args()
        >>> args.add("--crate-name=foo")
        >>> args.add_all(["a", "b"], before_each="-L")
        >>> args.add_all(["x", "x"], format_each="-Lnative=%s", uniquify=True)
        >>> args.to_list()
        ['--crate-name=foo', '-L', 'a', '-L', 'b', '-Lnative=x']
    """

    def __init__(self) -> None:
        self._args: list[str] = []

    def add(self, value: Any, format: Optional[str] = None) -> None:
        """Append one value, optionally through a ``%s`` format template."""
        text = str(value)
        self._args.append(format % text if format else text)

    def add_pair(self, flag: str, value: Any) -> None:
        """Append a flag followed by its value as two arguments."""
        self._args.append(flag)
        self._args.append(str(value))

    def add_all(
        self,
        values: Iterable[Any],
        map_each: Optional[Callable[[Any], Any]] = None,
        format_each: Optional[str] = None,
        before_each: Optional[str] = None,
        uniquify: bool = False,
    ) -> None:
        """Append every value of ``values``.

        Args:
            values: Values to append
            map_each: Applied to each value first; may return a string, a
                list of strings, or None to skip the value
            format_each: ``%s`` template applied to each mapped value
            before_each: Argument inserted before each value
            uniquify: Drop values (after mapping) that were already appended
                by this call
        """
        seen: set[str] = set()
        for value in values:
            mapped = map_each(value) if map_each is not None else value
            if mapped is None:
                continue
            items = mapped if isinstance(mapped, (list, tuple)) else [mapped]
            for item in items:
                text = str(item)
                if uniquify:
                    if text in seen:
                        continue
                    seen.add(text)
                if before_each is not None:
                    self._args.append(before_each)
                self._args.append(format_each % text if format_each else text)

    def add_joined(
        self,
        flag: Optional[str],
        values: Iterable[Any],
        join_with: str,
        format_joined: Optional[str] = None,
    ) -> None:
        """Append ``values`` joined into a single argument, after ``flag``.

        Nothing is appended, not even ``flag``, when ``values`` is empty.
        """
        items = [str(v) for v in values]
        if not items:
            return
        joined = join_with.join(items)
        if flag is not None:
            self._args.append(flag)
        self._args.append(format_joined % joined if format_joined else joined)

    def to_list(self) -> list[str]:
        """The command line as a list of strings."""
        return list(self._args)

    def __iter__(self):
        return iter(list(self._args))

    def __len__(self) -> int:
        return len(self._args)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Args):
            return self._args == other._args
        return NotImplemented

    def __repr__(self) -> str:
        return f"Args({self._args!r})"
