"""Location references in user-supplied environment values.

Values may refer to files of declared data targets with make-style
references, which are replaced by the files' paths:

    $(location //pkg:target)    execution path of the single file of a target
    $(execpath //pkg:target)    same as location
    $(rootpath //pkg:target)    runfiles path of the single file
    $(locations //pkg:target)   space separated paths of all files
    $(execpaths //pkg:target)   same as locations
    $(rootpaths //pkg:target)   space separated runfiles paths
"""

import re
from typing import Mapping, Optional, Protocol, Sequence

from ..providers.files import File, Label
from ..providers.target import Target
from .errors import ConfigurationError

_LOCATION_PATTERN = re.compile(r"\$\((location|locations|execpath|execpaths|rootpath|rootpaths)\s+([^)\s]+)\s*\)")


class LocationExpansionError(ConfigurationError):
    """Raised when a location reference cannot be resolved."""

    pass


class LocationExpander(Protocol):
    """Callable that resolves location references in environment values."""

    def __call__(
        self,
        env: Mapping[str, str],
        targets: Sequence[Target],
        label: Optional[Label] = None,
    ) -> dict[str, str]: ...


def expand_locations(
    env: Mapping[str, str],
    targets: Sequence[Target],
    label: Optional[Label] = None,
) -> dict[str, str]:
    """Resolve location references in every value of ``env``.

    Args:
        env: Raw environment values
        targets: Targets references may point at
        label: Label of the target being configured; relative references
            (``:name``) resolve against its package

    Returns:
        Environment with every reference replaced

    Raises:
        LocationExpansionError: If a reference names an unknown target, or a
            singular reference names a target with more than one file
    """
    by_label = {target.label: target for target in targets}
    return {key: _expand_value(value, by_label, label) for key, value in env.items()}


def _expand_value(value: str, by_label: Mapping[Label, Target], label: Optional[Label]) -> str:
    def _replace(match: "re.Match[str]") -> str:
        function, raw_label = match.group(1), match.group(2)
        referenced = _resolve_label(raw_label, label)
        target = by_label.get(referenced)
        if target is None:
            raise LocationExpansionError(
                f"{label}: label {raw_label} in $({function}) is not a declared data or compile_data dependency",
                label=label,
            )

        files = target.files
        if not function.endswith("s") and len(files) != 1:
            raise LocationExpansionError(
                f"{label}: $({function} {raw_label}) expects exactly one file, got {len(files)}; use $({function}s ...)",
                label=label,
            )
        return " ".join(_path_of(function, f) for f in files)

    return _LOCATION_PATTERN.sub(_replace, value)


def _resolve_label(raw: str, current: Optional[Label]) -> Label:
    try:
        parsed = Label.parse(raw)
    except ValueError as e:
        raise LocationExpansionError(str(e), label=current)
    if raw.startswith(":") and current is not None:
        return Label(name=parsed.name, package=current.package, workspace_name=current.workspace_name)
    return parsed


def _path_of(function: str, f: File) -> str:
    if function.startswith("rootpath"):
        return f.short_path
    return f.path
