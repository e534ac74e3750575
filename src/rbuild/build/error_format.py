"""rustc ``--error-format`` setting."""

from enum import Enum
from typing import Optional

from ..providers.files import Label
from .errors import ConfigurationError


class ErrorFormat(Enum):
    """Values accepted by ``rustc --error-format``."""

    HUMAN = "human"
    JSON = "json"
    SHORT = "short"

    def __str__(self) -> str:
        return self.value


class ErrorFormatError(ConfigurationError):
    """Raised when the error format setting has an unknown value."""

    pass


def parse_error_format(raw: str, label: Optional[Label] = None) -> ErrorFormat:
    """Validate an error format setting.

    Args:
        raw: Setting value
        label: Label of the setting, for error reporting

    Returns:
        Parsed ErrorFormat

    Raises:
        ErrorFormatError: If ``raw`` is not a known format
    """
    try:
        return ErrorFormat(raw)
    except ValueError:
        allowed = [f.value for f in ErrorFormat]
        raise ErrorFormatError(f"{label or 'error_format'} expected a value in `{allowed}` but got `{raw}`", label=label)
