"""Base exception for invalid target configuration."""

from typing import Optional

from ..providers.files import Label


class ConfigurationError(Exception):
    """Raised when a target cannot be configured.

    Every subclass is fatal for the target: no action is registered once one
    of these is raised.

    Attributes:
        label: Label of the target being configured, if known
    """

    def __init__(self, message: str, label: Optional[Label] = None):
        super().__init__(message)
        self.label = label
