"""Rust and native toolchain descriptors."""

from typing import Optional

from ..toolchain_configs import load_config
from .cc_toolchain import (
    CPP_LINK_DYNAMIC_LIBRARY_ACTION_NAME,
    CPP_LINK_EXECUTABLE_ACTION_NAME,
    CcToolchain,
    CcToolchainError,
    FeatureConfiguration,
    LinkVariables,
)
from .rust_toolchain import RustToolchain


class ToolchainNotFoundError(LookupError):
    """Raised when no packaged config exists for a toolchain name."""

    pass


def load_toolchains(name: str, toolchain_root: Optional[str] = None) -> tuple[RustToolchain, CcToolchain]:
    """Load the Rust and native toolchains of a packaged config.

    Args:
        name: Config name, usually the target triple
        toolchain_root: Directory the config's paths resolve against.
            Defaults to the config's own ``toolchain_root`` entry.

    Returns:
        (RustToolchain, CcToolchain) tuple

    Raises:
        ToolchainNotFoundError: If no config exists for ``name``
    """
    config = load_config(name)
    if config is None:
        raise ToolchainNotFoundError(f"No toolchain configuration found for {name}")

    root = toolchain_root if toolchain_root is not None else config.get("toolchain_root", "")
    return RustToolchain.from_dict(config, root), CcToolchain.from_dict(config.get("cc", {"linker": "cc"}), root)


__all__ = [
    "CPP_LINK_DYNAMIC_LIBRARY_ACTION_NAME",
    "CPP_LINK_EXECUTABLE_ACTION_NAME",
    "CcToolchain",
    "CcToolchainError",
    "FeatureConfiguration",
    "LinkVariables",
    "RustToolchain",
    "ToolchainNotFoundError",
    "load_toolchains",
]
