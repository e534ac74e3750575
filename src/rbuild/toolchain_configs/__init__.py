"""Toolchain configuration loader.

This module provides access to the JSON toolchain descriptions packaged with
rbuild. Uses importlib.resources for proper package data access when
installed as a wheel.

Configs are organized by target platform:
    linux/    - Linux targets (x86_64, aarch64)
    darwin/   - macOS targets
    windows/  - Windows (MSVC) targets
    wasm/     - WebAssembly targets

Each file is named after the target triple it describes and holds the Rust
toolchain fields at the top level and the native toolchain under ``cc``.
"""

from __future__ import annotations

import json
from importlib import resources
from typing import Any

# Platform directories to search
PLATFORM_DIRS = ["linux", "darwin", "windows", "wasm"]


def load_config(name: str) -> dict[str, Any] | None:
    """Load the toolchain configuration named ``name``.

    Searches all platform subdirectories for the matching config file.

    Args:
        name: Config name, usually the target triple (e.g. 'x86_64-unknown-linux-gnu')

    Returns:
        The configuration dictionary if found, None otherwise.
    """
    config_name = f"{name}.json"
    pkg_files = resources.files(__package__)

    for platform in PLATFORM_DIRS:
        try:
            config_file = pkg_files.joinpath(platform).joinpath(config_name)
            if config_file.is_file():
                with config_file.open("r", encoding="utf-8") as f:
                    return json.load(f)
        except (FileNotFoundError, NotADirectoryError):
            continue

    return None


def list_available_configs() -> list[str]:
    """List all available toolchain config names.

    Returns:
        Sorted config names (without .json extension).
    """
    configs = []
    for names in list_configs_by_platform().values():
        configs.extend(names)
    return sorted(configs)


def list_configs_by_platform() -> dict[str, list[str]]:
    """List available configs organized by platform.

    Returns:
        Dictionary mapping platform directory names to lists of config names.
    """
    result: dict[str, list[str]] = {}
    pkg_files = resources.files(__package__)

    for platform in PLATFORM_DIRS:
        try:
            platform_dir = pkg_files.joinpath(platform)
            names = [f.name[:-5] for f in platform_dir.iterdir() if f.name.endswith(".json") and f.is_file()]
        except (FileNotFoundError, NotADirectoryError):
            continue
        if names:
            result[platform] = sorted(names)

    return result
