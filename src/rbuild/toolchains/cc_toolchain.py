"""Native (C/C++) toolchain service.

Supplies the linker rustc should call, the flags and environment for a link
action, and the C++ runtime libraries. Configured from the ``cc`` section of
a toolchain config.

Link command lines are rendered from three sources, in this order:
    1. The toolchain's base link flags
    2. Flags of every enabled feature that declares any
    3. Link variables: one rpath flag per runtime search directory, then
       the user link flags
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from ..providers.files import File

logger = logging.getLogger(__name__)

CPP_LINK_EXECUTABLE_ACTION_NAME = "c++-link-executable"
CPP_LINK_DYNAMIC_LIBRARY_ACTION_NAME = "c++-link-dynamic-library"


class CcToolchainError(ValueError):
    """Raised when the native toolchain cannot serve a request."""

    pass


@dataclass(frozen=True)
class FeatureConfiguration:
    """Set of toolchain features enabled for one target."""

    enabled_features: frozenset[str] = frozenset()

    def is_enabled(self, feature: str) -> bool:
        """Check whether ``feature`` is enabled."""
        return feature in self.enabled_features


@dataclass(frozen=True)
class LinkVariables:
    """Variables a link command line is rendered with.

    Attributes:
        is_linking_dynamic_library: Whether the output is a shared object
        runtime_library_search_directories: rpath entries, relative to the output
        user_link_flags: Flags passed by the user (e.g. ``--linkopt``)
    """

    is_linking_dynamic_library: bool = False
    runtime_library_search_directories: tuple[str, ...] = ()
    user_link_flags: tuple[str, ...] = ()


@dataclass(frozen=True)
class CcToolchain:
    """Configured native toolchain.

    Attributes:
        linker: Path of the linker driver (e.g. "/usr/bin/gcc")
        link_flags: Base flags of every link command line
        link_env: Environment variables of every link action
        rpath_origin: Token the loader expands to the binary's directory
        feature_link_flags: Extra link flags per feature name
        default_features: Features enabled unless explicitly disabled
        supported_features: Every feature the toolchain knows
        dynamic_runtime_libs: C++ runtime shared libraries
        static_runtime_libs: C++ runtime static libraries
        all_files: Files every action using the toolchain depends on
    """

    linker: str
    link_flags: tuple[str, ...] = ()
    link_env: Dict[str, str] = field(default_factory=dict)
    rpath_origin: str = "$ORIGIN"
    feature_link_flags: Dict[str, tuple[str, ...]] = field(default_factory=dict)
    default_features: frozenset[str] = frozenset()
    supported_features: frozenset[str] = frozenset()
    dynamic_runtime_libs: tuple[File, ...] = ()
    static_runtime_libs: tuple[File, ...] = ()
    all_files: tuple[File, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], toolchain_root: str = "") -> "CcToolchain":
        """
        Parse the ``cc`` section of a toolchain config.

        Args:
            data: Raw ``cc`` dictionary from JSON
            toolchain_root: Directory relative runtime library paths resolve against

        Returns:
            CcToolchain instance

        Raises:
            ValueError: If the linker is missing
        """
        try:
            linker = data["linker"]
        except KeyError as e:
            raise ValueError(f"Missing required field in cc toolchain config: {e}")

        def _files(key: str) -> tuple[File, ...]:
            files = []
            for path in data.get(key, []):
                if toolchain_root and not path.startswith("/"):
                    path = posixpath.join(toolchain_root, path)
                files.append(File(path))
            return tuple(files)

        feature_link_flags = {name: tuple(flags) for name, flags in data.get("feature_link_flags", {}).items()}
        default_features = frozenset(data.get("default_features", []))
        supported = frozenset(data.get("supported_features", [])) | default_features | frozenset(feature_link_flags)

        return cls(
            linker=linker,
            link_flags=tuple(data.get("link_flags", [])),
            link_env=dict(data.get("link_env", {})),
            rpath_origin=data.get("rpath_origin", "$ORIGIN"),
            feature_link_flags=feature_link_flags,
            default_features=default_features,
            supported_features=supported,
            dynamic_runtime_libs=_files("dynamic_runtime_libs"),
            static_runtime_libs=_files("static_runtime_libs"),
            all_files=_files("all_files"),
        )

    def configure_features(
        self,
        requested_features: Iterable[str] = (),
        unsupported_features: Iterable[str] = (),
    ) -> FeatureConfiguration:
        """Resolve the enabled feature set for a target.

        Default features plus the requested ones, minus the explicitly
        unsupported ones. Features the toolchain does not know are dropped.
        """
        disabled = frozenset(unsupported_features)
        wanted = (self.default_features | frozenset(requested_features)) - disabled
        unknown = wanted - self.supported_features
        if unknown:
            logger.debug(f"Ignoring features unknown to the toolchain: {sorted(unknown)}")
        return FeatureConfiguration(enabled_features=frozenset(wanted & self.supported_features))

    def get_tool_for_action(self, feature_configuration: FeatureConfiguration, action_name: str) -> str:
        """Tool path for a link action."""
        del feature_configuration  # Same driver for every feature set
        self._check_action(action_name)
        return self.linker

    def get_command_line(
        self,
        feature_configuration: FeatureConfiguration,
        action_name: str,
        variables: LinkVariables,
    ) -> list[str]:
        """Render the flags of a link action.

        Args:
            feature_configuration: Enabled features
            action_name: Link action name
            variables: Values to render

        Returns:
            Flattened command line, without the tool itself
        """
        self._check_action(action_name)
        flags = list(self.link_flags)
        for feature in sorted(feature_configuration.enabled_features):
            flags.extend(self.feature_link_flags.get(feature, ()))
        if action_name == CPP_LINK_DYNAMIC_LIBRARY_ACTION_NAME or variables.is_linking_dynamic_library:
            flags.append("-shared")
        for directory in variables.runtime_library_search_directories:
            flags.append(f"-Wl,-rpath,{self.rpath_origin}/{directory}")
        flags.extend(variables.user_link_flags)
        return flags

    def get_environment_variables(
        self,
        feature_configuration: FeatureConfiguration,
        action_name: str,
        variables: Optional[LinkVariables] = None,
    ) -> dict[str, str]:
        """Environment of a link action."""
        del feature_configuration, variables  # Environment does not depend on them
        self._check_action(action_name)
        return dict(self.link_env)

    def dynamic_runtime_lib(self, feature_configuration: FeatureConfiguration) -> list[File]:
        """C++ runtime libraries for linking the runtime dynamically."""
        del feature_configuration
        return list(self.dynamic_runtime_libs)

    def static_runtime_lib(self, feature_configuration: FeatureConfiguration) -> list[File]:
        """C++ runtime libraries for linking the runtime statically."""
        del feature_configuration
        return list(self.static_runtime_libs)

    @staticmethod
    def _check_action(action_name: str) -> None:
        if action_name not in (CPP_LINK_EXECUTABLE_ACTION_NAME, CPP_LINK_DYNAMIC_LIBRARY_ACTION_NAME):
            raise CcToolchainError(f"Unsupported action for the native toolchain: {action_name}")
