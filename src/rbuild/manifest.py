"""
Workspace manifests.

A workspace manifest is a JSON file describing targets the way a BUILD file
would. It lets rbuild plan compile actions without a host build system:

    {
        "toolchain": "x86_64-unknown-linux-gnu",
        "error_format": "human",
        "targets": [
            {"kind": "rust_library", "label": "//hello_lib", "srcs": ["lib.rs"]},
            {"kind": "rust_binary", "label": "//hello", "srcs": ["main.rs"],
             "deps": ["//hello_lib"], "version": "1.2.3"}
        ]
    }

Supported kinds are listed in TargetKind. Source paths are relative to the
target's package. Labels in dependency attributes may be relative (":name").

Analysis resolves targets bottom-up: every dependency is analysed before its
dependents, and each Rust target goes through rustc_compile_action().
"""

import hashlib
import json
import logging
import posixpath
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .build.actions import ActionRecorder
from .build.build_context import BuildContext, RuleAttrs
from .build.compile_action import rustc_compile_action
from .build.error_format import ErrorFormat, parse_error_format
from .build.errors import ConfigurationError
from .providers.cc_info import CcInfo, LibraryToLink, LinkerInput, LinkingContext, merge_cc_infos
from .providers.crate import LEGACY_EDITION, CrateInfo, CrateType
from .providers.default_info import DefaultInfo
from .providers.dep_info import BuildInfo
from .providers.files import File, Label
from .providers.target import Target
from .providers.unique_set import UniqueSet
from .toolchains.cc_toolchain import CcToolchain
from .toolchains.rust_toolchain import RustToolchain

logger = logging.getLogger(__name__)

DEFAULT_PROCESS_WRAPPER = File("rbuild-out/host/bin/process_wrapper")


class ManifestError(ConfigurationError):
    """Raised when a workspace manifest is malformed."""

    pass


class CyclicDependencyError(ConfigurationError):
    """Raised when the target graph contains a cycle."""

    pass


class TargetKind(Enum):
    """Target kinds a manifest may declare."""

    RUST_LIBRARY = "rust_library"
    RUST_BINARY = "rust_binary"
    RUST_TEST = "rust_test"
    RUST_PROC_MACRO = "rust_proc_macro"
    RUST_SHARED_LIBRARY = "rust_shared_library"
    RUST_STATIC_LIBRARY = "rust_static_library"
    CC_LIBRARY = "cc_library"
    CARGO_BUILD_SCRIPT = "cargo_build_script"
    FILEGROUP = "filegroup"

    @property
    def crate_type(self) -> Optional[CrateType]:
        """Crate type produced by the kind, None for non-Rust kinds."""
        return _KIND_CRATE_TYPES.get(self)

    @property
    def is_rust(self) -> bool:
        """True for kinds compiled by rustc."""
        return self in _KIND_CRATE_TYPES


_KIND_CRATE_TYPES = {
    TargetKind.RUST_LIBRARY: CrateType.RLIB,
    TargetKind.RUST_BINARY: CrateType.BIN,
    TargetKind.RUST_TEST: CrateType.BIN,
    TargetKind.RUST_PROC_MACRO: CrateType.PROC_MACRO,
    TargetKind.RUST_SHARED_LIBRARY: CrateType.CDYLIB,
    TargetKind.RUST_STATIC_LIBRARY: CrateType.STATICLIB,
}

# Conventional crate root per kind, used when "crate_root" is not given.
_DEFAULT_CRATE_ROOTS = {
    TargetKind.RUST_BINARY: "main.rs",
    TargetKind.RUST_TEST: "lib.rs",
}


@dataclass(frozen=True)
class TargetSpec:
    """
    One target of a workspace manifest.

    Attributes:
        kind: Target kind
        label: Target label
        srcs: Source files, relative to the package
        crate_root: Crate root, relative to the package (Rust kinds)
        crate_name: Crate name, defaults to the target name with '-' replaced by '_'
        edition: Rust edition
        version: Crate version
        deps: Dependencies
        proc_macro_deps: Procedural macro dependencies
        aliases: Dependency label to the name its crate is imported as
        data: Runtime data dependencies
        compile_data: Compile time data dependencies
        crate_features: Enabled cargo features
        rustc_flags: Extra rustc flags
        rustc_env: Extra rustc environment, may contain location references
        rustc_env_files: Environment files, relative to the package
        linker_script: Linker script, relative to the package
        out_binary: Force the output to be treated as a binary
        features: Native toolchain features to enable
        disabled_features: Native toolchain features to disable
        static_libraries: Static archives of a cc_library
        dynamic_libraries: Shared objects of a cc_library
        linkopts: Link flags of a cc_library
    """

    kind: TargetKind
    label: Label
    srcs: tuple[str, ...] = ()
    crate_root: Optional[str] = None
    crate_name: Optional[str] = None
    edition: str = LEGACY_EDITION
    version: Optional[str] = None
    deps: tuple[Label, ...] = ()
    proc_macro_deps: tuple[Label, ...] = ()
    aliases: Dict[Label, str] = field(default_factory=dict)
    data: tuple[Label, ...] = ()
    compile_data: tuple[Label, ...] = ()
    crate_features: tuple[str, ...] = ()
    rustc_flags: tuple[str, ...] = ()
    rustc_env: Dict[str, str] = field(default_factory=dict)
    rustc_env_files: tuple[str, ...] = ()
    linker_script: Optional[str] = None
    out_binary: bool = False
    features: tuple[str, ...] = ()
    disabled_features: tuple[str, ...] = ()
    static_libraries: tuple[str, ...] = ()
    dynamic_libraries: tuple[str, ...] = ()
    linkopts: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetSpec":
        """
        Parse one entry of the manifest's "targets" list.

        Args:
            data: Raw target dictionary from JSON

        Returns:
            TargetSpec instance

        Raises:
            ManifestError: If required fields are missing or invalid
        """
        try:
            raw_kind = data["kind"]
            raw_label = data["label"]
        except KeyError as e:
            raise ManifestError(f"Missing required field in target: {e}")

        label = _parse_label(raw_label, None)
        try:
            kind = TargetKind(raw_kind)
        except ValueError:
            allowed = [k.value for k in TargetKind]
            raise ManifestError(f"{label}: unknown target kind '{raw_kind}', expected one of {allowed}", label=label)

        def _labels(key: str) -> tuple[Label, ...]:
            return tuple(_parse_label(raw, label) for raw in data.get(key, []))

        aliases = {_parse_label(raw, label): name for raw, name in data.get("aliases", {}).items()}

        return cls(
            kind=kind,
            label=label,
            srcs=tuple(data.get("srcs", [])),
            crate_root=data.get("crate_root"),
            crate_name=data.get("crate_name"),
            edition=str(data.get("edition", LEGACY_EDITION)),
            version=data.get("version"),
            deps=_labels("deps"),
            proc_macro_deps=_labels("proc_macro_deps"),
            aliases=aliases,
            data=_labels("data"),
            compile_data=_labels("compile_data"),
            crate_features=tuple(data.get("crate_features", [])),
            rustc_flags=tuple(data.get("rustc_flags", [])),
            rustc_env={str(k): str(v) for k, v in data.get("rustc_env", {}).items()},
            rustc_env_files=tuple(data.get("rustc_env_files", [])),
            linker_script=data.get("linker_script"),
            out_binary=bool(data.get("out_binary", False)),
            features=tuple(data.get("features", [])),
            disabled_features=tuple(data.get("disabled_features", [])),
            static_libraries=tuple(data.get("static_libraries", [])),
            dynamic_libraries=tuple(data.get("dynamic_libraries", [])),
            linkopts=tuple(data.get("linkopts", [])),
        )

    @property
    def dependencies(self) -> tuple[Label, ...]:
        """Every label this target refers to."""
        return self.deps + self.proc_macro_deps + self.data + self.compile_data


@dataclass(frozen=True)
class Workspace:
    """
    A parsed workspace manifest.

    Attributes:
        targets: Targets by label, in declaration order
        toolchain: Toolchain config name, if the manifest names one
        toolchain_root: Directory toolchain paths resolve against
        error_format: rustc error format for every Rust target
    """

    targets: Dict[Label, TargetSpec]
    toolchain: Optional[str] = None
    toolchain_root: Optional[str] = None
    error_format: Optional[ErrorFormat] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        """
        Parse a workspace manifest.

        Raises:
            ManifestError: If the manifest is malformed or declares a label twice
            ErrorFormatError: If "error_format" has an unknown value
        """
        if not isinstance(data, dict) or not isinstance(data.get("targets"), list):
            raise ManifestError("Workspace manifest must be an object with a 'targets' list")

        targets: Dict[Label, TargetSpec] = {}
        for raw in data["targets"]:
            spec = TargetSpec.from_dict(raw)
            if spec.label in targets:
                raise ManifestError(f"Duplicate target label: {spec.label}", label=spec.label)
            targets[spec.label] = spec

        raw_error_format = data.get("error_format")
        return cls(
            targets=targets,
            toolchain=data.get("toolchain"),
            toolchain_root=data.get("toolchain_root"),
            error_format=parse_error_format(raw_error_format) if raw_error_format is not None else None,
        )

    def validate(self) -> None:
        """Validate the target graph.

        Checks:
        1. All label references point to declared targets
        2. No cyclic dependencies exist

        Raises:
            ManifestError: If a reference points to an unknown target.
            CyclicDependencyError: If the graph contains a cycle.
        """
        self._validate_references()
        self._detect_cycles()

    def build_order(self, roots: Optional[Sequence[Label]] = None) -> list[Label]:
        """Labels in dependency order: every target after all of its dependencies.

        Args:
            roots: Only include these targets and what they depend on.
                Defaults to every target.

        Raises:
            ManifestError: If a root or reference is unknown
            CyclicDependencyError: If the graph contains a cycle
        """
        self.validate()
        if roots is None:
            roots = list(self.targets)
        for root in roots:
            if root not in self.targets:
                raise ManifestError(f"Unknown target: {root}", label=root)

        order: list[Label] = []
        visited: set[Label] = set()

        def visit(label: Label) -> None:
            visited.add(label)
            for dep in self.targets[label].dependencies:
                if dep not in visited:
                    visit(dep)
            order.append(label)

        for root in roots:
            if root not in visited:
                visit(root)
        return order

    def _validate_references(self) -> None:
        for spec in self.targets.values():
            for dep in spec.dependencies:
                if dep not in self.targets:
                    raise ManifestError(f"Target '{spec.label}' depends on unknown target '{dep}'", label=spec.label)

    def _detect_cycles(self) -> None:
        """Detect cycles using DFS with coloring (white/gray/black)."""
        WHITE, GRAY, BLACK = 0, 1, 2
        color: dict[Label, int] = {label: WHITE for label in self.targets}

        def dfs(label: Label, path: list[Label]) -> None:
            color[label] = GRAY
            path.append(label)
            for dep in self.targets[label].dependencies:
                if color[dep] == GRAY:
                    cycle = path[path.index(dep) :] + [dep]
                    raise CyclicDependencyError(
                        f"Cyclic dependency detected: {' -> '.join(str(c) for c in cycle)}",
                        label=label,
                    )
                if color[dep] == WHITE:
                    dfs(dep, path)
            path.pop()
            color[label] = BLACK

        for label in self.targets:
            if color[label] == WHITE:
                dfs(label, [])


@dataclass
class AnalysisResult:
    """
    Outcome of analysing a workspace.

    Attributes:
        targets: Analysed targets by label, in build order
        recorder: Recorder holding every registered action
    """

    targets: Dict[Label, Target]
    recorder: ActionRecorder


def load_workspace(path: Path) -> Workspace:
    """
    Load a workspace manifest from disk.

    Args:
        path: Path of the JSON manifest

    Returns:
        Parsed Workspace

    Raises:
        ManifestError: If the file cannot be read or parsed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ManifestError(f"Cannot read workspace manifest {path}: {e}")
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON in workspace manifest {path}: {e}")
    return Workspace.from_dict(data)


def determine_output_hash(crate_root: File) -> str:
    """Short stable hash of a crate root path, used to disambiguate outputs."""
    return hashlib.sha256(crate_root.path.encode("utf-8")).hexdigest()[:8]


def output_filename(
    crate_type: CrateType,
    crate_name: str,
    target_name: str,
    output_hash: Optional[str],
    toolchain: RustToolchain,
) -> str:
    """
    File name rustc gives the output of a crate.

    Binaries are named after the target, libraries after the crate with the
    output hash as extra filename.
    """
    if crate_type is CrateType.BIN:
        return target_name + toolchain.binary_ext
    if crate_type.is_rust_library:
        extension = ".rlib"
    elif crate_type is CrateType.STATICLIB:
        extension = toolchain.staticlib_ext
    else:
        extension = toolchain.dylib_ext
    suffix = f"-{output_hash}" if output_hash else ""
    return f"lib{crate_name}{suffix}{extension}"


def analyze(
    workspace: Workspace,
    toolchain: RustToolchain,
    cc_toolchain: CcToolchain,
    compilation_mode: str = "fastbuild",
    roots: Optional[Sequence[Label]] = None,
    recorder: Optional[ActionRecorder] = None,
    process_wrapper: File = DEFAULT_PROCESS_WRAPPER,
    user_link_flags: Sequence[str] = (),
) -> AnalysisResult:
    """
    Analyse the targets of a workspace bottom-up.

    Args:
        workspace: Parsed workspace
        toolchain: Rust toolchain for every target
        cc_toolchain: Native toolchain for every target
        compilation_mode: Active compilation mode
        roots: Targets to analyse (with their dependencies); all by default
        recorder: Recorder to register actions with; a new one by default
        process_wrapper: Executable wrapping every rustc invocation
        user_link_flags: Extra link flags for every link

    Returns:
        AnalysisResult

    Raises:
        ConfigurationError: On the first target that cannot be configured
    """
    recorder = recorder if recorder is not None else ActionRecorder()
    analyzer = _Analyzer(
        workspace=workspace,
        toolchain=toolchain,
        cc_toolchain=cc_toolchain,
        compilation_mode=compilation_mode,
        recorder=recorder,
        process_wrapper=process_wrapper,
        user_link_flags=tuple(user_link_flags),
    )

    targets: Dict[Label, Target] = {}
    for label in workspace.build_order(roots):
        targets[label] = analyzer.analyze_target(workspace.targets[label], targets)
    logger.info(f"Analysed {len(targets)} targets, registered {len(recorder.actions)} actions")
    return AnalysisResult(targets=targets, recorder=recorder)


@dataclass(frozen=True)
class _Analyzer:
    workspace: Workspace
    toolchain: RustToolchain
    cc_toolchain: CcToolchain
    compilation_mode: str
    recorder: ActionRecorder
    process_wrapper: File
    user_link_flags: tuple[str, ...]

    def analyze_target(self, spec: TargetSpec, analysed: Dict[Label, Target]) -> Target:
        logger.debug(f"Analysing {spec.kind.value} {spec.label}")
        if spec.kind.is_rust:
            return self._analyze_rust(spec, analysed)
        if spec.kind is TargetKind.CC_LIBRARY:
            return self._analyze_cc_library(spec, analysed)
        if spec.kind is TargetKind.CARGO_BUILD_SCRIPT:
            return self._analyze_build_script(spec)
        return Target(label=spec.label, default_info=DefaultInfo(files=UniqueSet(self._sources(spec, spec.srcs))))

    def _analyze_rust(self, spec: TargetSpec, analysed: Dict[Label, Target]) -> Target:
        crate_type = spec.kind.crate_type
        assert crate_type is not None
        label = spec.label
        crate_name = spec.crate_name or label.name.replace("-", "_")
        root = _source_file(label, self._crate_root(spec))
        output_hash = None if crate_type is CrateType.BIN else determine_output_hash(root)
        filename = output_filename(crate_type, crate_name, label.name, output_hash, self.toolchain)
        output = self.recorder.declare_file(posixpath.join(label.workspace_root, label.package, filename))

        crate_info = CrateInfo(
            name=crate_name,
            type=crate_type,
            root=root,
            srcs=tuple(self._sources(spec, spec.srcs)),
            output=output,
            edition=spec.edition,
            is_test=spec.kind is TargetKind.RUST_TEST,
            deps=tuple(analysed[dep] for dep in spec.deps),
            proc_macro_deps=tuple(analysed[dep] for dep in spec.proc_macro_deps),
            aliases=dict(spec.aliases),
            rustc_env=dict(spec.rustc_env),
        )
        ctx = BuildContext(
            label=label,
            attrs=RuleAttrs(
                version=spec.version,
                data=tuple(analysed[dep] for dep in spec.data),
                compile_data=tuple(analysed[dep] for dep in spec.compile_data),
                crate_features=spec.crate_features,
                rustc_flags=spec.rustc_flags,
                rustc_env_files=tuple(self._sources(spec, spec.rustc_env_files)),
                linker_script=_source_file(label, spec.linker_script) if spec.linker_script else None,
                out_binary=spec.out_binary,
                error_format=self.workspace.error_format,
                features=spec.features,
                disabled_features=spec.disabled_features,
            ),
            actions=self.recorder,
            cc_toolchain=self.cc_toolchain,
            process_wrapper=self.process_wrapper,
            compilation_mode=self.compilation_mode,
            user_link_flags=self.user_link_flags,
        )

        rust_flags = ("--test",) if crate_info.is_test else ()
        result = rustc_compile_action(ctx, self.toolchain, crate_type, crate_info, output_hash, rust_flags)
        return Target(
            label=label,
            crate_info=result.crate_info,
            dep_info=result.dep_info,
            cc_info=result.cc_info,
            default_info=result.default_info,
        )

    def _analyze_cc_library(self, spec: TargetSpec, analysed: Dict[Label, Target]) -> Target:
        libraries = [LibraryToLink(static_library=f) for f in self._sources(spec, spec.static_libraries)]
        libraries.extend(LibraryToLink(dynamic_library=f) for f in self._sources(spec, spec.dynamic_libraries))
        linker_input = LinkerInput(owner=spec.label, libraries=tuple(libraries), user_link_flags=spec.linkopts)

        cc_infos = [analysed[dep].cc_info for dep in spec.deps if analysed[dep].cc_info is not None]
        cc_infos.append(CcInfo(linking_context=LinkingContext(linker_inputs=UniqueSet([linker_input]))))

        files = [lib.preferred_artifact() for lib in libraries]
        return Target(
            label=spec.label,
            cc_info=merge_cc_infos(cc_infos),
            default_info=DefaultInfo(files=UniqueSet(f for f in files if f is not None)),
        )

    def _analyze_build_script(self, spec: TargetSpec) -> Target:
        # The script itself runs outside rbuild, only its outputs are declared.
        label = spec.label
        prefix = posixpath.join(label.workspace_root, label.package, label.name)
        build_info = BuildInfo(
            out_dir=self.recorder.declare_file(prefix + ".out_dir"),
            flags=self.recorder.declare_file(prefix + ".flags"),
            link_flags=self.recorder.declare_file(prefix + ".linkflags"),
            rustc_env=self.recorder.declare_file(prefix + ".env"),
            dep_env=self.recorder.declare_file(prefix + ".depenv"),
        )
        return Target(
            label=label,
            build_info=build_info,
            default_info=DefaultInfo(files=UniqueSet([build_info.out_dir])),
        )

    def _crate_root(self, spec: TargetSpec) -> str:
        if spec.crate_root:
            return spec.crate_root
        expected = _DEFAULT_CRATE_ROOTS.get(spec.kind, "lib.rs")
        for src in spec.srcs:
            if posixpath.basename(src) == expected:
                return src
        if len(spec.srcs) == 1:
            return spec.srcs[0]
        raise ManifestError(
            f"{spec.label}: cannot infer the crate root, set 'crate_root' or add a {expected} to srcs",
            label=spec.label,
        )

    @staticmethod
    def _sources(spec: TargetSpec, paths: Sequence[str]) -> list[File]:
        return [_source_file(spec.label, path) for path in paths]


def _source_file(label: Label, path: str) -> File:
    if path.startswith("/"):
        return File(path)
    return File(posixpath.join(label.workspace_root, label.package, path))


def _parse_label(raw: Any, current: Optional[Label]) -> Label:
    if not isinstance(raw, str):
        raise ManifestError(f"Invalid label {raw!r}: expected a string", label=current)
    try:
        parsed = Label.parse(raw)
    except ValueError as e:
        raise ManifestError(str(e), label=current)
    if raw.strip().startswith(":"):
        if current is None:
            raise ManifestError(f"Relative label {raw!r} cannot be used as a target label")
        return Label(name=parsed.name, package=current.package, workspace_name=current.workspace_name)
    return parsed
