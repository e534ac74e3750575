"""Pytest configuration and fixtures for rbuild tests.

Provides a Linux toolchain pair, an in-memory action recorder and factories
for the targets dependency graphs are built from:

    make_ctx          BuildContext for a label
    make_crate        CrateInfo with sensible defaults
    rust_library      analysed Rust crate target (CrateInfo + DepInfo)
    cc_library        native library target (CcInfo)
    build_script      build script target (BuildInfo)

The stdio hooks work around pytest capture issues on Python 3.13:
https://github.com/pytest-dev/pytest/issues/11439
"""

import sys
import warnings
from typing import Optional, Sequence

import pytest

from rbuild.build.actions import ActionRecorder
from rbuild.build.build_context import BuildContext, RuleAttrs
from rbuild.build.dependency_collector import collect_deps
from rbuild.providers import (
    BuildInfo,
    CcInfo,
    CrateInfo,
    CrateType,
    DefaultInfo,
    File,
    Label,
    LibraryToLink,
    LinkerInput,
    LinkingContext,
    Target,
    UniqueSet,
)
from rbuild.toolchains import CcToolchain, RustToolchain

# Suppress ResourceWarnings from file cleanup in Python 3.13
if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are always restored after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture
def linux_toolchain() -> RustToolchain:
    """x86_64 Linux Rust toolchain."""
    return RustToolchain(
        target_triple="x86_64-unknown-linux-gnu",
        target_arch="x86_64",
        os="linux",
        rustc=File("external/rust/bin/rustc"),
        rust_lib=(
            File("external/rust/lib/rustlib/x86_64-unknown-linux-gnu/lib/libstd.rlib"),
            File("external/rust/lib/rustlib/x86_64-unknown-linux-gnu/lib/libcore.rlib"),
        ),
        rustc_lib=(File("external/rust/lib/librustc_driver.so"),),
        stdlib_linkflags=("-lpthread", "-ldl"),
    )


@pytest.fixture
def darwin_toolchain(linux_toolchain) -> RustToolchain:
    """x86_64 macOS Rust toolchain."""
    return RustToolchain(
        target_triple="x86_64-apple-darwin",
        target_arch="x86_64",
        os="darwin",
        rustc=linux_toolchain.rustc,
        rust_lib=linux_toolchain.rust_lib,
        dylib_ext=".dylib",
    )


@pytest.fixture
def wasm_toolchain(linux_toolchain) -> RustToolchain:
    """wasm32 Rust toolchain, linked by rustc itself."""
    return RustToolchain(
        target_triple="wasm32-unknown-unknown",
        target_arch="wasm32",
        os="unknown",
        rustc=linux_toolchain.rustc,
        dylib_ext=".wasm",
        binary_ext=".wasm",
    )


@pytest.fixture
def cc_toolchain() -> CcToolchain:
    """gcc based native toolchain."""
    return CcToolchain(
        linker="/usr/bin/gcc",
        link_flags=("-fuse-ld=gold", "-lstdc++"),
        link_env={"PATH": "/bin:/usr/bin"},
        all_files=(File("external/cc/bin/ld.gold"),),
    )


@pytest.fixture
def recorder() -> ActionRecorder:
    """In-memory action registrar."""
    return ActionRecorder()


@pytest.fixture
def make_ctx(recorder, cc_toolchain):
    """Factory for BuildContext values."""

    def _make_ctx(label: str = "//app:app", compilation_mode: str = "fastbuild", **attrs) -> BuildContext:
        return BuildContext(
            label=Label.parse(label),
            attrs=RuleAttrs(**attrs),
            actions=recorder,
            cc_toolchain=cc_toolchain,
            process_wrapper=File("rbuild-out/host/bin/process_wrapper"),
            compilation_mode=compilation_mode,
        )

    return _make_ctx


@pytest.fixture
def make_crate():
    """Factory for CrateInfo values; outputs land in rbuild-out/bin/<name>/."""

    def _make_crate(name: str = "app", type: CrateType = CrateType.BIN, **overrides) -> CrateInfo:
        extension = {CrateType.STATICLIB: ".a", CrateType.RLIB: ".rlib", CrateType.LIB: ".rlib"}.get(type, ".so")
        output_name = name if type is CrateType.BIN else f"lib{name}{extension}"
        fields = dict(
            name=name,
            type=type,
            root=File(f"{name}/src/lib.rs" if type is not CrateType.BIN else f"{name}/src/main.rs"),
            srcs=(File(f"{name}/src/lib.rs"),),
            output=File(f"rbuild-out/bin/{name}/{output_name}", root_relative=f"{name}/{output_name}"),
            edition="2018",
        )
        fields.update(overrides)
        return CrateInfo(**fields)

    return _make_crate


@pytest.fixture
def rust_library(make_crate, linux_toolchain):
    """Factory for analysed Rust crate targets."""

    def _rust_library(
        name: str,
        type: CrateType = CrateType.RLIB,
        deps: Sequence[Target] = (),
        proc_macro_deps: Sequence[Target] = (),
        output: Optional[File] = None,
    ) -> Target:
        overrides = {"deps": tuple(deps), "proc_macro_deps": tuple(proc_macro_deps)}
        if output is not None:
            overrides["output"] = output
        crate = make_crate(name, type, **overrides)
        label = Label(name=name, package=name)
        dep_info, _ = collect_deps(label, crate.deps, crate.proc_macro_deps, {}, linux_toolchain)
        return Target(
            label=label,
            crate_info=crate,
            dep_info=dep_info,
            default_info=DefaultInfo(files=UniqueSet([crate.output])),
        )

    return _rust_library


@pytest.fixture
def cc_library():
    """Factory for native library targets."""

    def _cc_library(name: str, static: Sequence[str] = (), dynamic: Sequence[str] = ()) -> Target:
        libraries = [LibraryToLink(static_library=File(path)) for path in static]
        libraries += [LibraryToLink(dynamic_library=File(path)) for path in dynamic]
        label = Label(name=name, package="native")
        linker_input = LinkerInput(owner=label, libraries=tuple(libraries))
        return Target(label=label, cc_info=CcInfo(linking_context=LinkingContext(UniqueSet([linker_input]))))

    return _cc_library


@pytest.fixture
def build_script():
    """Factory for build script targets."""

    def _build_script(name: str = "build_script") -> Target:
        prefix = f"rbuild-out/bin/app/{name}"
        return Target(
            label=Label(name=name, package="app"),
            build_info=BuildInfo(
                out_dir=File(prefix + ".out_dir"),
                flags=File(prefix + ".flags"),
                link_flags=File(prefix + ".linkflags"),
                rustc_env=File(prefix + ".env"),
                dep_env=File(prefix + ".depenv"),
            ),
        )

    return _build_script
