"""Tests for rustc command line and environment construction."""

import pytest

from rbuild.build.arguments import (
    VersionFormatError,
    construct_arguments,
    get_rustc_env,
    parse_version,
)
from rbuild.build.build_profiles import CompilationModeError
from rbuild.build.dependency_collector import collect_deps
from rbuild.build.error_format import ErrorFormat
from rbuild.providers import CrateType, DefaultInfo, File, Label, Target, UniqueSet
from rbuild.toolchains import FeatureConfiguration


@pytest.fixture
def construct(linux_toolchain, cc_toolchain):
    """Run construct_arguments with defaults for everything not under test."""

    def _construct(ctx, crate, toolchain=None, **overrides):
        toolchain = toolchain or linux_toolchain
        dep_info, _ = collect_deps(ctx.label, crate.deps, crate.proc_macro_deps, crate.aliases, toolchain)
        kwargs = dict(
            output_hash=None,
            rust_flags=(),
            out_dir=None,
            build_env_files=(),
            build_flags_files=(),
        )
        kwargs.update(overrides)
        return construct_arguments(
            ctx,
            toolchain,
            toolchain.rustc.path,
            cc_toolchain,
            FeatureConfiguration(),
            crate.type,
            crate,
            dep_info,
            **kwargs,
        )

    return _construct


class TestParseVersion:
    """Version decomposition."""

    def test_release(self):
        """A release version has an empty pre-release part."""
        assert parse_version("0.10.1") == ("0", "10", "1", "")

    def test_pre_release(self):
        """Everything after the first '-' of the patch is the pre-release."""
        assert parse_version("1.2.3-beta.1-x") == ("1", "2", "3", "beta.1-x")

    def test_too_few_parts(self):
        """Versions need three dot separated parts."""
        with pytest.raises(VersionFormatError, match="MAJOR.MINOR.PATCH"):
            parse_version("1.2", Label(name="app"))


class TestRustcEnv:
    """Base environment."""

    def test_cargo_variables(self, linux_toolchain):
        """Cargo package variables come from the label and the version."""
        env = get_rustc_env(Label(name="hello", package="app"), "1.2.3-beta", linux_toolchain)
        assert env["CARGO_PKG_NAME"] == "hello"
        assert env["CARGO_PKG_VERSION"] == "1.2.3-beta"
        assert (env["CARGO_PKG_VERSION_MAJOR"], env["CARGO_PKG_VERSION_MINOR"], env["CARGO_PKG_VERSION_PATCH"]) == (
            "1",
            "2",
            "3",
        )
        assert env["CARGO_PKG_VERSION_PRE"] == "beta"
        assert env["CARGO_CFG_TARGET_ARCH"] == "x86_64"
        assert env["CARGO_CFG_TARGET_OS"] == "linux"
        assert env["CARGO_PKG_AUTHORS"] == env["CARGO_PKG_DESCRIPTION"] == env["CARGO_PKG_HOMEPAGE"] == ""

    def test_default_version(self, linux_toolchain):
        """A missing version is 0.0.0."""
        env = get_rustc_env(Label(name="hello"), None, linux_toolchain)
        assert env["CARGO_PKG_VERSION"] == "0.0.0"
        assert env["CARGO_PKG_VERSION_PRE"] == ""


class TestWrapperArguments:
    """Process wrapper arguments come before '--'."""

    def test_prefix_order(self, make_ctx, make_crate, construct, linux_toolchain):
        """env files, arg files, subst, then the separator and rustc."""
        args, _ = construct(
            make_ctx(),
            make_crate(),
            build_env_files=(File("app/extra.env"), File("rbuild-out/bin/app/build.env")),
            build_flags_files=(File("rbuild-out/bin/app/build.flags"), File("rbuild-out/bin/app/build.linkflags")),
        )
        argv = args.to_list()
        separator = argv.index("--")
        assert argv[:separator] == [
            "--env-file",
            "app/extra.env",
            "--env-file",
            "rbuild-out/bin/app/build.env",
            "--arg-file",
            "rbuild-out/bin/app/build.flags",
            "--arg-file",
            "rbuild-out/bin/app/build.linkflags",
            "--subst",
            "pwd=${pwd}",
        ]
        assert argv[separator + 1] == linux_toolchain.rustc.path

    def test_copy_output_for_renamed_binary(self, make_ctx, make_crate, construct):
        """A binary whose target name differs from its crate name is copied."""
        crate = make_crate("my_tool", output=File("rbuild-out/bin/tools/my-tool"))
        args, _ = construct(make_ctx("//tools:my-tool"), crate)
        argv = args.to_list()
        index = argv.index("--copy-output")
        assert argv[index + 1 : index + 3] == ["rbuild-out/bin/tools/my_tool", "rbuild-out/bin/tools/my-tool"]

    def test_no_copy_output_when_names_match(self, make_ctx, make_crate, construct):
        """No copy is needed when rustc's name is the output name."""
        args, _ = construct(make_ctx(), make_crate())
        assert "--copy-output" not in args.to_list()

    def test_touch_file(self, make_ctx, make_crate, construct):
        """A marker path is passed to the wrapper."""
        args, _ = construct(make_ctx(), make_crate(), maker_path=File("rbuild-out/bin/app/app.clippy.ok"))
        argv = args.to_list()
        assert argv[argv.index("--touch-file") + 1] == "rbuild-out/bin/app/app.clippy.ok"
        assert argv.index("--touch-file") < argv.index("--")


class TestCoreFlags:
    """rustc flags in their fixed order."""

    def test_core_flag_order(self, make_ctx, make_crate, construct):
        """Every core flag appears, in order."""
        ctx = make_ctx(
            error_format=ErrorFormat.JSON,
            crate_features=("std", "serde"),
            linker_script=File("app/link.ld"),
            rustc_flags=("-Dwarnings",),
        )
        args, _ = construct(ctx, make_crate(), output_hash="1a2b3c4d", rust_flags=("--test",))
        argv = args.to_list()
        core = argv[argv.index("--") + 2 : argv.index("--edition=2018") + 1]
        assert core == [
            "app/src/main.rs",
            "--crate-name=app",
            "--crate-type=bin",
            "--error-format=json",
            "--codegen=metadata=-1a2b3c4d",
            "--out-dir=rbuild-out/bin/app",
            "--codegen=extra-filename=-1a2b3c4d",
            "--codegen=opt-level=0",
            "--codegen=debuginfo=0",
            "--remap-path-prefix=${pwd}=.",
            "--emit=dep-info,link",
            "--color=always",
            "--target=x86_64-unknown-linux-gnu",
            "--cfg",
            'feature="std"',
            "--cfg",
            'feature="serde"',
            "--codegen=link-arg=-Tapp/link.ld",
            "-L",
            "external/rust/lib/rustlib/x86_64-unknown-linux-gnu/lib",
            "--test",
            "-Dwarnings",
            "--edition=2018",
        ]

    def test_no_hash(self, make_ctx, make_crate, construct):
        """Without a hash metadata and extra-filename are empty."""
        args, _ = construct(make_ctx(), make_crate())
        argv = args.to_list()
        assert "--codegen=metadata=" in argv
        assert "--codegen=extra-filename=" in argv

    def test_legacy_edition_omitted(self, make_ctx, make_crate, construct):
        """The 2015 edition is rustc's default and is not passed."""
        args, _ = construct(make_ctx(), make_crate(edition="2015"))
        assert not [a for a in args.to_list() if a.startswith("--edition")]

    def test_opt_mode(self, make_ctx, make_crate, construct):
        """The compilation mode selects optimization and debug info levels."""
        args, _ = construct(make_ctx(compilation_mode="opt"), make_crate())
        assert "--codegen=opt-level=3" in args.to_list()

    def test_unknown_compilation_mode(self, make_ctx, make_crate, construct, recorder):
        """A mode missing from the toolchain table is a configuration error."""
        with pytest.raises(CompilationModeError, match="Unrecognized compilation mode profile"):
            construct(make_ctx(compilation_mode="profile"), make_crate())
        assert recorder.actions == []


class TestLinking:
    """Linker selection and link stage flags."""

    def test_linker_flags(self, make_ctx, make_crate, construct):
        """The native toolchain's linker and flags are passed to rustc."""
        args, env = construct(make_ctx(), make_crate())
        argv = args.to_list()
        assert "--codegen=linker=/usr/bin/gcc" in argv
        index = argv.index("--codegen=linker=/usr/bin/gcc")
        assert argv[index + 1 : index + 3] == ["--codegen", "link-args=-fuse-ld=gold -lstdc++"]
        assert env["PATH"] == "/bin:/usr/bin"

    def test_rpaths_in_link_args(self, make_ctx, make_crate, construct, cc_library):
        """Shared library directories become rpaths relative to the output."""
        native = cc_library("ssl", dynamic=["rbuild-out/bin/native/libssl.so"])
        args, _ = construct(make_ctx(), make_crate(deps=(native,)))
        link_args = [a for a in args.to_list() if a.startswith("link-args=")]
        assert link_args == ["link-args=-fuse-ld=gold -lstdc++ -Wl,-rpath,$ORIGIN/../native"]

    def test_wasm_uses_builtin_linker(self, make_ctx, make_crate, construct, wasm_toolchain):
        """wasm32 targets are linked by rustc, native link flags still apply."""
        args, _ = construct(make_ctx(), make_crate(), toolchain=wasm_toolchain)
        argv = args.to_list()
        assert not [a for a in argv if a.startswith("--codegen=linker=")]
        assert "link-args" not in " ".join(argv)

    def test_no_link_flags_without_link_emit(self, make_ctx, make_crate, construct, cc_library, rust_library):
        """Only crate link flags are added when not linking."""
        native = cc_library("z", static=["native/libz.a"])
        lib = rust_library("greeter")
        args, _ = construct(make_ctx(), make_crate(deps=(native, lib)), emit=("metadata",))
        argv = args.to_list()
        assert "--emit=metadata" in argv
        assert not [a for a in argv if a.startswith(("-Lnative", "-lstatic", "--codegen=linker"))]
        assert "--extern" in argv


class TestCrateFlagsAndEnvironment:
    """Flags and variables added after the link stage."""

    def test_proc_macro_extern(self, make_ctx, make_crate, construct):
        """proc-macro crates past 2015 get an explicit proc_macro extern."""
        args, _ = construct(make_ctx(), make_crate("derive", CrateType.PROC_MACRO))
        argv = args.to_list()
        assert argv[-2:] == ["--extern", "proc_macro"]

    def test_proc_macro_extern_not_for_2015(self, make_ctx, make_crate, construct):
        """The 2015 edition imports proc_macro implicitly."""
        args, _ = construct(make_ctx(), make_crate("derive", CrateType.PROC_MACRO, edition="2015"))
        assert "proc_macro" not in args.to_list()

    def test_manifest_dir_and_out_dir(self, make_ctx, make_crate, construct):
        """CARGO_MANIFEST_DIR points at the package, OUT_DIR at the build script output."""
        _, env = construct(make_ctx("@crates//serde:serde"), make_crate(), out_dir="rbuild-out/bin/serde/build.out_dir")
        assert env["CARGO_MANIFEST_DIR"] == "${pwd}/external/crates/serde"
        assert env["OUT_DIR"] == "${pwd}/rbuild-out/bin/serde/build.out_dir"

    def test_manifest_dir_root_package(self, make_ctx, make_crate, construct):
        """Empty path components are dropped."""
        _, env = construct(make_ctx("//:app"), make_crate())
        assert env["CARGO_MANIFEST_DIR"] == "${pwd}"
        assert "OUT_DIR" not in env

    def test_bin_data_dependency(self, make_ctx, make_crate, construct):
        """Binary data dependencies are exposed as CARGO_BIN_EXE_<name>."""
        tool = make_crate("tool", output=File("rbuild-out/bin/tool/tool", root_relative="tool/tool"))
        data = Target(label=Label(name="tool", package="tool"), crate_info=tool, default_info=DefaultInfo(UniqueSet([tool.output])))
        _, env = construct(make_ctx(data=(data,)), make_crate())
        assert env["CARGO_BIN_EXE_tool"] == "tool/tool"

    def test_rustc_env_expanded(self, make_ctx, make_crate, construct):
        """User environment values have their location references expanded."""
        data = Target(
            label=Label(name="config", package="app"),
            default_info=DefaultInfo(UniqueSet([File("app/config.toml")])),
        )
        ctx = make_ctx(compile_data=(data,))
        _, env = construct(ctx, make_crate(rustc_env={"CONFIG": "$(location :config)"}))
        assert env["CONFIG"] == "app/config.toml"

    def test_sysroot_placeholder(self, make_ctx, make_crate, construct):
        """SYSROOT is always set, empty."""
        _, env = construct(make_ctx(), make_crate())
        assert env["SYSROOT"] == ""


class TestDeterminism:
    """Identical inputs give identical command lines."""

    def test_referential_transparency(self, make_ctx, make_crate, construct, rust_library, cc_library, build_script):
        """Two constructions from the same inputs are equal."""
        native = cc_library("z", static=["native/libz.a"], dynamic=["native/libssl.so"])
        lib = rust_library("greeter", deps=[native])
        crate = make_crate(deps=(lib, build_script()), rustc_env={"A": "1", "B": "2"})
        ctx = make_ctx(version="1.2.3", crate_features=("b", "a"))

        first_args, first_env = construct(ctx, crate, output_hash="abcd")
        second_args, second_env = construct(ctx, crate, output_hash="abcd")
        assert first_args == second_args
        assert list(first_env.items()) == list(second_env.items())
