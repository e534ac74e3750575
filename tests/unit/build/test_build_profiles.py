"""Tests for compilation mode profiles."""

import pytest

from rbuild.build.build_profiles import (
    PROFILES,
    CompilationMode,
    CompilationModeError,
    CompilationModeOpts,
    default_compilation_mode_opts,
    format_profile_banner,
    get_compilation_mode_opts,
)
from rbuild.providers import Label
from rbuild.toolchains import RustToolchain


class TestCompilationModeOpts:
    """Option lookup per toolchain."""

    def test_default_table(self):
        """The default table has every known mode, keyed by name."""
        table = default_compilation_mode_opts()
        assert set(table) == {"fastbuild", "dbg", "opt"}
        assert table["dbg"] == CompilationModeOpts(opt_level="0", debug_info="2")
        assert table["opt"] == PROFILES[CompilationMode.OPT]

    def test_lookup(self, linux_toolchain):
        """Known modes resolve through the toolchain's table."""
        assert get_compilation_mode_opts("opt", linux_toolchain).opt_level == "3"

    def test_custom_table(self, linux_toolchain):
        """Toolchains may declare their own modes."""
        toolchain = RustToolchain(
            target_triple=linux_toolchain.target_triple,
            target_arch="x86_64",
            os="linux",
            rustc=linux_toolchain.rustc,
            compilation_mode_opts={"size": CompilationModeOpts(opt_level="z", debug_info="0")},
        )
        assert get_compilation_mode_opts("size", toolchain).opt_level == "z"
        with pytest.raises(CompilationModeError):
            get_compilation_mode_opts("opt", toolchain)

    def test_unknown_mode(self, linux_toolchain):
        """The error names the mode, the toolchain and the target."""
        label = Label(name="app", package="app")
        with pytest.raises(CompilationModeError, match=r"Unrecognized compilation mode fast .*//app:app") as exc_info:
            get_compilation_mode_opts("fast", linux_toolchain, label)
        assert exc_info.value.label == label


class TestBanner:
    """format_profile_banner()"""

    def test_mode_only(self):
        assert format_profile_banner("dbg") == "MODE=dbg"

    def test_with_toolchain(self, linux_toolchain):
        assert format_profile_banner("opt", linux_toolchain) == "MODE=opt TARGET=x86_64-unknown-linux-gnu"
