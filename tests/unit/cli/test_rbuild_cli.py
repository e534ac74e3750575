"""
Unit tests for the rbuild command line.
"""

import json

import pytest

from rbuild import output
from rbuild.cli import main, resolve_compilation_mode, resolve_toolchain_name

WORKSPACE = {
    "toolchain": "x86_64-unknown-linux-gnu",
    "targets": [
        {"kind": "rust_library", "label": "//greeter", "srcs": ["lib.rs"], "edition": "2018"},
        {"kind": "rust_binary", "label": "//hello", "srcs": ["main.rs"], "deps": ["//greeter"]},
    ],
}


@pytest.fixture(autouse=True)
def _reset_output(monkeypatch):
    """Start every test with a fresh timer on the current stdout and no overrides."""
    output.init_timer(None)
    output.set_verbose(False)
    monkeypatch.delenv("RBUILD_TOOLCHAIN", raising=False)
    monkeypatch.delenv("RBUILD_COMPILATION_MODE", raising=False)


@pytest.fixture
def manifest(tmp_path):
    def _manifest(data=WORKSPACE):
        path = tmp_path / "workspace.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    return _manifest


def _run(argv) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestResolution:
    """Toolchain and compilation mode precedence."""

    def test_toolchain_cli_wins(self, monkeypatch):
        monkeypatch.setenv("RBUILD_TOOLCHAIN", "x86_64-apple-darwin")
        assert resolve_toolchain_name("wasm32-unknown-unknown", "aarch64-unknown-linux-gnu") == "wasm32-unknown-unknown"

    def test_toolchain_env_before_manifest(self, monkeypatch):
        monkeypatch.setenv("RBUILD_TOOLCHAIN", "x86_64-apple-darwin")
        assert resolve_toolchain_name(None, "aarch64-unknown-linux-gnu") == "x86_64-apple-darwin"

    def test_toolchain_default(self):
        assert resolve_toolchain_name(None, None) == "x86_64-unknown-linux-gnu"

    def test_compilation_mode(self, monkeypatch):
        assert resolve_compilation_mode(None) == "fastbuild"
        monkeypatch.setenv("RBUILD_COMPILATION_MODE", "dbg")
        assert resolve_compilation_mode(None) == "dbg"
        assert resolve_compilation_mode("opt") == "opt"


class TestPlanCommand:
    """rbuild plan"""

    def test_json_plan(self, manifest, capsys):
        """--json prints only the plan on stdout."""
        assert _run(["plan", manifest(), "--json", "-c", "opt"]) == 0
        captured = capsys.readouterr()
        plan = json.loads(captured.out)
        assert plan["toolchain"] == "x86_64-unknown-linux-gnu"
        assert plan["compilation_mode"] == "opt"
        assert [a["mnemonic"] for a in plan["actions"]] == ["Rustc", "Rustc"]
        assert "--codegen=opt-level=3" in plan["actions"][1]["arguments"]
        assert [s["output"] for s in plan["symlinks"]] == ["rbuild-out/bin/greeter/greeter.a"]
        assert "[3/3] Analysing targets..." in captured.err

    def test_target_selection(self, manifest, capsys):
        """-t restricts the plan to a target and its dependencies."""
        assert _run(["plan", manifest(), "--json", "-t", "//greeter"]) == 0
        plan = json.loads(capsys.readouterr().out)
        assert [a["progress_message"] for a in plan["actions"]] == ["Compiling Rust rlib greeter (1 files)"]

    def test_table_output(self, manifest, capsys):
        """Without --json a table of actions is printed."""
        assert _run(["plan", manifest()]) == 0
        out = capsys.readouterr().out
        assert "rbuild v" in out
        assert "Planned actions" in out
        assert "Rustc" in out

    def test_verbose_shows_environment(self, manifest, capsys):
        assert _run(["plan", manifest(), "--verbose"]) == 0
        assert "CARGO_PKG_NAME=hello" in capsys.readouterr().out

    def test_toolchain_override(self, manifest, capsys):
        """--toolchain replaces the manifest's toolchain."""
        assert _run(["plan", manifest(), "--json", "--toolchain", "x86_64-apple-darwin"]) == 0
        plan = json.loads(capsys.readouterr().out)
        assert plan["toolchain"] == "x86_64-apple-darwin"

    def test_missing_manifest(self, tmp_path, capsys):
        """A missing manifest is a usage error."""
        assert _run(["plan", str(tmp_path / "nope.json")]) == 2
        assert "ERROR: Manifest does not exist" in capsys.readouterr().out

    def test_configuration_error(self, manifest, capsys):
        """Configuration errors are reported and exit with 1."""
        data = {"targets": [{"kind": "rust_library", "label": "//a", "srcs": ["lib.rs"], "deps": ["//a"]}]}
        assert _run(["plan", manifest(data)]) == 1
        assert "ERROR: Cyclic dependency detected: //a:a -> //a:a" in capsys.readouterr().out

    def test_unknown_toolchain(self, manifest, capsys):
        assert _run(["plan", manifest(), "--toolchain", "sparc-sun-solaris"]) == 1
        assert "No toolchain configuration found for sparc-sun-solaris" in capsys.readouterr().out

    def test_unknown_compilation_mode(self, manifest, capsys):
        assert _run(["plan", manifest(), "-c", "profile"]) == 1
        assert "Unrecognized compilation mode profile" in capsys.readouterr().out


class TestToolchainsCommand:
    """rbuild toolchains"""

    def test_lists_configs(self, capsys):
        assert _run(["toolchains"]) == 0
        out = capsys.readouterr().out
        assert "x86_64-unknown-linux-gnu" in out
        assert "wasm32" in out


def test_no_command_prints_help(capsys):
    assert _run([]) == 0
    assert "usage: rbuild" in capsys.readouterr().out
