"""
Command-line interface for rbuild.

This module provides the `rbuild` CLI tool:

    rbuild plan MANIFEST        Plan the rustc actions of a workspace manifest
    rbuild toolchains           List the packaged toolchain configurations

Environment variables:
    RBUILD_TOOLCHAIN            Toolchain used when --toolchain is not given
    RBUILD_COMPILATION_MODE     Compilation mode used when --compilation-mode is not given
"""

import argparse
import json
import logging
import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .build.actions import RunAction
from .build.build_profiles import CompilationMode, format_profile_banner
from .build.errors import ConfigurationError
from .manifest import analyze, load_workspace
from .output import TimedLogger, init_timer, log_detail, log_error, log_header, set_verbose
from .providers.files import Label
from .toolchain_configs import list_configs_by_platform, load_config
from .toolchains import ToolchainNotFoundError, load_toolchains

DEFAULT_TOOLCHAIN = "x86_64-unknown-linux-gnu"
TOOLCHAIN_ENV_VAR = "RBUILD_TOOLCHAIN"
COMPILATION_MODE_ENV_VAR = "RBUILD_COMPILATION_MODE"


@dataclass
class PlanArgs:
    """Arguments for the plan command."""

    manifest: Path
    targets: list[str] = field(default_factory=list)
    toolchain: Optional[str] = None
    toolchain_root: Optional[str] = None
    compilation_mode: Optional[str] = None
    json_output: bool = False
    verbose: bool = False


def configure_logging(verbose: bool) -> None:
    """Route library logging to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def resolve_toolchain_name(cli_value: Optional[str], manifest_value: Optional[str]) -> str:
    """Toolchain name: command line, then environment, then manifest, then the default."""
    return cli_value or os.environ.get(TOOLCHAIN_ENV_VAR) or manifest_value or DEFAULT_TOOLCHAIN


def resolve_compilation_mode(cli_value: Optional[str]) -> str:
    """Compilation mode: command line, then environment, then fastbuild."""
    return cli_value or os.environ.get(COMPILATION_MODE_ENV_VAR) or CompilationMode.FASTBUILD.value


def plan_command(args: PlanArgs, console: Optional[Console] = None) -> int:
    """Plan the compile actions of a workspace manifest.

    Examples:
        rbuild plan workspace.json                        # Plan every target
        rbuild plan workspace.json -t //hello:hello       # Plan one target and its deps
        rbuild plan workspace.json -c opt --json          # Machine readable plan

    Returns:
        Process exit code
    """
    console = console or Console()
    # Keep stdout clean for JSON output
    init_timer(sys.stderr if args.json_output else None)
    set_verbose(args.verbose)
    log_header("rbuild", __version__)

    try:
        with TimedLogger(f"Loading workspace {args.manifest}", phase=(1, 3)):
            workspace = load_workspace(args.manifest)
            roots = [Label.parse(raw) for raw in args.targets] or None

        toolchain_name = resolve_toolchain_name(args.toolchain, workspace.toolchain)
        compilation_mode = resolve_compilation_mode(args.compilation_mode)
        with TimedLogger(f"Loading toolchain {toolchain_name}", phase=(2, 3)):
            toolchain_root = args.toolchain_root or workspace.toolchain_root
            rust_toolchain, cc_toolchain = load_toolchains(toolchain_name, toolchain_root)
            log_detail(format_profile_banner(compilation_mode, rust_toolchain))

        with TimedLogger("Analysing targets", phase=(3, 3)) as timed:
            result = analyze(workspace, rust_toolchain, cc_toolchain, compilation_mode=compilation_mode, roots=roots)
            timed.detail(f"{len(result.targets)} targets, {len(result.recorder.actions)} actions")

    except (ConfigurationError, ToolchainNotFoundError, ValueError) as e:
        log_error(str(e))
        return 1

    if args.json_output:
        plan = {
            "toolchain": rust_toolchain.target_triple,
            "compilation_mode": compilation_mode,
            "actions": [action.to_dict() for action in result.recorder.actions],
            "symlinks": [{"output": s.output.path, "target": s.target_file.path} for s in result.recorder.symlinks],
        }
        sys.stdout.write(json.dumps(plan, indent=2) + "\n")
        return 0

    console.print(_actions_table(result.recorder.actions))
    if args.verbose:
        for action in result.recorder.actions:
            _print_action_details(console, action)
    return 0


def toolchains_command(console: Optional[Console] = None) -> int:
    """List packaged toolchain configurations.

    Returns:
        Process exit code
    """
    console = console or Console()
    table = Table(title="Toolchains")
    table.add_column("Platform", style="cyan")
    table.add_column("Name")
    table.add_column("Arch")
    table.add_column("OS")

    for platform, names in list_configs_by_platform().items():
        for name in names:
            config = load_config(name) or {}
            table.add_row(platform, name, config.get("target_arch", "?"), config.get("os", "?"))

    console.print(table)
    return 0


def _actions_table(actions: Sequence[RunAction]) -> Table:
    table = Table(title="Planned actions")
    table.add_column("#", justify="right")
    table.add_column("Mnemonic", style="cyan")
    table.add_column("Progress message")
    table.add_column("Output", style="green")
    table.add_column("Inputs", justify="right")
    for index, action in enumerate(actions, start=1):
        outputs = ", ".join(f.path for f in action.outputs)
        table.add_row(str(index), action.mnemonic, action.progress_message, outputs, str(len(action.inputs)))
    return table


def _print_action_details(console: Console, action: RunAction) -> None:
    console.rule(action.progress_message)
    console.print(shlex.join([action.executable.path, *action.arguments]), markup=False, highlight=False)
    for key in sorted(action.env):
        console.print(f"  {key}={action.env[key]}", markup=False, highlight=False)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """rbuild - plan rustc compile actions."""
    parser = argparse.ArgumentParser(
        prog="rbuild",
        description="rbuild - rustc compile action planner",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"rbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Plan command
    plan_parser = subparsers.add_parser(
        "plan",
        help="Plan the compile actions of a workspace manifest",
    )
    plan_parser.add_argument(
        "manifest",
        type=Path,
        help="Workspace manifest (JSON)",
    )
    plan_parser.add_argument(
        "-t",
        "--target",
        action="append",
        default=[],
        dest="targets",
        help="Only plan this target and its dependencies (repeatable)",
    )
    plan_parser.add_argument(
        "--toolchain",
        default=None,
        help=f"Toolchain configuration (default: ${TOOLCHAIN_ENV_VAR}, the manifest's, or {DEFAULT_TOOLCHAIN})",
    )
    plan_parser.add_argument(
        "--toolchain-root",
        default=None,
        help="Directory toolchain paths resolve against (default: from the configuration)",
    )
    plan_parser.add_argument(
        "-c",
        "--compilation-mode",
        default=None,
        help=f"Compilation mode (default: ${COMPILATION_MODE_ENV_VAR} or fastbuild)",
    )
    plan_parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print the plan as JSON",
    )
    plan_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show full command lines and environments",
    )

    # Toolchains command
    subparsers.add_parser(
        "toolchains",
        help="List packaged toolchain configurations",
    )

    parsed_args = parser.parse_args(argv)

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    configure_logging(getattr(parsed_args, "verbose", False))

    if parsed_args.command == "plan":
        if not parsed_args.manifest.is_file():
            log_error(f"Manifest does not exist: {parsed_args.manifest}")
            sys.exit(2)
        args = PlanArgs(
            manifest=parsed_args.manifest,
            targets=parsed_args.targets,
            toolchain=parsed_args.toolchain,
            toolchain_root=parsed_args.toolchain_root,
            compilation_mode=parsed_args.compilation_mode,
            json_output=parsed_args.json_output,
            verbose=parsed_args.verbose,
        )
        sys.exit(plan_command(args))
    elif parsed_args.command == "toolchains":
        sys.exit(toolchains_command())


if __name__ == "__main__":
    main()
