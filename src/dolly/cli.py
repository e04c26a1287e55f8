"""
Command-line interface for dolly.

This module provides the `dolly` CLI tool for building and testing Bluespec
SystemVerilog projects.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Optional

from dolly import __version__, output
from dolly.build.build_context import FailurePolicy
from dolly.build.errors import DiscoveryError, DollyError, ToolchainNotFoundError
from dolly.build.orchestrator import BuildResult, Orchestrator
from dolly.config import ToolchainConfig
from dolly.project import Project, ProjectError, ProjectNotFoundError
from dolly.summary import print_summary

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_COMMAND_VERBS = {
    "build": "Building",
    "test": "Testing",
    "verilog": "Generating Verilog for",
}


@dataclass
class PipelineArgs:
    """Arguments shared by the build, test and verilog commands."""

    command: str
    project_dir: Path
    verbose: bool = False
    fail_fast: bool = True
    bsc: Optional[str] = None


@dataclass
class InitArgs:
    """Arguments for the init command."""

    path: Path


@dataclass
class CleanArgs:
    """Arguments for the clean command."""

    project_dir: Path


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _fail(title: str, detail: str = "", code: int = 1) -> NoReturn:
    print()
    print(f"\033[1;31m✗ {title}\033[0m")
    if detail:
        print()
        print(detail)
    sys.exit(code)


def _run_orchestrator(orchestrator: Orchestrator, command: str) -> BuildResult:
    if command == "build":
        return orchestrator.build()
    if command == "test":
        return orchestrator.test()
    if command == "verilog":
        return orchestrator.verilog()
    raise ValueError(f"Unknown pipeline command: {command}")


def pipeline_command(args: PipelineArgs) -> None:
    """Run the build, test or verilog pipeline.

    Examples:
        dolly test                     # Test the project in the current directory
        dolly test examples/counter    # Test a specific project
        dolly build --no-fail-fast     # Build every test, even after a failure
        dolly verilog -v               # Generate Verilog with verbose output
    """
    output.set_verbose(args.verbose)

    try:
        project = Project.discover(args.project_dir)
        output.log_header("dolly", __version__)
        output.log(f"{_COMMAND_VERBS[args.command]} {project.name} v{project.version}...")

        toolchain = ToolchainConfig.from_environment().with_overrides(bsc=args.bsc)
        orchestrator = Orchestrator(
            project=project,
            toolchain=toolchain,
            failure_policy=FailurePolicy.FAIL_FAST if args.fail_fast else FailurePolicy.CONTINUE,
            verbose=args.verbose,
        )
        result = _run_orchestrator(orchestrator, args.command)

    except ProjectNotFoundError as e:
        _fail("Error: Project not found", f"{e}\n\nRun 'dolly init <path>' to create a new project.", code=2)
    except ToolchainNotFoundError as e:
        _fail("Error: Toolchain not found", str(e), code=127)
    except DiscoveryError as e:
        _fail("Error: Discovery failed", str(e))
    except DollyError as e:
        _fail("Error", str(e))
    except KeyboardInterrupt:
        print()
        print(f"\033[1;33m✗ {args.command.capitalize()} interrupted\033[0m")
        sys.exit(130)

    print()
    print_summary(result.outcome)

    if result.success:
        print(f"\033[1;32m✓ {args.command.capitalize()} successful!\033[0m")
        sys.exit(0)
    _fail(f"{args.command.capitalize()} failed!")


def init_command(args: InitArgs) -> None:
    """Create a new project.

    Examples:
        dolly init my_counter
    """
    try:
        project = Project.init(args.path)
    except ProjectError as e:
        _fail("Error: Could not create project", str(e))
    except OSError as e:
        _fail("Error: Could not create project", f"{type(e).__name__}: {e}")

    print(f"\033[1;32m✓ Created project {project.name} in {project.root_path}\033[0m")
    sys.exit(0)


def clean_command(args: CleanArgs) -> None:
    """Remove the project's target directory."""
    try:
        project = Project.discover(args.project_dir)
        removed = project.clean()
    except ProjectNotFoundError as e:
        _fail("Error: Project not found", str(e), code=2)
    except (ProjectError, OSError) as e:
        _fail("Error: Clean failed", str(e))

    if removed:
        print(f"Removed {project.target_dir}")
    else:
        print("Nothing to clean")
    sys.exit(0)


def _add_pipeline_parser(subparsers: argparse._SubParsersAction, name: str, help_text: str) -> None:
    parser = subparsers.add_parser(name, help=help_text)
    parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory or any directory below it (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )
    parser.add_argument(
        "--bsc",
        default=None,
        help="Bluespec compiler executable (default: $DOLLY_BSC or bsc)",
    )
    parser.add_argument(
        "--no-fail-fast",
        dest="fail_fast",
        action="store_false",
        help="Keep going after a target fails",
    )


def main() -> None:
    """dolly - build tool for Bluespec SystemVerilog projects."""
    parser = argparse.ArgumentParser(
        prog="dolly",
        description="dolly - build tool for Bluespec SystemVerilog projects",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"dolly {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    init_parser = subparsers.add_parser("init", help="Create a new project")
    init_parser.add_argument("path", type=Path, help="Directory to create")

    _add_pipeline_parser(subparsers, "build", "Compile and link every test")
    _add_pipeline_parser(subparsers, "test", "Compile, link and run every test")
    _add_pipeline_parser(subparsers, "verilog", "Generate Verilog for the top modules")

    clean_parser = subparsers.add_parser("clean", help="Remove build artifacts")
    clean_parser.add_argument(
        "project_dir",
        nargs="?",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )

    parsed_args = parser.parse_args()

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    setup_logging(getattr(parsed_args, "verbose", False))

    if hasattr(parsed_args, "project_dir"):
        if not parsed_args.project_dir.exists():
            print(f"\033[1;31m✗ Error: Path does not exist: {parsed_args.project_dir}\033[0m")
            sys.exit(2)
        if not parsed_args.project_dir.is_dir():
            print(f"\033[1;31m✗ Error: Path is not a directory: {parsed_args.project_dir}\033[0m")
            sys.exit(2)

    if parsed_args.command == "init":
        init_command(InitArgs(path=parsed_args.path))
    elif parsed_args.command == "clean":
        clean_command(CleanArgs(project_dir=parsed_args.project_dir))
    else:
        pipeline_command(
            PipelineArgs(
                command=parsed_args.command,
                project_dir=parsed_args.project_dir,
                verbose=parsed_args.verbose,
                fail_fast=parsed_args.fail_fast,
                bsc=parsed_args.bsc,
            )
        )


if __name__ == "__main__":
    main()
