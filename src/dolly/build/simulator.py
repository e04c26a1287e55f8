"""Bluesim run stage.

Executes a linked testbench and decides whether it passed. A simulation that
exits cleanly has only shown that it ran; the testbench must also print the
pass marker for the target to pass.
"""

import shlex
import sys
from pathlib import Path

from dolly.subprocess_utils import StageResult, run_captured

from .build_context import BuildContext
from .compiler import Runner
from .errors import ToolchainNotFoundError
from .targets import BuildTarget

PASS_MARKER = b">>>PASS"

SHELL_HINT = "Simulations are started through the system shell; make sure it is installed and on PATH."


def is_passing_run(result: StageResult) -> bool:
    """True only if the binary exited 0 and printed the pass marker."""
    return result.exit_succeeded and PASS_MARKER in result.output


def run_command(executable_name: str) -> list[str]:
    """Shell command that starts ``executable_name`` from its own directory."""
    if sys.platform == "win32":
        return ["cmd", "/C", executable_name]
    return ["sh", "-c", f"./{shlex.quote(executable_name)}"]


class BsimSimulator:
    """Runs a linked Bluesim executable from its artifact directory.

    Args:
        context: Frozen build context
        runner: Process runner, replaceable in tests
    """

    def __init__(self, context: BuildContext, runner: Runner = run_captured):
        self.context = context
        self.runner = runner

    def run(self, target: BuildTarget) -> StageResult:
        """
        Run the target's executable; blocks until the simulation exits.

        Raises:
            ToolchainNotFoundError: If the shell cannot be found
        """
        artifact_dir: Path = self.context.artifact_dir(target)
        cmd = run_command(target.source_path.stem)
        try:
            return self.runner(cmd, artifact_dir)
        except ToolchainNotFoundError as e:
            raise ToolchainNotFoundError(cmd[0], hint=SHELL_HINT) from e
