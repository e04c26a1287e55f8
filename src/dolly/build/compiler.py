"""Bluespec compile stage.

Runs ``bsc -u`` on a target's source file. In simulation mode the output is
Bluesim objects ready for the link stage; in Verilog mode bsc writes the
translated ``.v`` files and the target is finished.

Both modes write all intermediates into the target's artifact directory,
which is created on demand.
"""

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence

from dolly.subprocess_utils import StageResult, run_captured

from .build_context import BuildContext
from .errors import CompileError
from .targets import BuildTarget

logger = logging.getLogger(__name__)

Runner = Callable[[Sequence[str], Optional[Path]], StageResult]


class BscCompiler:
    """Invokes bsc to compile one target.

    Args:
        context: Frozen build context
        runner: Process runner, replaceable in tests
    """

    def __init__(self, context: BuildContext, runner: Runner = run_captured):
        self.context = context
        self.runner = runner

    def prepare_artifact_dir(self, target: BuildTarget) -> Path:
        artifact_dir = self.context.artifact_dir(target)
        artifact_dir.mkdir(parents=True, exist_ok=True)
        return artifact_dir

    def simulation_command(self, target: BuildTarget, artifact_dir: Path) -> list[str]:
        return [
            self.context.toolchain.bsc,
            "-u",
            "-sim",
            "-q",
            "-check-assert",
            "-bdir", str(artifact_dir),
            "-info-dir", str(artifact_dir),
            "-p", self.context.search_path(),
            "-g", self.context.top_module(target),
            str(target.source_path),
        ]

    def verilog_command(self, target: BuildTarget, artifact_dir: Path) -> list[str]:
        return [
            self.context.toolchain.bsc,
            "-u",
            "-verilog",
            "-q",
            "-bdir", str(artifact_dir),
            "-info-dir", str(artifact_dir),
            "-vdir", str(artifact_dir),
            "-p", self.context.search_path(),
            "-g", self.context.top_module(target),
            str(target.source_path),
        ]

    def compile(self, target: BuildTarget, verilog: bool = False) -> StageResult:
        """
        Compile a target.

        Args:
            target: Target to compile
            verilog: Generate Verilog instead of Bluesim objects

        Returns:
            StageResult of the successful compile

        Raises:
            CompileError: If bsc exits non-zero
            ToolchainNotFoundError: If bsc cannot be found
        """
        artifact_dir = self.prepare_artifact_dir(target)
        if verilog:
            cmd = self.verilog_command(target, artifact_dir)
        else:
            cmd = self.simulation_command(target, artifact_dir)

        logger.debug("Top module for %s: %s", target.source_path, self.context.top_module(target))
        result = self.runner(cmd, artifact_dir)
        if not result.exit_succeeded:
            raise CompileError(str(target.source_path), result.output)
        return result
