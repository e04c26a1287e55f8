"""Bluesim link stage.

Elaborates the compiled top module into a simulation executable named after
the source file stem, inside the target's artifact directory. Extra
libraries (C sources for imported BDPI functions) are appended as trailing
arguments.
"""

import logging
import sys
from pathlib import Path

from dolly.subprocess_utils import StageResult, run_captured

from .build_context import BuildContext
from .compiler import Runner
from .errors import LinkError
from .targets import BuildTarget

logger = logging.getLogger(__name__)

# The C++ generated by Bluesim trips this warning on recent GCC/Clang
UNIX_LINK_FLAGS = ("-Xc++", "-Wno-dangling-else")


def get_platform_link_flags() -> tuple[str, ...]:
    if sys.platform == "win32":
        return ()
    return UNIX_LINK_FLAGS


class BsimLinker:
    """Invokes bsc to link one compiled target into a Bluesim executable.

    Args:
        context: Frozen build context
        runner: Process runner, replaceable in tests
    """

    def __init__(self, context: BuildContext, runner: Runner = run_captured):
        self.context = context
        self.runner = runner

    def executable_path(self, target: BuildTarget) -> Path:
        return self.context.artifact_dir(target) / target.source_path.stem

    def command(self, target: BuildTarget, artifact_dir: Path) -> list[str]:
        cmd = [
            self.context.toolchain.bsc,
            "-sim",
            "-q",
            "-bdir", str(artifact_dir),
            "-info-dir", str(artifact_dir),
            "-simdir", str(artifact_dir),
            "-fdir", str(artifact_dir),
            "-p", self.context.search_path(),
            "-e", self.context.top_module(target),
            "-o", str(self.executable_path(target)),
        ]
        cmd.extend(get_platform_link_flags())
        cmd.extend(str(library) for library in target.extra_libraries)
        return cmd

    def link(self, target: BuildTarget) -> StageResult:
        """
        Link a compiled target.

        Returns:
            StageResult of the successful link

        Raises:
            LinkError: If bsc exits non-zero
            ToolchainNotFoundError: If bsc cannot be found
        """
        artifact_dir = self.context.artifact_dir(target)
        artifact_dir.mkdir(parents=True, exist_ok=True)

        if target.extra_libraries:
            logger.debug("Linking %d extra libraries into %s", len(target.extra_libraries), target.name)

        result = self.runner(self.command(target, artifact_dir), artifact_dir)
        if not result.exit_succeeded:
            raise LinkError(str(target.source_path), result.output)
        return result
