"""Subprocess helpers for running the Bluespec toolchain and test binaries.

All child processes go through run_captured() so that every stage gets the
same treatment:
- no console window on Windows
- stdin redirected to DEVNULL so children cannot steal keystrokes
- stdout captured as bytes with stderr folded into it
- a missing executable reported as ToolchainNotFoundError
"""

import logging
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from dolly.build.errors import ToolchainNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResult:
    """Outcome of one external process invocation.

    Attributes:
        exit_succeeded: True if the process exited with status 0
        output: Captured stdout (stderr merged in), undecoded
    """

    exit_succeeded: bool
    output: bytes

    @property
    def text(self) -> str:
        """Captured output decoded for display."""
        return self.output.decode("utf-8", errors="replace")


def get_subprocess_creation_flags() -> int:
    """CREATE_NO_WINDOW on Windows, 0 everywhere else."""
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def safe_run(cmd: Sequence[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """Run a command with platform-specific flags applied.

    Custom creationflags are OR'd with the platform defaults. stdin is
    redirected to DEVNULL unless the caller passes one explicitly.
    """
    default_flags = get_subprocess_creation_flags()

    if "creationflags" in kwargs:
        kwargs["creationflags"] = kwargs["creationflags"] | default_flags
    elif default_flags:
        kwargs["creationflags"] = default_flags

    if "stdin" not in kwargs:
        kwargs["stdin"] = subprocess.DEVNULL

    return subprocess.run(list(cmd), **kwargs)


def run_captured(cmd: Sequence[str], cwd: Optional[Path] = None) -> StageResult:
    """Run a command to completion and capture its output.

    Blocks until the child exits; there is no timeout.

    Args:
        cmd: Executable followed by its arguments
        cwd: Working directory for the child

    Returns:
        StageResult with the exit status and captured output

    Raises:
        ToolchainNotFoundError: If the executable does not exist
    """
    logger.debug("Running %s (cwd=%s)", " ".join(str(c) for c in cmd), cwd)
    try:
        result = safe_run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        raise ToolchainNotFoundError(str(cmd[0])) from e

    logger.debug("%s exited with status %d", cmd[0], result.returncode)
    return StageResult(exit_succeeded=result.returncode == 0, output=result.stdout or b"")
