"""
Timestamped console output for dolly.

Every line is prefixed with the time elapsed since the program started, in
MM:SS.cc format, so a slow compile or a hung simulation is easy to spot:

    00:00.02 dolly v0.1.0
    00:00.03 [1/3] Discovering modules...
    00:00.05       Modules: 3
    00:04.81 [2/3] Compiling Counter_tb...

Usage:
    from dolly.output import log, log_phase, log_detail

    log("Building Counter...")
    log_phase(1, 3, "Discovering modules...")
    log_detail("Modules: 3")
"""

import sys
import time
from types import TracebackType
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = False


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Called automatically on first use if the CLI did not call it.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """Enable or disable messages logged with verbose_only=True."""
    global _verbose
    _verbose = verbose


def get_elapsed() -> float:
    """Seconds since the timer was initialized."""
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore


def format_timestamp() -> str:
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str) -> None:
    _output_stream.write(f"{format_timestamp()} {message}\n")
    _output_stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    """
    Log a message with timestamp.

    Args:
        message: Message to log
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """Log a numbered phase as ``[N/M] message``."""
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """Log an indented detail line."""
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_block(text: str, indent: int = 6) -> None:
    """
    Log multi-line tool output verbatim, one timestamped line per line.

    Args:
        text: Captured output, already decoded
        indent: Number of spaces to indent each line
    """
    for line in text.splitlines():
        log_detail(line, indent=indent)


def log_header(title: str, version: str) -> None:
    _print(f"{title} v{version}")
    _print("")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    _print(f"WARNING: {message}")


def log_target_result(name: str, passed: bool, elapsed: float) -> None:
    """
    Log the final state of one build or test target.

    Args:
        name: Display name of the target (source file stem)
        passed: Whether the target reached the passed state
        elapsed: Seconds spent on the target
    """
    status = "PASS" if passed else "FAIL"
    _print(f"      {status} {name} ({elapsed:.2f}s)")


class TimedLogger:
    """
    Context manager for logging an operation with its elapsed time.

    Usage:
        with TimedLogger("Discovering modules", phase=(1, 3)) as timed:
            timed.detail("Modules: 3")
        # logs "Done (0.02s)" on clean exit
    """

    def __init__(self, operation: str, phase: Optional[tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.phase = phase
        self.verbose_only = verbose_only
        self.start_time = 0.0

    def __enter__(self) -> "TimedLogger":
        self.start_time = time.time()
        if self.phase:
            log_phase(self.phase[0], self.phase[1], f"{self.operation}...", self.verbose_only)
        else:
            log(f"{self.operation}...", self.verbose_only)
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        del exc_val, exc_tb  # Unused
        elapsed = time.time() - self.start_time
        if exc_type is None:
            log_detail(f"Done ({elapsed:.2f}s)", verbose_only=True)
        return None

    def detail(self, message: str) -> None:
        log_detail(message, verbose_only=self.verbose_only)
