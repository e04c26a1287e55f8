"""Target pipeline: compile, link and run each target in turn.

Each target moves through a small state machine:

    PENDING -> COMPILED -> LINKED -> VERIFIED -> PASSED
                  |           |          |
                  +-----------+----------+----> FAILED

The build pipeline stops after LINKED and the Verilog pipeline after
COMPILED; both then move straight to PASSED. There are no retries.

Targets run one at a time in the order given. Under the default fail-fast
policy the first failing target ends the run and every later target is
recorded as skipped.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from dolly import output
from dolly.subprocess_utils import run_captured

from .build_context import BuildContext, FailurePolicy
from .compiler import BscCompiler, Runner
from .errors import StageError
from .linker import BsimLinker
from .simulator import PASS_MARKER, BsimSimulator, is_passing_run
from .targets import BuildTarget

logger = logging.getLogger(__name__)


class TargetState(Enum):
    """Pipeline state of a single target."""

    PENDING = "pending"
    COMPILED = "compiled"
    LINKED = "linked"
    VERIFIED = "verified"
    PASSED = "passed"
    FAILED = "failed"


_TRANSITIONS: dict[TargetState, frozenset[TargetState]] = {
    TargetState.PENDING: frozenset({TargetState.COMPILED, TargetState.FAILED}),
    TargetState.COMPILED: frozenset({TargetState.LINKED, TargetState.PASSED, TargetState.FAILED}),
    TargetState.LINKED: frozenset({TargetState.VERIFIED, TargetState.PASSED, TargetState.FAILED}),
    TargetState.VERIFIED: frozenset({TargetState.PASSED, TargetState.FAILED}),
    TargetState.PASSED: frozenset(),
    TargetState.FAILED: frozenset(),
}


class PipelineMode(Enum):
    """Which stages run for each target."""

    BUILD = "build"
    TEST = "test"
    VERILOG = "verilog"

    def __str__(self) -> str:
        return self.value


@dataclass
class TargetResult:
    """Progress and final state of one target.

    Attributes:
        target: The target being processed
        state: Current pipeline state
        failed_stage: Stage that failed ("compile", "link" or "run"), empty otherwise
        reason: Short description of the failure
        output: Captured output of the last stage that ran
        elapsed: Seconds spent on the target so far
        start_time: Monotonic timestamp when processing started
    """

    target: BuildTarget
    state: TargetState = TargetState.PENDING
    failed_stage: str = ""
    reason: str = ""
    output: bytes = b""
    elapsed: float = 0.0
    start_time: Optional[float] = None

    @property
    def passed(self) -> bool:
        return self.state is TargetState.PASSED

    @property
    def finished(self) -> bool:
        return self.state in (TargetState.PASSED, TargetState.FAILED)

    def mark_started(self) -> None:
        self.start_time = time.monotonic()

    def update_elapsed(self) -> None:
        if self.start_time is not None:
            self.elapsed = time.monotonic() - self.start_time

    def advance(self, state: TargetState) -> None:
        """
        Move to ``state``.

        Raises:
            ValueError: If the transition is not allowed from the current state
        """
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(f"Invalid transition for {self.target.name}: {self.state.value} -> {state.value}")
        self.state = state

    def fail(self, stage: str, reason: str, captured: bytes = b"") -> None:
        self.advance(TargetState.FAILED)
        self.failed_stage = stage
        self.reason = reason
        self.output = captured
        self.update_elapsed()


@dataclass
class PipelineOutcome:
    """Aggregated result of one pipeline run.

    Attributes:
        mode: Which pipeline ran
        results: Results of every attempted target, in run order
        skipped: Targets never attempted because an earlier target failed
        total_elapsed: Wall-clock seconds for the whole run
    """

    mode: PipelineMode
    results: list[TargetResult] = field(default_factory=list)
    skipped: list[BuildTarget] = field(default_factory=list)
    total_elapsed: float = 0.0

    @property
    def all_passed(self) -> bool:
        """True if every attempted target passed and none were skipped."""
        return not self.skipped and all(r.passed for r in self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed_results(self) -> list[TargetResult]:
        return [r for r in self.results if r.state is TargetState.FAILED]

    @property
    def failed_count(self) -> int:
        return len(self.failed_results)


class PipelineRunner:
    """Drives targets through the compile, link and run stages.

    Args:
        context: Frozen build context
        runner: Process runner shared by all stages, replaceable in tests
    """

    def __init__(self, context: BuildContext, runner: Runner = run_captured):
        self.context = context
        self.compiler = BscCompiler(context, runner)
        self.linker = BsimLinker(context, runner)
        self.simulator = BsimSimulator(context, runner)

    def run_target(self, target: BuildTarget, mode: PipelineMode) -> TargetResult:
        """
        Run every stage ``mode`` requires for one target.

        Stage failures end in the FAILED state rather than an exception.

        Raises:
            ToolchainNotFoundError: If bsc cannot be found
        """
        result = TargetResult(target=target)
        result.mark_started()

        try:
            output.log_detail(f"Compiling {target.name}...", verbose_only=True)
            compiled = self.compiler.compile(target, verilog=mode is PipelineMode.VERILOG)
            result.output = compiled.output
            result.advance(TargetState.COMPILED)
            if mode is PipelineMode.VERILOG:
                result.advance(TargetState.PASSED)
                return result

            output.log_detail(f"Linking {target.name}...", verbose_only=True)
            linked = self.linker.link(target)
            result.output = linked.output
            result.advance(TargetState.LINKED)
            if mode is PipelineMode.BUILD:
                result.advance(TargetState.PASSED)
                return result

            output.log_detail(f"Running {target.name}...", verbose_only=True)
            ran = self.simulator.run(target)
            result.output = ran.output
            result.advance(TargetState.VERIFIED)
            if is_passing_run(ran):
                result.advance(TargetState.PASSED)
            elif not ran.exit_succeeded:
                result.fail("run", "simulation exited with an error", ran.output)
            else:
                result.fail("run", f"{PASS_MARKER.decode()} not found in simulation output", ran.output)
            return result
        except StageError as e:
            result.fail(e.stage, f"{e.stage} failed", e.output)
            return result
        finally:
            result.update_elapsed()

    def run(self, targets: Sequence[BuildTarget], mode: PipelineMode) -> PipelineOutcome:
        """
        Run ``targets`` in order.

        Args:
            targets: Targets in the order they should run
            mode: Which stages to run for each target

        Returns:
            PipelineOutcome covering attempted and skipped targets

        Raises:
            ToolchainNotFoundError: If bsc cannot be found
        """
        start = time.monotonic()
        outcome = PipelineOutcome(mode=mode)

        for index, target in enumerate(targets):
            result = self.run_target(target, mode)
            outcome.results.append(result)
            output.log_target_result(target.name, result.passed, result.elapsed)

            if result.passed:
                if mode is PipelineMode.TEST and result.output and self.context.verbose:
                    output.log_block(result.output.decode("utf-8", errors="replace"), indent=8)
                continue

            output.log_error(f"{target.name}: {result.reason}")
            if result.output:
                output.log_block(result.output.decode("utf-8", errors="replace"), indent=8)

            if self.context.failure_policy is FailurePolicy.FAIL_FAST:
                outcome.skipped = list(targets[index + 1:])
                if outcome.skipped:
                    logger.info("Skipping %d remaining targets after failure", len(outcome.skipped))
                break

        outcome.total_elapsed = time.monotonic() - start
        return outcome
