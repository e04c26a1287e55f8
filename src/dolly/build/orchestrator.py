"""
Build orchestration for dolly projects.

Chains the build steps in a fixed order for each command:

    project -> module graph -> targets -> pipeline -> BuildResult

- build:   compile and link every unit and integration test
- test:    compile, link and run every unit and integration test
- verilog: generate Verilog for every top module of the root source file
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from dolly import output
from dolly.config import ToolchainConfig
from dolly.project import Project
from dolly.subprocess_utils import run_captured

from .build_context import BuildContext, FailurePolicy
from .compiler import Runner
from .module_graph import ModuleGraph, discover
from .pipeline import PipelineMode, PipelineOutcome, PipelineRunner
from .targets import BuildTarget, TargetSet, enumerate_targets, find_top_level_targets

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of one orchestrated command.

    Attributes:
        success: True if every target passed
        outcome: Per-target pipeline results
        graph: The module graph the command ran against
        targets: Every target discovered for the project
        build_time: Wall-clock seconds for the command
    """

    success: bool
    outcome: PipelineOutcome
    graph: ModuleGraph
    targets: TargetSet
    build_time: float


class Orchestrator:
    """Runs dolly commands against one project.

    Args:
        project: Loaded project descriptor
        toolchain: How to invoke bsc
        failure_policy: Stop at the first failing target, or keep going
        verbose: Enable verbose output
        runner: Process runner handed to every stage
    """

    def __init__(
        self,
        project: Project,
        toolchain: Optional[ToolchainConfig] = None,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        verbose: bool = False,
        runner: Runner = run_captured,
    ):
        self.project = project
        self.toolchain = toolchain if toolchain is not None else ToolchainConfig.from_environment()
        self.failure_policy = failure_policy
        self.verbose = verbose
        self.runner = runner

    def _discover(self) -> BuildContext:
        with output.TimedLogger("Discovering modules", phase=(1, 3)) as timed:
            graph = discover(self.project.src_dir, self.project.name)
            timed.detail(f"Modules: {len(graph.modules)}")
            if graph.extra_libraries:
                timed.detail(f"Extra libraries: {len(graph.extra_libraries)}")

        return BuildContext(
            project=self.project,
            toolchain=self.toolchain,
            graph=graph,
            failure_policy=self.failure_policy,
            verbose=self.verbose,
        )

    def _run(self, context: BuildContext, targets: TargetSet, selected: tuple[BuildTarget, ...], mode: PipelineMode) -> BuildResult:
        start_time = time.time()
        if not selected:
            output.log_warning(f"No targets found for {mode}")

        output.log_phase(3, 3, f"Running {mode} pipeline ({len(selected)} targets)...")
        outcome = PipelineRunner(context, self.runner).run(selected, mode)

        return BuildResult(
            success=outcome.all_passed,
            outcome=outcome,
            graph=context.graph,
            targets=targets,
            build_time=time.time() - start_time,
        )

    def _test_targets(self, mode: PipelineMode) -> BuildResult:
        context = self._discover()
        with output.TimedLogger("Finding tests", phase=(2, 3)) as timed:
            targets = enumerate_targets(context.graph, self.project.tests_dir, self.project.root_source)
            timed.detail(f"Unit tests: {len(targets.unit_tests)}")
            timed.detail(f"Integration tests: {len(targets.integration_tests)}")
        return self._run(context, targets, targets.tests, mode)

    def build(self) -> BuildResult:
        """
        Compile and link every test target without running it.

        Raises:
            DiscoveryError: If a required directory or module file cannot be read
            ToolchainNotFoundError: If bsc cannot be found
        """
        return self._test_targets(PipelineMode.BUILD)

    def test(self) -> BuildResult:
        """
        Compile, link and run every test target.

        Raises:
            DiscoveryError: If a required directory or module file cannot be read
            ToolchainNotFoundError: If bsc cannot be found
        """
        return self._test_targets(PipelineMode.TEST)

    def verilog(self) -> BuildResult:
        """
        Generate Verilog for every top module declared in the root source file.

        Raises:
            DiscoveryError: If a module definition file cannot be read
            ToolchainNotFoundError: If bsc cannot be found
        """
        context = self._discover()
        with output.TimedLogger("Finding top modules", phase=(2, 3)) as timed:
            top_level = tuple(find_top_level_targets(self.project.root_source, context.graph))
            timed.detail(f"Top modules: {len(top_level)}")
        targets = TargetSet(unit_tests=(), integration_tests=(), top_level_targets=top_level)
        return self._run(context, targets, top_level, PipelineMode.VERILOG)
