"""Build Context - everything a pipeline stage needs, gathered once.

The orchestrator loads the project, discovers the module graph and resolves
the toolchain configuration, then freezes the result into a BuildContext.
The compiler, linker and simulator stages only ever read from it.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dolly.config import ToolchainConfig
    from dolly.project import Project

    from .module_graph import ModuleGraph
    from .targets import BuildTarget

SEARCH_PATH_SEPARATOR = ":"


class FailurePolicy(Enum):
    """What the pipeline does after a target fails."""

    FAIL_FAST = "fail-fast"
    CONTINUE = "continue"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BuildContext:
    """Frozen build configuration shared by all stages.

    Attributes:
        project: The loaded project descriptor
        toolchain: How to invoke bsc
        graph: Modules reachable from the project's src directory
        failure_policy: Whether to stop at the first failing target
        verbose: Whether to echo extra detail
    """

    project: "Project"
    toolchain: "ToolchainConfig"
    graph: "ModuleGraph"
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST
    verbose: bool = False

    @property
    def target_dir(self) -> Path:
        return self.project.target_dir

    def artifact_dir(self, target: "BuildTarget") -> Path:
        """Per-target scratch directory, keyed by the source file stem.

        Two targets with the same stem share a directory.
        """
        return self.target_dir / target.source_path.stem

    def search_path(self) -> str:
        """bsc ``-p`` value: the library root followed by every module directory."""
        entries = [self.toolchain.library_root, *(str(module) for module in self.graph.modules)]
        return SEARCH_PATH_SEPARATOR.join(entries)

    def top_module(self, target: "BuildTarget") -> str:
        return target.resolve_top_module(self.toolchain.default_top_module)
