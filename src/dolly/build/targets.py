"""Build target discovery.

Three kinds of target are found:
- unit tests: ``*_tb.bsv`` files sitting directly in a module directory
- integration tests: every ``.bsv`` file in the project's ``tests`` directory
- top-level targets: each ``//!topmodule`` declared in the root source file

A target's top module stays None when its file declares none. The default
name is substituted by the pipeline, never here.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .directives import find_extra_libraries, find_top_modules, read_source, select_top_module
from .errors import DiscoveryError
from .module_graph import BSV_SUFFIX, ModuleGraph

logger = logging.getLogger(__name__)

UNIT_TEST_SUFFIX = "_tb"


class TargetKind(Enum):
    """Where a build target was discovered."""

    UNIT = "unit"
    INTEGRATION = "integration"
    TOP = "top"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BuildTarget:
    """A single unit of work for the pipeline.

    Attributes:
        source_path: Source file handed to the compiler
        top_module: Declared top module, or None if the file declares none
        extra_libraries: Foreign sources appended to the link command
        kind: Where the target was discovered
    """

    source_path: Path
    top_module: Optional[str]
    extra_libraries: tuple[Path, ...]
    kind: TargetKind

    @property
    def name(self) -> str:
        """Display name; also names the artifact directory."""
        if self.kind is TargetKind.TOP and self.top_module:
            return self.top_module
        return self.source_path.stem

    def resolve_top_module(self, default: str) -> str:
        return self.top_module if self.top_module is not None else default


@dataclass(frozen=True)
class TargetSet:
    """All targets of a project, each sequence in discovery order."""

    unit_tests: tuple[BuildTarget, ...]
    integration_tests: tuple[BuildTarget, ...]
    top_level_targets: tuple[BuildTarget, ...]

    @property
    def tests(self) -> tuple[BuildTarget, ...]:
        """Unit tests followed by integration tests, the order they run in."""
        return self.unit_tests + self.integration_tests


def _list_directory(directory: Path) -> list[Path]:
    try:
        return sorted(directory.iterdir())
    except OSError as e:
        raise DiscoveryError(f"Failed to read directory {directory}: {e}") from e


def _is_source(path: Path) -> bool:
    return path.suffix == BSV_SUFFIX and path.is_file()


def is_unit_test(path: Path) -> bool:
    return _is_source(path) and path.stem.endswith(UNIT_TEST_SUFFIX)


def _make_target(path: Path, graph: ModuleGraph, kind: TargetKind) -> BuildTarget:
    libraries: dict[Path, None] = dict.fromkeys(graph.extra_libraries)
    top_module = None

    text = read_source(path)
    if text is not None:
        top_module = select_top_module(text, path)
        for library in find_extra_libraries(text):
            libraries[(path.parent / library).resolve()] = None

    logger.debug("Found %s target %s (top module: %s)", kind, path, top_module)
    return BuildTarget(
        source_path=path,
        top_module=top_module,
        extra_libraries=tuple(libraries),
        kind=kind,
    )


def find_unit_tests(graph: ModuleGraph) -> list[BuildTarget]:
    """
    Find unit tests inside every discovered module directory.

    Raises:
        DiscoveryError: If a module directory cannot be listed
    """
    targets = []
    for module_dir in graph.modules:
        for entry in _list_directory(module_dir):
            if is_unit_test(entry):
                targets.append(_make_target(entry, graph, TargetKind.UNIT))
    return targets


def find_integration_tests(tests_dir: Path, graph: ModuleGraph) -> list[BuildTarget]:
    """
    Find integration tests in the project's tests directory.

    Every source file counts, whatever its name.

    Raises:
        DiscoveryError: If the tests directory cannot be listed
    """
    return [
        _make_target(entry, graph, TargetKind.INTEGRATION)
        for entry in _list_directory(tests_dir)
        if _is_source(entry)
    ]


def find_top_level_targets(root_source: Path, graph: ModuleGraph) -> list[BuildTarget]:
    """
    One target per distinct top module declared in the root source file.

    A root file that is missing, unreadable or declares nothing yields no
    targets and a warning.
    """
    text = read_source(root_source)
    names = find_top_modules(text) if text is not None else []
    if not names:
        logger.warning("No top modules declared in %s", root_source)
        return []

    return [
        BuildTarget(
            source_path=root_source,
            top_module=name,
            extra_libraries=graph.extra_libraries,
            kind=TargetKind.TOP,
        )
        for name in names
    ]


def enumerate_targets(graph: ModuleGraph, tests_dir: Path, root_source: Path) -> TargetSet:
    """
    Enumerate every target of a project.

    Args:
        graph: Modules discovered from the project's src directory
        tests_dir: The project's tests directory
        root_source: The project's root source file

    Returns:
        TargetSet with unit, integration and top-level targets

    Raises:
        DiscoveryError: If a module directory or the tests directory cannot be listed
    """
    return TargetSet(
        unit_tests=tuple(find_unit_tests(graph)),
        integration_tests=tuple(find_integration_tests(tests_dir, graph)),
        top_level_targets=tuple(find_top_level_targets(root_source, graph)),
    )
