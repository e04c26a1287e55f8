"""Module graph discovery.

A dolly module is a directory holding one Bluespec source unit. The module's
definition file is named after the directory (``fifo/fifo.bsv``); the root
module in ``src/`` is named after the package instead (``src/Counter.bsv``).
Definition files list their children with ``//!submodule`` directives and
foreign sources with ``//!extra_library``.

Only reachability matters downstream: bsc is handed a search path over every
module directory, never an edge list, so no edges are kept.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from .directives import find_extra_libraries, find_submodules
from .errors import DiscoveryError

logger = logging.getLogger(__name__)

BSV_SUFFIX = ".bsv"


@dataclass(frozen=True)
class ModuleGraph:
    """Modules and extra libraries reachable from the root module directory.

    Attributes:
        modules: Canonical module directories in discovery order, no duplicates
        extra_libraries: Canonical extra-library paths in discovery order, no duplicates
    """

    modules: tuple[Path, ...]
    extra_libraries: tuple[Path, ...]

    def __contains__(self, path: object) -> bool:
        return path in self.modules


def module_definition_file(module_dir: Path, root_dir: Path, package_name: str) -> Path:
    """Return the source file that defines the module living in ``module_dir``."""
    name = package_name if module_dir == root_dir else module_dir.name
    return module_dir / f"{name}{BSV_SUFFIX}"


def discover(root_module_dir: Path, package_name: str) -> ModuleGraph:
    """
    Find every module reachable from the root module directory.

    Walks a worklist of module directories. A directory is marked visited
    before its directives are expanded and only unvisited children are
    pushed, so cyclic ``//!submodule`` references terminate; back-references
    are dropped without a diagnostic. A directory without a definition file
    contributes no children.

    Args:
        root_module_dir: The project's ``src`` directory
        package_name: Package name, used to locate the root definition file

    Returns:
        The discovered ModuleGraph

    Raises:
        DiscoveryError: If an existing definition file cannot be read
    """
    root = root_module_dir.resolve()
    visited: dict[Path, None] = {}
    extra_libraries: dict[Path, None] = {}
    remaining = [root]

    while remaining:
        current = remaining.pop()
        if current in visited:
            continue

        logger.debug("Processing module %s", current)
        visited[current] = None

        definition = module_definition_file(current, root, package_name)
        if not definition.is_file():
            continue

        try:
            text = definition.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise DiscoveryError(f"Failed to read module definition {definition}: {e}") from e

        for library in find_extra_libraries(text):
            extra_libraries[(current / library).resolve()] = None

        submodules = [(current / name).resolve() for name in find_submodules(text)]
        # Reversed so that the first declared submodule is popped first
        for submodule in reversed(submodules):
            if submodule not in visited:
                remaining.append(submodule)

    return ModuleGraph(
        modules=tuple(visited),
        extra_libraries=tuple(extra_libraries),
    )
