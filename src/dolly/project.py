"""
dolly project descriptor.

A project is a directory holding ``dolly.toml``:

    [package]
    name = "Counter"
    version = "0.1.0"

and the conventional layout::

    Counter/
        dolly.toml
        src/Counter.bsv     root module
        tests/              integration tests
        target/             build artifacts (created on demand)
"""

import logging
import re
import shutil
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dolly.build.errors import DollyError
from dolly.build.module_graph import BSV_SUFFIX

logger = logging.getLogger(__name__)

PROJECT_FILE_NAME = "dolly.toml"


class ProjectError(DollyError):
    """Raised when a project file is invalid or a project cannot be created."""

    pass


class ProjectNotFoundError(ProjectError):
    """Raised when no dolly.toml is found in a directory or its ancestors."""

    pass


def find_project_file(start: Path) -> Path:
    """
    Find dolly.toml in ``start`` or the nearest ancestor that has one.

    Args:
        start: Directory to begin the search from

    Returns:
        Path to the project file

    Raises:
        ProjectNotFoundError: If no ancestor holds a project file
        ProjectError: If the nearest dolly.toml is not a regular file
    """
    full_path = start.resolve()
    for directory in (full_path, *full_path.parents):
        candidate = directory / PROJECT_FILE_NAME
        logger.debug("Looking for project: %s", candidate)
        if candidate.exists():
            if not candidate.is_file():
                raise ProjectError(f"Project path is not a regular file: {candidate}")
            logger.debug("Project found: %s", candidate)
            return candidate

    raise ProjectNotFoundError(f"{PROJECT_FILE_NAME} not found in {full_path} or any parent directory")


def to_upper_camel(name: str) -> str:
    """Convert a directory name such as ``my-counter`` to ``MyCounter``."""
    words = re.findall(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])", name)
    return "".join(word[:1].upper() + word[1:] for word in words)


_MODULE_TEMPLATE = """\
interface {name};
    method Bool isWorking;
endinterface

module mk{name}({name});
    method Bool isWorking;
        return True;
    endmethod
endmodule
"""

_TEST_TEMPLATE = """\
//!topmodule mk{name}_tb
import {name}::*;

module mk{name}_tb(Empty);
    {name} my_module <- mk{name};

    rule run_it;
        // Required for test to pass.
        $display(">>>PASS");
        $finish();
    endrule
endmodule
"""


@dataclass(frozen=True)
class Project:
    """A loaded dolly.toml.

    Attributes:
        root_path: Directory containing dolly.toml
        name: Package name, also the stem of the root source file
        version: Package version string
    """

    root_path: Path
    name: str
    version: str

    @property
    def src_dir(self) -> Path:
        return self.root_path / "src"

    @property
    def root_source(self) -> Path:
        return self.src_dir / f"{self.name}{BSV_SUFFIX}"

    @property
    def tests_dir(self) -> Path:
        return self.root_path / "tests"

    @property
    def target_dir(self) -> Path:
        return self.root_path / "target"

    @classmethod
    def load(cls, project_file: Path) -> "Project":
        """
        Parse a dolly.toml.

        Raises:
            ProjectError: If the file cannot be read or lacks [package] name/version
        """
        logger.debug("Reading project file %s", project_file)
        try:
            with open(project_file, "rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ProjectError(f"Failed to read {project_file}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ProjectError(f"Invalid TOML in {project_file}: {e}") from e

        package = data.get("package")
        if not isinstance(package, dict):
            raise ProjectError(f"Missing [package] table in {project_file}")

        name = package.get("name")
        version = package.get("version")
        if not isinstance(name, str) or not name:
            raise ProjectError(f"Missing package.name in {project_file}")
        if not isinstance(version, str) or not version:
            raise ProjectError(f"Missing package.version in {project_file}")

        return cls(root_path=project_file.parent.resolve(), name=name, version=version)

    @classmethod
    def discover(cls, start: Optional[Path] = None) -> "Project":
        """Load the project enclosing ``start`` (default: current directory)."""
        return cls.load(find_project_file(start if start is not None else Path.cwd()))

    def clean(self) -> bool:
        """
        Remove the target directory.

        Returns:
            True if something was removed, False if there was nothing to clean
        """
        if not self.target_dir.exists():
            return False
        shutil.rmtree(self.target_dir)
        return True

    @staticmethod
    def init(new_project_path: Path) -> "Project":
        """
        Create a new project with a module and a passing testbench.

        Raises:
            ProjectError: If ``new_project_path`` already exists or has no usable name
        """
        if new_project_path.exists():
            raise ProjectError(f"Unable to initialize new project, {new_project_path} already exists")

        name = to_upper_camel(new_project_path.resolve().name)
        if not name:
            raise ProjectError(f"Cannot derive a package name from {new_project_path}")

        (new_project_path / "src").mkdir(parents=True)
        (new_project_path / "tests").mkdir()

        (new_project_path / PROJECT_FILE_NAME).write_text(
            f'[package]\nname = "{name}"\nversion = "0.1.0"\n', encoding="utf-8"
        )
        (new_project_path / ".gitignore").write_text("**/target\n", encoding="utf-8")
        (new_project_path / "src" / f"{name}{BSV_SUFFIX}").write_text(
            _MODULE_TEMPLATE.format(name=name), encoding="utf-8"
        )
        (new_project_path / "tests" / f"{name}_tb{BSV_SUFFIX}").write_text(
            _TEST_TEMPLATE.format(name=name), encoding="utf-8"
        )

        return Project.load(new_project_path / PROJECT_FILE_NAME)
