"""Pytest configuration and fixtures for dolly tests.

dolly.output binds sys.stdout when it is first imported, which under pytest
is a capture stream that gets closed between tests. The autouse fixture
below rebinds it to the live stream for every test.
"""

import sys

import pytest

from dolly import output
from dolly.project import Project


@pytest.fixture(autouse=True)
def reset_output_module():
    """Point dolly.output at the current stdout and clear verbose mode."""
    output._output_stream = sys.stdout
    output.set_verbose(False)
    yield
    output._output_stream = sys.stdout
    output.set_verbose(False)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Ensure stdout/stderr are restored if a test closed them."""
    yield
    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__


@pytest.fixture
def make_project(tmp_path):
    """Factory creating an empty project layout with a dolly.toml."""

    def _make(dirname="foo", name="Foo", version="0.1.0"):
        root = tmp_path / dirname
        (root / "src").mkdir(parents=True)
        (root / "tests").mkdir()
        (root / "dolly.toml").write_text(f'[package]\nname = "{name}"\nversion = "{version}"\n')
        return Project.load(root / "dolly.toml")

    return _make


@pytest.fixture
def project(make_project):
    """An empty project named Foo under tmp_path/foo."""
    return make_project()
