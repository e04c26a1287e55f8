"""Fixtures for build pipeline tests.

FakeToolchain stands in for bsc and the Bluesim binaries: it records every
command and answers with scripted StageResults, so discovery, the pipeline
and classification all run for real without a Bluespec install.
"""

from pathlib import Path

import pytest

from dolly.subprocess_utils import StageResult


class FakeToolchain:
    """Scripted process runner.

    Attributes:
        calls: Every (command, cwd) pair received, in order
        fail_compile: Source stems whose compile should fail
        fail_link: Source stems whose link should fail
        run_results: Source stem -> (exit_succeeded, stdout) for simulations;
            unlisted simulations exit 0 and print the pass marker
    """

    def __init__(self):
        self.calls: list[tuple[list[str], Path | None]] = []
        self.fail_compile: set[str] = set()
        self.fail_link: set[str] = set()
        self.run_results: dict[str, tuple[bool, bytes]] = {}

    def __call__(self, cmd, cwd=None):
        cmd = list(cmd)
        self.calls.append((cmd, cwd))

        if cmd[0] in ("sh", "cmd"):
            ok, out = self.run_results.get(cwd.name, (True, b"hello\n>>>PASS\n"))
            return StageResult(exit_succeeded=ok, output=out)

        if "-e" in cmd:
            stem = Path(cmd[cmd.index("-o") + 1]).name
            if stem in self.fail_link:
                return StageResult(exit_succeeded=False, output=b"Error: unbound module\n")
            return StageResult(exit_succeeded=True, output=b"")

        stem = Path(cmd[-1]).stem
        if stem in self.fail_compile:
            return StageResult(exit_succeeded=False, output=b'Error: "Foo.bsv", line 3: parse error\n')
        return StageResult(exit_succeeded=True, output=b"")

    def commands(self, stage):
        """Commands of one stage: "compile", "link" or "run"."""
        result = []
        for cmd, _ in self.calls:
            if cmd[0] in ("sh", "cmd"):
                kind = "run"
            elif "-e" in cmd:
                kind = "link"
            else:
                kind = "compile"
            if kind == stage:
                result.append(cmd)
        return result

    def run_dirs(self):
        """Names of the artifact directories simulations were started in."""
        return [cwd.name for cmd, cwd in self.calls if cmd[0] in ("sh", "cmd")]


@pytest.fixture
def fake_toolchain():
    return FakeToolchain()


@pytest.fixture
def write_source():
    """Write a .bsv file, creating parent directories."""

    def _write(path, text=""):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    return _write
