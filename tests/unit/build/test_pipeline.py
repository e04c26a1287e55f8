"""Tests for the per-target state machine and the pipeline runner."""

import sys

import pytest

from dolly import output
from dolly.build.build_context import BuildContext, FailurePolicy
from dolly.build.errors import ToolchainNotFoundError
from dolly.build.module_graph import ModuleGraph
from dolly.build.pipeline import (
    PipelineMode,
    PipelineOutcome,
    PipelineRunner,
    TargetResult,
    TargetState,
)
from dolly.build.targets import BuildTarget, TargetKind
from dolly.config import ToolchainConfig


def make_target(project, stem, top_module=None):
    return BuildTarget(project.tests_dir / f"{stem}.bsv", top_module, (), TargetKind.INTEGRATION)


def make_context(project, policy=FailurePolicy.FAIL_FAST, verbose=False):
    graph = ModuleGraph(modules=(project.src_dir,), extra_libraries=())
    return BuildContext(
        project=project, toolchain=ToolchainConfig(), graph=graph, failure_policy=policy, verbose=verbose
    )


class TestTargetResult:
    """Test the allowed state transitions."""

    def test_full_test_path(self, project):
        result = TargetResult(target=make_target(project, "A_tb"))
        for state in (TargetState.COMPILED, TargetState.LINKED, TargetState.VERIFIED, TargetState.PASSED):
            result.advance(state)
        assert result.passed
        assert result.finished

    def test_verilog_path_skips_link(self, project):
        result = TargetResult(target=make_target(project, "A_tb"))
        result.advance(TargetState.COMPILED)
        result.advance(TargetState.PASSED)
        assert result.passed

    def test_cannot_skip_compile(self, project):
        result = TargetResult(target=make_target(project, "A_tb"))
        with pytest.raises(ValueError, match="pending -> linked"):
            result.advance(TargetState.LINKED)

    def test_terminal_states_are_final(self, project):
        result = TargetResult(target=make_target(project, "A_tb"))
        result.fail("compile", "compile failed")
        with pytest.raises(ValueError):
            result.advance(TargetState.COMPILED)
        with pytest.raises(ValueError):
            result.fail("compile", "again")

    def test_fail_records_stage_and_output(self, project):
        result = TargetResult(target=make_target(project, "A_tb"))
        result.mark_started()
        result.advance(TargetState.COMPILED)
        result.fail("link", "link failed", b"Error: unbound\n")

        assert result.state is TargetState.FAILED
        assert result.failed_stage == "link"
        assert result.output == b"Error: unbound\n"
        assert result.finished and not result.passed


class TestPipelineOutcome:
    def test_empty_outcome_passes(self):
        assert PipelineOutcome(mode=PipelineMode.TEST).all_passed

    def test_skipped_targets_fail_the_outcome(self, project):
        result = TargetResult(target=make_target(project, "A_tb"), state=TargetState.PASSED)
        outcome = PipelineOutcome(mode=PipelineMode.TEST, results=[result], skipped=[make_target(project, "B_tb")])
        assert not outcome.all_passed

    def test_counts(self, project):
        passed = TargetResult(target=make_target(project, "A_tb"), state=TargetState.PASSED)
        failed = TargetResult(target=make_target(project, "B_tb"), state=TargetState.FAILED)
        outcome = PipelineOutcome(mode=PipelineMode.BUILD, results=[passed, failed])
        assert outcome.passed_count == 1
        assert outcome.failed_count == 1
        assert outcome.failed_results == [failed]


class TestPipelineRunner:
    """Test stage sequencing and failure handling per mode."""

    def test_test_mode_runs_every_stage(self, project, fake_toolchain):
        runner = PipelineRunner(make_context(project), fake_toolchain)

        result = runner.run_target(make_target(project, "A_tb"), PipelineMode.TEST)

        assert result.passed
        assert len(fake_toolchain.commands("compile")) == 1
        assert len(fake_toolchain.commands("link")) == 1
        assert fake_toolchain.run_dirs() == ["A_tb"]
        assert b">>>PASS" in result.output

    def test_build_mode_never_runs(self, project, fake_toolchain):
        runner = PipelineRunner(make_context(project), fake_toolchain)

        result = runner.run_target(make_target(project, "A_tb"), PipelineMode.BUILD)

        assert result.passed
        assert len(fake_toolchain.commands("link")) == 1
        assert fake_toolchain.run_dirs() == []

    def test_verilog_mode_only_compiles(self, project, fake_toolchain):
        runner = PipelineRunner(make_context(project), fake_toolchain)

        result = runner.run_target(make_target(project, "A_tb", "mkA"), PipelineMode.VERILOG)

        assert result.passed
        (cmd,) = fake_toolchain.commands("compile")
        assert "-verilog" in cmd
        assert fake_toolchain.commands("link") == []

    def test_compile_failure_stops_target(self, project, fake_toolchain):
        fake_toolchain.fail_compile.add("A_tb")
        runner = PipelineRunner(make_context(project), fake_toolchain)

        result = runner.run_target(make_target(project, "A_tb"), PipelineMode.TEST)

        assert result.state is TargetState.FAILED
        assert result.failed_stage == "compile"
        assert b"parse error" in result.output
        assert fake_toolchain.commands("link") == []

    def test_link_failure(self, project, fake_toolchain):
        fake_toolchain.fail_link.add("A_tb")
        runner = PipelineRunner(make_context(project), fake_toolchain)

        result = runner.run_target(make_target(project, "A_tb"), PipelineMode.TEST)

        assert result.failed_stage == "link"
        assert fake_toolchain.run_dirs() == []

    def test_missing_marker_fails_run(self, project, fake_toolchain):
        fake_toolchain.run_results["A_tb"] = (True, b"finished without marker\n")
        runner = PipelineRunner(make_context(project), fake_toolchain)

        result = runner.run_target(make_target(project, "A_tb"), PipelineMode.TEST)

        assert result.failed_stage == "run"
        assert ">>>PASS not found" in result.reason
        assert result.output == b"finished without marker\n"

    def test_error_exit_fails_run_even_with_marker(self, project, fake_toolchain):
        fake_toolchain.run_results["A_tb"] = (False, b">>>PASS\nsegfault\n")
        runner = PipelineRunner(make_context(project), fake_toolchain)

        result = runner.run_target(make_target(project, "A_tb"), PipelineMode.TEST)

        assert result.failed_stage == "run"
        assert result.reason == "simulation exited with an error"

    def test_fail_fast_skips_remaining_targets(self, project, fake_toolchain):
        fake_toolchain.run_results["B_tb"] = (True, b"no marker\n")
        targets = [make_target(project, stem) for stem in ("A_tb", "B_tb", "C_tb", "D_tb")]
        runner = PipelineRunner(make_context(project), fake_toolchain)

        outcome = runner.run(targets, PipelineMode.TEST)

        assert [r.target for r in outcome.results] == targets[:2]
        assert outcome.skipped == targets[2:]
        assert fake_toolchain.run_dirs() == ["A_tb", "B_tb"]
        assert not outcome.all_passed

    def test_continue_policy_attempts_everything(self, project, fake_toolchain):
        fake_toolchain.fail_compile.add("A_tb")
        targets = [make_target(project, stem) for stem in ("A_tb", "B_tb", "C_tb")]
        runner = PipelineRunner(make_context(project, FailurePolicy.CONTINUE), fake_toolchain)

        outcome = runner.run(targets, PipelineMode.TEST)

        assert outcome.skipped == []
        assert outcome.failed_count == 1
        assert outcome.passed_count == 2
        assert fake_toolchain.run_dirs() == ["B_tb", "C_tb"]
        assert not outcome.all_passed

    def test_runs_in_given_order(self, project, fake_toolchain):
        targets = [make_target(project, stem) for stem in ("Z_tb", "A_tb", "M_tb")]
        runner = PipelineRunner(make_context(project), fake_toolchain)

        outcome = runner.run(targets, PipelineMode.TEST)

        assert outcome.all_passed
        assert fake_toolchain.run_dirs() == ["Z_tb", "A_tb", "M_tb"]

    def test_failure_output_is_echoed(self, project, fake_toolchain, capsys, monkeypatch):
        monkeypatch.setattr(output, "_output_stream", sys.stdout)
        fake_toolchain.fail_compile.add("A_tb")
        runner = PipelineRunner(make_context(project), fake_toolchain)

        runner.run([make_target(project, "A_tb")], PipelineMode.TEST)

        out = capsys.readouterr().out
        assert "FAIL A_tb" in out
        assert "parse error" in out

    @pytest.mark.parametrize(("verbose", "shown"), [(True, True), (False, False)])
    def test_passing_output_echoed_only_when_verbose(self, project, fake_toolchain, capsys, monkeypatch, verbose, shown):
        monkeypatch.setattr(output, "_output_stream", sys.stdout)
        fake_toolchain.run_results["A_tb"] = (True, b"cycle 42 reached\n>>>PASS\n")
        runner = PipelineRunner(make_context(project, verbose=verbose), fake_toolchain)

        runner.run([make_target(project, "A_tb")], PipelineMode.TEST)

        assert ("cycle 42 reached" in capsys.readouterr().out) is shown

    def test_missing_toolchain_propagates(self, project):
        def missing(cmd, cwd=None):
            raise ToolchainNotFoundError(cmd[0])

        runner = PipelineRunner(make_context(project), missing)

        with pytest.raises(ToolchainNotFoundError):
            runner.run([make_target(project, "A_tb")], PipelineMode.TEST)
