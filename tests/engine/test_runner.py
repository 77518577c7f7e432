# tests/engine/test_runner.py
import pytest

from common.exceptions import (
    ConfigurationError,
    FilesystemError,
    NotFoundError,
    StepCancelledError,
)
from engine.base_step import BaseStep
from engine.models import StepResult, StepStatus
from engine.runner import StepRunner


class RecordingStep(BaseStep):
    """Step whose target state is a flag in a shared dict."""

    def __init__(self, name, state, fail_with=None, result=None, check_raises=False):
        super().__init__(name)
        self.state = state
        self.fail_with = fail_with
        self.result = result
        self.check_raises = check_raises
        self.apply_calls = 0

    def check(self, ctx):
        if self.check_raises:
            raise RuntimeError("probe failed")
        return self.state.get(self.name, False)

    def apply(self, ctx):
        self.apply_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        if self.result is not None:
            return self.result
        self.state[self.name] = True
        return StepResult.succeeded(self.name)


class CancellingStep(BaseStep):
    def check(self, ctx):
        return False

    def apply(self, ctx):
        ctx.cancel_event.set()
        return StepResult.succeeded(self.name)


@pytest.fixture
def runner(fake_platform, install_config, mock_logger):
    return StepRunner(fake_platform, install_config, mock_logger)


class TestRunnerConstruction:
    def test_mismatched_adapter_is_rejected(self, fake_platform, install_config):
        with pytest.raises(ConfigurationError):
            StepRunner(fake_platform, install_config, current_os="plan9")

    def test_matching_adapter_is_accepted(self, fake_platform, install_config):
        runner = StepRunner(
            fake_platform, install_config, current_os=fake_platform.os_name
        )
        assert runner.platform is fake_platform


class TestRunnerExecution:
    def test_all_steps_succeed_then_skip_on_rerun(self, runner):
        state = {}
        steps = [RecordingStep(f"step-{i}", state) for i in range(3)]

        first = runner.run(steps)
        second = runner.run(steps)

        assert first.statuses == [StepStatus.SUCCEEDED] * 3
        assert second.statuses == [StepStatus.SKIPPED] * 3
        assert all(step.apply_calls == 1 for step in steps)
        assert first.succeeded and second.succeeded

    def test_stops_at_first_failure(self, runner):
        state = {}
        steps = [
            RecordingStep("one", state),
            RecordingStep("two", state, fail_with=NotFoundError("missing archive")),
            RecordingStep("three", state),
        ]

        report = runner.run(steps)

        assert len(report) == 2
        assert report.statuses == [StepStatus.SUCCEEDED, StepStatus.FAILED]
        assert isinstance(report.error, NotFoundError)
        assert report.failed_result.name == "two"
        assert steps[2].apply_calls == 0
        assert not report.succeeded

    def test_failed_result_returned_by_step_halts_run(self, runner):
        state = {}
        failing = StepResult.failed("two", message="exit 3", exit_code=3)
        steps = [
            RecordingStep("one", state),
            RecordingStep("two", state, result=failing),
            RecordingStep("three", state),
        ]

        report = runner.run(steps)

        assert len(report) == 2
        assert report.results[-1].exit_code == 3

    def test_unknown_os_error_becomes_filesystem_error(self, runner):
        steps = [RecordingStep("disk", {}, fail_with=OSError(28, "No space left"))]

        report = runner.run(steps)

        assert isinstance(report.error, FilesystemError)

    def test_unexpected_exception_is_attached(self, runner):
        steps = [RecordingStep("boom", {}, fail_with=KeyError("x"))]

        report = runner.run(steps)

        assert isinstance(report.error, KeyError)
        assert report.results[0].status is StepStatus.FAILED

    def test_raising_check_is_treated_as_unsatisfied(self, runner):
        step = RecordingStep("probe", {}, check_raises=True)

        report = runner.run([step])

        assert step.apply_calls == 1
        assert report.statuses == [StepStatus.SUCCEEDED]

    def test_result_name_follows_step_name(self, runner):
        step = RecordingStep("real-name", {}, result=StepResult.succeeded("other"))

        report = runner.run([step])

        assert report.results[0].name == "real-name"

    def test_durations_are_recorded(self, runner):
        report = runner.run([RecordingStep("one", {})])

        assert report.results[0].duration_seconds >= 0
        assert report.finished_at >= report.started_at


class TestDryRun:
    def test_dry_run_does_not_apply(self, runner):
        state = {"done": True}
        steps = [RecordingStep("done", state), RecordingStep("pending", state)]

        report = runner.run(steps, dry_run=True)

        assert report.statuses == [StepStatus.SKIPPED, StepStatus.SUCCEEDED]
        assert report.results[1].message == "would apply"
        assert steps[1].apply_calls == 0
        assert report.dry_run


class TestCancellation:
    def test_cancel_before_run_executes_nothing(self, runner):
        runner.cancel()

        report = runner.run([RecordingStep("one", {})])

        assert len(report) == 0
        assert report.cancelled
        assert not report.succeeded

    def test_cancel_between_steps(self, runner):
        state = {}
        steps = [CancellingStep("cancel"), RecordingStep("after", state)]

        report = runner.run(steps)

        assert len(report) == 1
        assert report.cancelled
        assert steps[1].apply_calls == 0

    def test_cancelled_step_marks_report_cancelled(self, runner):
        steps = [RecordingStep("long", {}, fail_with=StepCancelledError("stopped"))]

        report = runner.run(steps)

        assert report.cancelled
        assert isinstance(report.error, StepCancelledError)


class TestReport:
    def test_summary_and_json(self, runner, tmp_path):
        steps = [RecordingStep("one", {}), RecordingStep("two", {}, fail_with=NotFoundError("gone"))]
        report = runner.run(steps)

        summary = report.summary()
        assert "failed" in summary
        assert "'two'" in summary

        target = tmp_path / "reports" / "run.json"
        report.write_json(target)
        text = target.read_text(encoding="utf-8")
        assert '"NotFoundError"' in text
        assert '"succeeded": false' in text
