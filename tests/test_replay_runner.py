import asyncio
import json

import pytest

from automation.errors import TargetNotFound
from automation.models import ErrorPolicy, RunStatus
from automation.recording import registry
from replay import runner as runner_module
from replay.runner import ReplayRunner, RunnerState, compute_status
from replay.structured_logging import open_event_log


class ScriptedInterpreter:
    """Executes nothing; fails the steps whose index is listed."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.executed = []

    async def execute(self, step):
        self.executed.append(step.index)
        if step.index in self.failing:
            raise TargetNotFound(step.type, f"Step {step.index + 1}: click target not found")


def _steps(*kinds):
    payloads = {
        "click": {"type": "click", "selectors": [["#a"]]},
        "change": {"type": "change", "selectors": [["#q"]], "value": "x"},
        "keyDown": {"type": "keyDown", "key": "Enter"},
    }
    return [registry.parse_step(payloads[kind], index=i) for i, kind in enumerate(kinds)]


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr(runner_module.asyncio, "sleep", fake_sleep)
    return recorded


def test_all_steps_succeed(sleeps):
    interpreter = ScriptedInterpreter()
    runner = ReplayRunner(interpreter, error_policy="stop", step_delay_ms=500)

    outcome = asyncio.run(runner.run(_steps("click", "change", "keyDown")))

    assert outcome.status is RunStatus.SUCCESS
    assert (outcome.completed_steps, outcome.total_steps) == (3, 3)
    assert outcome.message == "Execution completed"
    assert runner.state is RunnerState.COMPLETED
    assert sleeps == [0.5, 0.5]


def test_continue_policy_reports_partial():
    runner = ReplayRunner(ScriptedInterpreter(failing={0}), error_policy=ErrorPolicy.CONTINUE, step_delay_ms=0)

    outcome = asyncio.run(runner.run(_steps("click", "change")))

    assert outcome.status is RunStatus.PARTIAL
    assert outcome.completed_steps == 2
    assert outcome.total_steps == 2
    assert outcome.message == "Step 1: click target not found"
    assert runner.state is RunnerState.COMPLETED


def test_stop_policy_aborts_at_first_failure():
    interpreter = ScriptedInterpreter(failing={0})
    runner = ReplayRunner(interpreter, error_policy=ErrorPolicy.STOP, step_delay_ms=0)

    outcome = asyncio.run(runner.run(_steps("click", "change")))

    assert outcome.status is RunStatus.FAILED
    assert outcome.completed_steps == 0
    assert outcome.total_steps == 2
    assert interpreter.executed == [0]
    assert runner.state is RunnerState.ABORTED


def test_stop_policy_counts_steps_before_the_failure():
    interpreter = ScriptedInterpreter(failing={2})
    runner = ReplayRunner(interpreter, error_policy="stop", step_delay_ms=0)

    outcome = asyncio.run(runner.run(_steps("click", "change", "keyDown")))

    assert outcome.status is RunStatus.FAILED
    assert outcome.completed_steps == 2
    assert interpreter.executed == [0, 1, 2]


def test_delay_applies_after_failures_under_continue(sleeps):
    runner = ReplayRunner(ScriptedInterpreter(failing={0, 1}), error_policy="continue", step_delay_ms=250)

    outcome = asyncio.run(runner.run(_steps("click", "change", "keyDown")))

    assert outcome.status is RunStatus.PARTIAL
    assert sleeps == [0.25, 0.25]


def test_empty_step_list_succeeds():
    outcome = asyncio.run(ReplayRunner(ScriptedInterpreter()).run([]))

    assert outcome.status is RunStatus.SUCCESS
    assert (outcome.completed_steps, outcome.total_steps) == (0, 0)


def test_runner_cannot_be_reused():
    runner = ReplayRunner(ScriptedInterpreter(), step_delay_ms=0)
    asyncio.run(runner.run(_steps("click")))

    with pytest.raises(RuntimeError):
        asyncio.run(runner.run(_steps("click")))


@pytest.mark.parametrize(
    "policy, completed, total, failed, error, expected",
    [
        (ErrorPolicy.STOP, 3, 3, False, None, RunStatus.SUCCESS),
        (ErrorPolicy.STOP, 1, 3, False, TargetNotFound("click", "x"), RunStatus.FAILED),
        (ErrorPolicy.CONTINUE, 3, 3, True, TargetNotFound("click", "x"), RunStatus.PARTIAL),
        (ErrorPolicy.CONTINUE, 3, 3, False, None, RunStatus.SUCCESS),
        (ErrorPolicy.STOP, 2, 3, False, None, RunStatus.PARTIAL),
    ],
)
def test_compute_status(policy, completed, total, failed, error, expected):
    status = compute_status(policy, completed=completed, total=total, failed=failed, last_error=error)

    assert status is expected


def test_event_log_records_steps_and_outcome(tmp_path):
    event_log = open_event_log("run-test", tmp_path)
    runner = ReplayRunner(
        ScriptedInterpreter(failing={1}), error_policy="continue", step_delay_ms=0, event_log=event_log
    )

    with event_log:
        asyncio.run(runner.run(_steps("click", "change")))

    lines = (tmp_path / "run-test" / "events.jsonl").read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    assert [record["event"] for record in records] == ["step", "step", "outcome"]
    assert [record.get("ok") for record in records[:2]] == [True, False]
    assert records[1]["error_code"] == "TARGET_NOT_FOUND"
    assert records[1]["kind"] == "change"
    assert records[2]["outcome"]["status"] == "partial"
