import pytest
from pydantic import ValidationError

from automation.models import ErrorPolicy, RunOutcome, RunStatus, Schedule, Task, generate_id
from automation.recording import ClickStep, StepKind, UnknownStep, registry
from automation.recording.models import normalize_selector_groups


def test_registry_covers_every_known_kind():
    supported = {kind.value for kind in StepKind if kind is not StepKind.UNKNOWN}

    assert set(registry.schema()) == supported
    assert registry.schema()["click"]["needs_target"] is True
    assert registry.schema()["keyDown"]["needs_target"] is False


def test_registry_falls_back_to_unknown_model():
    step = registry.parse_step({"type": "customAssertion", "index": 0, "target": "main"})

    assert isinstance(step, UnknownStep)
    assert step.kind is StepKind.UNKNOWN
    assert not registry.is_supported("customAssertion")
    with pytest.raises(KeyError):
        registry.get("customAssertion")


def test_registry_rejects_unknown_model_registration():
    with pytest.raises(ValueError):
        registry.register(UnknownStep)


def test_parse_step_index_override():
    step = registry.parse_step({"type": "click", "index": 5, "selectors": [["#a"]]}, index=2)

    assert isinstance(step, ClickStep)
    assert step.index == 2


def test_unknown_steps_keep_a_differing_recorded_index():
    moved = registry.parse_step({"type": "customAssertion", "index": 5}, index=2)
    same = registry.parse_step({"type": "customAssertion", "index": 2}, index=2)

    assert moved.index == 2
    assert moved.payload()["recordedIndex"] == 5
    assert "recordedIndex" not in same.payload()


def test_steps_are_immutable():
    step = registry.parse_step({"type": "click", "index": 0, "selectors": [["#a"]]})

    with pytest.raises(ValidationError):
        step.index = 3


def test_step_kind_from_type():
    assert StepKind.from_type("doubleClick") is StepKind.DOUBLE_CLICK
    assert StepKind.from_type("dragAndDrop") is StepKind.UNKNOWN


def test_normalize_selector_groups_ignores_garbage():
    assert normalize_selector_groups("#a") == []
    assert normalize_selector_groups(None) == []
    assert normalize_selector_groups([["#a", None], 3, "#b"]) == [["#a"], ["#b"]]


def test_schedule_defaults_and_normalization():
    schedule = Schedule()

    assert schedule.enabled is False
    assert schedule.time == "09:00"
    assert schedule.days == [1, 2, 3, 4, 5]

    schedule = Schedule(enabled=True, time="7:05", days=[5, 1, 1])
    assert schedule.time == "07:05"
    assert schedule.days == [1, 5]
    assert schedule.hour_minute() == (7, 5)


@pytest.mark.parametrize("time", ["25:00", "09:60", "nine", ""])
def test_schedule_rejects_bad_times(time):
    with pytest.raises(ValidationError):
        Schedule(time=time)


def test_schedule_rejects_out_of_range_days():
    with pytest.raises(ValidationError):
        Schedule(days=[0, 7])


def test_task_defaults():
    task = Task(name="  ")

    assert task.name == "Untitled task"
    assert task.enabled is True
    assert task.error_policy is ErrorPolicy.STOP
    assert task.last_status is None
    assert task.created_at > 0


def test_task_start_url_prefers_explicit_url():
    steps = [{"type": "navigate", "index": 0, "url": "https://from-step"}]

    assert Task(url="https://explicit", steps=steps).start_url == "https://explicit"
    assert Task(url="", steps=steps).start_url == "https://from-step"
    assert Task(steps=[{"type": "click", "index": 0}]).start_url is None


def test_task_storage_round_trip_keeps_step_types():
    task = Task(
        name="Report",
        url="https://x",
        steps=[
            {"type": "navigate", "index": 0, "url": "https://x"},
            {"type": "change", "index": 1, "selectors": [["#q"]], "value": "abc"},
            {"type": "customThing", "index": 2, "extra": True},
        ],
        error_policy="continue",
    )

    stored = task.to_storage()
    assert stored["errorPolicy"] == "continue"
    assert stored["steps"][1]["value"] == "abc"
    assert stored["steps"][2]["extra"] is True

    restored = Task.model_validate(stored)
    assert restored.to_storage() == stored
    assert [step.kind for step in restored.steps] == [StepKind.NAVIGATE, StepKind.CHANGE, StepKind.UNKNOWN]


def test_run_outcome_failure_and_dict():
    outcome = RunOutcome.failure("Page load timed out", total_steps=4, duration_ms=30)

    assert outcome.status is RunStatus.FAILED
    assert outcome.completed_steps == 0
    assert outcome.as_dict() == {
        "status": "failed",
        "completedSteps": 0,
        "totalSteps": 4,
        "durationMs": 30,
        "message": "Page load timed out",
        "success": False,
    }


def test_generated_ids_are_time_prefixed():
    first, second = generate_id(), generate_id()

    prefix, suffix = first.split("-")
    assert prefix.isdigit()
    assert len(suffix) == 9
    assert first != second
