import asyncio
import json

import pytest

from automation.errors import StoreError, TaskNotFound
from automation.models import ErrorPolicy, LogEntry, RunStatus, Schedule, Task
from automation.store import TaskStore


class RecordingTriggers:
    def __init__(self):
        self.cancelled = []

    def cancel(self, task_id):
        self.cancelled.append(task_id)
        return True


def _task(**fields):
    fields.setdefault("name", "Daily report")
    fields.setdefault("url", "https://reports.test")
    fields.setdefault("steps", [{"type": "click", "index": 0, "selectors": [["#export"]]}])
    return Task(**fields)


def _entry(task_id, status=RunStatus.SUCCESS, executed_at=None, name="Daily report"):
    data = {"task_id": task_id, "task_name": name, "status": status, "message": "Execution completed"}
    if executed_at is not None:
        data["executed_at"] = executed_at
    return LogEntry(**data)


def test_save_and_get_task():
    store = TaskStore()
    task = _task()

    async def scenario():
        await store.save_task(task)
        return await store.get_task(task.id), await store.get_task("missing")

    found, missing = asyncio.run(scenario())

    assert found.id == task.id
    assert found.steps[0].selectors == [["#export"]]
    assert missing is None


def test_duplicate_ids_are_rejected():
    store = TaskStore()
    task = _task()

    async def scenario():
        await store.save_task(task)
        await store.save_task(task)

    with pytest.raises(StoreError):
        asyncio.run(scenario())


def test_update_task_changes_fields_and_timestamp():
    store = TaskStore()
    task = _task(updated_at=1)

    async def scenario():
        await store.save_task(task)
        return await store.update_task(
            task.id,
            error_policy=ErrorPolicy.CONTINUE,
            schedule=Schedule(enabled=True, time="07:30"),
        )

    updated = asyncio.run(scenario())

    assert updated.error_policy is ErrorPolicy.CONTINUE
    assert updated.schedule.time == "07:30"
    assert updated.updated_at > 1
    assert updated.created_at == task.created_at


def test_update_rejects_unknown_fields_and_missing_tasks():
    store = TaskStore()

    with pytest.raises(ValueError):
        asyncio.run(store.update_task("whatever", id="new-id"))
    with pytest.raises(TaskNotFound):
        asyncio.run(store.update_task("missing", enabled=False))


def test_invalid_update_values_raise_store_error():
    store = TaskStore()
    task = _task()
    asyncio.run(store.save_task(task))

    with pytest.raises(StoreError):
        asyncio.run(store.update_task(task.id, error_policy="sometimes"))


def test_delete_cancels_trigger():
    triggers = RecordingTriggers()
    store = TaskStore(triggers=triggers)
    task = _task()

    async def scenario():
        await store.save_task(task)
        await store.delete_task(task.id)
        return await store.get_all_tasks()

    assert asyncio.run(scenario()) == []
    assert triggers.cancelled == [task.id]

    with pytest.raises(TaskNotFound):
        asyncio.run(store.delete_task(task.id))


def test_log_retention_keeps_newest_entries():
    store = TaskStore(max_logs=3)

    async def scenario():
        for n in range(5):
            await store.append_log(_entry("task-1", executed_at=1000 + n))
        return await store.get_logs()

    entries = asyncio.run(scenario())

    assert [entry.executed_at for entry in entries] == [1004, 1003, 1002]


def test_get_logs_filters_by_task_and_limit():
    store = TaskStore()

    async def scenario():
        await store.append_log(_entry("task-1", executed_at=1))
        await store.append_log(_entry("task-2", RunStatus.FAILED, executed_at=2))
        await store.append_log(_entry("task-1", RunStatus.PARTIAL, executed_at=3))
        return (
            await store.get_logs("task-1"),
            await store.get_logs(limit=1),
        )

    task_logs, limited = asyncio.run(scenario())

    assert [entry.status for entry in task_logs] == [RunStatus.PARTIAL, RunStatus.SUCCESS]
    assert [entry.task_id for entry in limited] == ["task-1"]


def test_clear_task_logs():
    store = TaskStore()

    async def scenario():
        await store.append_log(_entry("task-1"))
        await store.append_log(_entry("task-2"))
        await store.append_log(_entry("task-1"))
        removed = await store.clear_task_logs("task-1")
        return removed, await store.get_logs()

    removed, remaining = asyncio.run(scenario())

    assert removed == 2
    assert [entry.task_id for entry in remaining] == ["task-2"]


def test_tasks_and_logs_persist_to_json_files(tmp_path):
    task = _task(steps=[{"type": "navigate", "index": 0, "url": "https://reports.test"}])

    async def write():
        store = TaskStore(tmp_path)
        await store.save_task(task)
        await store.append_log(_entry(task.id))

    asyncio.run(write())

    stored = json.loads((tmp_path / "tasks.json").read_text(encoding="utf-8"))
    assert stored[0]["id"] == task.id
    assert stored[0]["errorPolicy"] == "stop"
    assert stored[0]["steps"][0]["type"] == "navigate"
    logs = json.loads((tmp_path / "logs.json").read_text(encoding="utf-8"))
    assert logs[0]["taskId"] == task.id

    async def read():
        store = TaskStore(tmp_path)
        return await store.get_task(task.id), await store.get_logs(task.id)

    reloaded, entries = asyncio.run(read())
    assert reloaded.start_url == "https://reports.test"
    assert len(entries) == 1


def test_corrupt_files_raise_store_error(tmp_path):
    (tmp_path / "tasks.json").write_text("{broken", encoding="utf-8")

    with pytest.raises(StoreError):
        asyncio.run(TaskStore(tmp_path).get_all_tasks())
