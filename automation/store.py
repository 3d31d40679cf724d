"""JSON file persistence for tasks and run logs."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError

from .errors import StoreError, TaskNotFound
from .models import LogEntry, Task, now_ms

log = logging.getLogger(__name__)

TASKS_FILE = "tasks.json"
LOGS_FILE = "logs.json"
DEFAULT_MAX_LOGS = 100
DEFAULT_LOG_LIMIT = 50

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "url",
        "steps",
        "enabled",
        "error_policy",
        "schedule",
        "last_executed_at",
        "last_status",
    }
)


class TriggerCanceller(Protocol):
    def cancel(self, task_id: str) -> bool: ...


class TaskStore:
    """Task and log collections kept as two JSON documents.

    With ``data_dir=None`` the collections live in memory only.  Every
    read-modify-write cycle runs under one lock so concurrent runs inside a
    process do not lose updates; across processes the last write wins.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        *,
        max_logs: int = DEFAULT_MAX_LOGS,
        triggers: Optional[TriggerCanceller] = None,
    ) -> None:
        self.data_dir = data_dir
        self.max_logs = max_logs
        self.triggers = triggers
        self._lock = asyncio.Lock()
        self._memory: Dict[str, List[Dict[str, Any]]] = {TASKS_FILE: [], LOGS_FILE: []}
        if data_dir is not None:
            try:
                data_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StoreError(f"Cannot create data directory {data_dir}: {exc}") from exc

    # ------------------------------------------------------------------
    # tasks
    # ------------------------------------------------------------------
    async def get_all_tasks(self) -> List[Task]:
        async with self._lock:
            return self._load_tasks()

    async def get_task(self, task_id: str) -> Optional[Task]:
        async with self._lock:
            for task in self._load_tasks():
                if task.id == task_id:
                    return task
        return None

    async def save_task(self, task: Task) -> Task:
        async with self._lock:
            tasks = self._load_tasks()
            if any(existing.id == task.id for existing in tasks):
                raise StoreError(f"Task {task.id} already exists", details={"task_id": task.id})
            tasks.append(task)
            self._dump_tasks(tasks)
        log.info("Task saved: %s", task.id)
        return task

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
        async with self._lock:
            tasks = self._load_tasks()
            for position, task in enumerate(tasks):
                if task.id != task_id:
                    continue
                data = dict(task)
                data.update(fields)
                data["updated_at"] = now_ms()
                try:
                    updated = Task.model_validate(data)
                except ValidationError as exc:
                    raise StoreError(f"Invalid update for task {task_id}: {exc}") from exc
                tasks[position] = updated
                self._dump_tasks(tasks)
                log.info("Task updated: %s (%s)", task_id, ", ".join(sorted(fields)))
                return updated
        raise TaskNotFound(f"Task {task_id} does not exist", details={"task_id": task_id})

    async def delete_task(self, task_id: str) -> None:
        async with self._lock:
            tasks = self._load_tasks()
            remaining = [task for task in tasks if task.id != task_id]
            if len(remaining) == len(tasks):
                raise TaskNotFound(f"Task {task_id} does not exist", details={"task_id": task_id})
            self._dump_tasks(remaining)
        if self.triggers is not None:
            self.triggers.cancel(task_id)
        log.info("Task deleted: %s", task_id)

    # ------------------------------------------------------------------
    # logs
    # ------------------------------------------------------------------
    async def get_logs(self, task_id: Optional[str] = None, limit: int = DEFAULT_LOG_LIMIT) -> List[LogEntry]:
        async with self._lock:
            entries = self._load_logs()
        if task_id:
            entries = [entry for entry in entries if entry.task_id == task_id]
        entries.sort(key=lambda entry: entry.executed_at, reverse=True)
        return entries[:limit]

    async def append_log(self, entry: LogEntry) -> None:
        async with self._lock:
            entries = self._load_logs()
            entries.insert(0, entry)
            self._dump_logs(entries[: self.max_logs])
        log.debug("Log added: %s (%s)", entry.id, entry.status.value)

    async def clear_task_logs(self, task_id: str) -> int:
        async with self._lock:
            entries = self._load_logs()
            remaining = [entry for entry in entries if entry.task_id != task_id]
            self._dump_logs(remaining)
        return len(entries) - len(remaining)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _load_tasks(self) -> List[Task]:
        try:
            return [Task.model_validate(item) for item in self._read(TASKS_FILE)]
        except ValidationError as exc:
            raise StoreError(f"Stored tasks are invalid: {exc}") from exc

    def _dump_tasks(self, tasks: List[Task]) -> None:
        self._write(TASKS_FILE, [task.to_storage() for task in tasks])

    def _load_logs(self) -> List[LogEntry]:
        try:
            return [LogEntry.model_validate(item) for item in self._read(LOGS_FILE)]
        except ValidationError as exc:
            raise StoreError(f"Stored logs are invalid: {exc}") from exc

    def _dump_logs(self, entries: List[LogEntry]) -> None:
        self._write(LOGS_FILE, [entry.model_dump(mode="json", by_alias=True) for entry in entries])

    def _read(self, name: str) -> List[Dict[str, Any]]:
        if self.data_dir is None:
            return [dict(item) for item in self._memory[name]]
        path = self.data_dir / name
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, list):
            raise StoreError(f"{path} does not contain a list")
        return data

    def _write(self, name: str, records: List[Dict[str, Any]]) -> None:
        if self.data_dir is None:
            self._memory[name] = records
            return
        path = self.data_dir / name
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(records, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StoreError(f"Cannot write {path}: {exc}") from exc


__all__ = ["TaskStore", "UPDATABLE_FIELDS", "DEFAULT_MAX_LOGS"]
