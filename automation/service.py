"""High level service tying import, persistence, triggers and runs together.

The service is the single entry point used by the command line: it imports
recordings as tasks, applies field updates, keeps one trigger per scheduled
task and hands executions to :class:`~automation.coordinator.RunCoordinator`.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Any, Callable, Dict, List, Optional, Sequence

from replay.config import ReplayConfig, load_config
from replay.page_lifecycle import PageLifecycle, PlaywrightPageLifecycle

from .coordinator import RunCoordinator
from .errors import TaskNotFound
from .models import ErrorPolicy, LogEntry, RunOutcome, Schedule, Task
from .notifications import Notifier, build_notifier
from .recording.normalizer import normalize, normalize_json
from .schedule import TriggerPlan, is_scheduled_day, local_zone, next_trigger
from .store import TaskStore
from .transport import InProcessTransport, PageTransport
from .triggers import TriggerScheduler

log = logging.getLogger(__name__)


def _zone_clock(zone: tzinfo) -> Callable[[], datetime]:
    def now() -> datetime:
        return datetime.now(zone)

    return now


class FlowRunnerService:
    def __init__(
        self,
        config: Optional[ReplayConfig] = None,
        *,
        store: Optional[TaskStore] = None,
        pages: Optional[PageLifecycle] = None,
        transport: Optional[PageTransport] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config or load_config()
        if clock is None:
            clock = _zone_clock(local_zone(self.config.timezone))
        self._clock = clock
        self.triggers = TriggerScheduler(self._on_trigger, clock=clock)
        if store is None:
            store = TaskStore(self.config.data_dir, max_logs=self.config.max_logs)
        if store.triggers is None:
            store.triggers = self.triggers
        self.store = store
        self.pages = pages or PlaywrightPageLifecycle(headless=self.config.headless)
        self.transport = transport or InProcessTransport(
            poll_interval_ms=self.config.poll_interval_ms,
            settle_delay_ms=self.config.settle_delay_ms,
            try_all_alternatives=self.config.try_all_alternatives,
            log_root=self.config.log_root,
        )
        self.notifier = notifier or build_notifier(self.config.webhook_url)
        self.coordinator = RunCoordinator(
            self.store,
            self.pages,
            self.transport,
            notifier=self.notifier,
            config=self.config,
        )

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> int:
        """Arm triggers for every enabled schedule; returns how many were armed."""

        armed = 0
        for task in await self.store.get_all_tasks():
            if self._arm(task) is not None:
                armed += 1
        log.info("Service started with %d scheduled task(s)", armed)
        return armed

    async def stop(self) -> None:
        self.triggers.cancel_all()
        closer = getattr(self.pages, "close", None)
        if callable(closer):
            await closer()

    # ------------------------------------------------------------------
    # tasks
    # ------------------------------------------------------------------
    async def import_recording(
        self,
        document: Any,
        *,
        name: Optional[str] = None,
        error_policy: ErrorPolicy | str = ErrorPolicy.STOP,
    ) -> Task:
        if isinstance(document, (str, bytes)):
            recording = normalize_json(document)
        else:
            recording = normalize(document)
        task = Task(
            name=name or recording.title,
            url=recording.start_url or "",
            steps=recording.steps,
            original_json=recording.original,
            error_policy=ErrorPolicy(error_policy),
        )
        return await self.store.save_task(task)

    async def list_tasks(self) -> List[Task]:
        return await self.store.get_all_tasks()

    async def get_task(self, task_id: str) -> Task:
        task = await self.store.get_task(task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} does not exist", details={"task_id": task_id})
        return task

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        task = await self.store.update_task(task_id, **fields)
        if "schedule" in fields or "enabled" in fields:
            self._arm(task)
        return task

    async def set_schedule(
        self,
        task_id: str,
        *,
        enabled: bool,
        time: Optional[str] = None,
        days: Optional[Sequence[int]] = None,
    ) -> Optional[TriggerPlan]:
        task = await self.get_task(task_id)
        data: Dict[str, Any] = task.schedule.model_dump()
        data["enabled"] = enabled
        if time is not None:
            data["time"] = time
        if days is not None:
            data["days"] = list(days)
        schedule = Schedule.model_validate(data)
        task = await self.store.update_task(task_id, schedule=schedule)
        return self._arm(task)

    async def delete_task(self, task_id: str) -> None:
        await self.store.delete_task(task_id)

    # ------------------------------------------------------------------
    # runs
    # ------------------------------------------------------------------
    async def execute_task(self, task_id: str) -> RunOutcome:
        return await self.coordinator.run_task(task_id)

    async def get_logs(self, task_id: Optional[str] = None, limit: int = 50) -> List[LogEntry]:
        return await self.store.get_logs(task_id, limit)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _arm(self, task: Task) -> Optional[TriggerPlan]:
        plan = next_trigger(task.schedule, self._clock()) if task.enabled else None
        if plan is None:
            self.triggers.cancel(task.id)
            return None
        self.triggers.schedule(task.id, plan)
        return plan

    async def _on_trigger(self, task_id: str) -> None:
        task = await self.store.get_task(task_id)
        if task is None:
            log.warning("Trigger fired for missing task %s; cancelling", task_id)
            self.triggers.cancel(task_id)
            return
        if not task.enabled or not task.schedule.enabled:
            log.info("Task %s is disabled; dropping its trigger", task.name)
            self.triggers.cancel(task_id)
            return
        armed = self.triggers.scheduled(task_id)
        if armed is not None and (armed.at.hour, armed.at.minute) != task.schedule.hour_minute():
            log.info("Schedule of task %s moved to %s; re-arming", task.name, task.schedule.time)
            self._arm(task)
            return
        if not is_scheduled_day(task.schedule, self._clock()):
            log.info("Task %s is not scheduled today; skipping", task.name)
            return
        await self.coordinator.run_task(task_id)


__all__ = ["FlowRunnerService"]
