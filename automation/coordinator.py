"""Run one task end to end: open its page, replay, record the outcome."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from replay.config import ReplayConfig
from replay.page_lifecycle import PageLifecycle

from .errors import FlowRunnerError, NoStartUrl, PageLoadTimeout, TaskNotFound
from .models import LogEntry, RunOutcome, RunStatus, Task, now_ms
from .notifications import LogNotifier, Notifier
from .store import TaskStore
from .transport import ExecuteStepsRequest, PageTransport

log = logging.getLogger(__name__)

UNKNOWN_TASK_NAME = "Unknown task"


class RunCoordinator:
    """Turn a task id into exactly one RunOutcome, log entry and status update.

    The task is read from the store on every invocation; nothing is cached
    between runs.
    """

    def __init__(
        self,
        store: TaskStore,
        pages: PageLifecycle,
        transport: PageTransport,
        notifier: Optional[Notifier] = None,
        config: Optional[ReplayConfig] = None,
    ) -> None:
        self.store = store
        self.pages = pages
        self.transport = transport
        self.notifier = notifier or LogNotifier()
        self.config = config or ReplayConfig(data_dir=None, log_root=None)

    async def run_task(self, task_id: str) -> RunOutcome:
        started = time.monotonic()
        task: Optional[Task] = None
        try:
            task = await self.store.get_task(task_id)
            if task is None:
                raise TaskNotFound(f"Task {task_id} does not exist", details={"task_id": task_id})
            log.info("Executing task %s (%s)", task.name, task.id)
            outcome = await self._replay(task)
        except FlowRunnerError as exc:
            log.error("Task %s could not run: %s", task_id, exc.message)
            outcome = self._failure(exc.message, task, started)
        except Exception as exc:
            log.exception("Task %s crashed", task_id)
            outcome = self._failure(str(exc) or type(exc).__name__, task, started)
        await self._record(task_id, task, outcome)
        return outcome

    @staticmethod
    def _failure(message: str, task: Optional[Task], started: float) -> RunOutcome:
        return RunOutcome.failure(
            message,
            total_steps=len(task.steps) if task else 0,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    async def _replay(self, task: Task) -> RunOutcome:
        url = task.start_url
        if not url:
            raise NoStartUrl("Cannot determine the start URL", details={"task_id": task.id})

        timeout_ms = self.config.page_load_timeout_ms
        deadline = time.monotonic() + timeout_ms / 1000
        try:
            page = await asyncio.wait_for(self.pages.open_and_activate(url), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise PageLoadTimeout(f"Page load timed out after {timeout_ms} ms", details={"url": url}) from exc

        try:
            remaining_ms = int((deadline - time.monotonic()) * 1000)
            await self.pages.await_load_complete(page, remaining_ms)
            request = ExecuteStepsRequest(
                task_id=task.id,
                task_name=task.name,
                steps=task.steps,
                error_policy=task.error_policy,
                step_timeout_ms=self.config.step_timeout_ms,
                step_delay_ms=self.config.step_delay_ms,
            )
            return await self.transport.send(page, request)
        finally:
            if not self.config.keep_pages_open:
                await self.pages.release(page)

    async def _record(self, task_id: str, task: Optional[Task], outcome: RunOutcome) -> None:
        task_name = task.name if task else UNKNOWN_TASK_NAME
        try:
            await self.store.append_log(LogEntry.from_outcome(task_id, task_name, outcome))
        except FlowRunnerError as exc:
            log.error("Could not append log for task %s: %s", task_id, exc)

        if task is not None:
            try:
                await self.store.update_task(
                    task_id, last_executed_at=now_ms(), last_status=outcome.status
                )
            except FlowRunnerError as exc:
                log.error("Could not update status of task %s: %s", task_id, exc)

        if not self.config.notify_on_complete:
            return
        if outcome.status is RunStatus.SUCCESS:
            await self._notify("Run succeeded", f"{task_name} completed")
        elif outcome.status is RunStatus.FAILED:
            await self._notify("Run failed", f"{task_name} failed: {outcome.message}")

    async def _notify(self, title: str, body: str) -> None:
        try:
            await self.notifier.notify(title, body)
        except Exception:
            log.exception("Notification failed: %s", title)


__all__ = ["RunCoordinator", "UNKNOWN_TASK_NAME"]
