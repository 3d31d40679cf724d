"""Recurring task triggers on top of asyncio."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional

from .schedule import TriggerPlan

log = logging.getLogger(__name__)

FireCallback = Callable[[str], Awaitable[None]]


def seconds_until(when: datetime, now: datetime) -> float:
    """Real seconds between two instants, even when they straddle a DST change."""

    return when.timestamp() - now.timestamp()


class TriggerScheduler:
    """Keep one timer per task that fires at ``plan.at`` and then every interval.

    The fire callback is awaited inside the timer, so a slow run delays the
    next firing rather than overlapping with it.  Errors raised by the
    callback are logged and the cadence continues.
    """

    def __init__(
        self,
        on_fire: FireCallback,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ) -> None:
        self.on_fire = on_fire
        self._clock = clock
        self._timers: Dict[str, asyncio.Task[None]] = {}
        self._plans: Dict[str, TriggerPlan] = {}

    def schedule(self, task_id: str, plan: TriggerPlan) -> None:
        self.cancel(task_id)
        self._plans[task_id] = plan
        self._timers[task_id] = asyncio.create_task(self._run(task_id, plan), name=f"trigger:{task_id}")
        log.info("Trigger set for task %s, next run %s", task_id, plan.at.isoformat())

    def cancel(self, task_id: str) -> bool:
        timer = self._timers.pop(task_id, None)
        self._plans.pop(task_id, None)
        if timer is None:
            return False
        timer.cancel()
        log.info("Trigger cancelled for task %s", task_id)
        return True

    def cancel_all(self) -> None:
        for task_id in list(self._timers):
            self.cancel(task_id)

    def scheduled(self, task_id: str) -> Optional[TriggerPlan]:
        return self._plans.get(task_id)

    def __len__(self) -> int:
        return len(self._timers)

    async def _run(self, task_id: str, plan: TriggerPlan) -> None:
        fire_at = plan.at
        interval = timedelta(milliseconds=plan.repeat_interval_ms)
        while True:
            delay = seconds_until(fire_at, self._clock())
            if delay > 0:
                await asyncio.sleep(delay)
            log.info("Trigger fired for task %s", task_id)
            try:
                await self.on_fire(task_id)
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Trigger callback for task %s failed", task_id)
            fire_at += interval


__all__ = ["TriggerScheduler", "FireCallback", "seconds_until"]
