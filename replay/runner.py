"""Sequential replay of a step list with error policy and pacing."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Optional, Protocol, Sequence

from automation.errors import StepFailure
from automation.models import COMPLETION_MESSAGE, ErrorPolicy, RunOutcome, RunStatus
from automation.recording.models import StepBase

from .structured_logging import RunEventLog

log = logging.getLogger(__name__)

DEFAULT_STEP_DELAY_MS = 500


class StepExecutor(Protocol):
    async def execute(self, step: StepBase) -> None: ...


class RunnerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


def compute_status(
    policy: ErrorPolicy,
    *,
    completed: int,
    total: int,
    failed: bool,
    last_error: Optional[BaseException],
) -> RunStatus:
    """Aggregate per-step results into the final run status.

    ``partial`` is reserved for the continue policy reaching the end with
    failures and for runs that under-ran their step list without an error.
    """

    if last_error is not None and policy is ErrorPolicy.STOP:
        return RunStatus.FAILED
    if failed:
        return RunStatus.PARTIAL
    if completed < total:
        return RunStatus.PARTIAL
    return RunStatus.SUCCESS


class ReplayRunner:
    """Drive steps through an interpreter: ``idle -> running -> completed | aborted``."""

    def __init__(
        self,
        interpreter: StepExecutor,
        *,
        error_policy: ErrorPolicy | str = ErrorPolicy.STOP,
        step_delay_ms: int = DEFAULT_STEP_DELAY_MS,
        event_log: Optional[RunEventLog] = None,
    ) -> None:
        self.interpreter = interpreter
        self.error_policy = ErrorPolicy(error_policy)
        self.step_delay_ms = step_delay_ms
        self.event_log = event_log
        self.state = RunnerState.IDLE

    async def run(self, steps: Sequence[StepBase]) -> RunOutcome:
        if self.state is not RunnerState.IDLE:
            raise RuntimeError(f"runner already used (state={self.state.value})")
        self.state = RunnerState.RUNNING

        total = len(steps)
        completed = 0
        failed = False
        last_error: Optional[StepFailure] = None
        started = time.monotonic()
        log.info("Replaying %d step(s) with policy '%s'", total, self.error_policy.value)

        for position, step in enumerate(steps):
            step_started = time.monotonic()
            try:
                await self.interpreter.execute(step)
            except StepFailure as exc:
                last_error = exc
                self._record(step, ok=False, started=step_started, error=exc)
                if self.error_policy is ErrorPolicy.STOP:
                    log.error("Step %d/%d (%s) failed: %s", position + 1, total, step.type, exc)
                    self.state = RunnerState.ABORTED
                    break
                log.warning("Step %d/%d (%s) failed, continuing: %s", position + 1, total, step.type, exc)
                failed = True
                completed += 1
            else:
                completed += 1
                self._record(step, ok=True, started=step_started)

            if position < total - 1:
                await asyncio.sleep(self.step_delay_ms / 1000)

        if self.state is RunnerState.RUNNING:
            self.state = RunnerState.COMPLETED

        status = compute_status(
            self.error_policy,
            completed=completed,
            total=total,
            failed=failed,
            last_error=last_error,
        )
        outcome = RunOutcome(
            status=status,
            completed_steps=completed,
            total_steps=total,
            duration_ms=int((time.monotonic() - started) * 1000),
            message=last_error.message if last_error else COMPLETION_MESSAGE,
        )
        log.info(
            "Replay finished: %s (%d/%d steps, %d ms)",
            outcome.status.value,
            outcome.completed_steps,
            outcome.total_steps,
            outcome.duration_ms,
        )
        if self.event_log is not None:
            self.event_log.log_outcome(outcome.as_dict())
        return outcome

    def _record(
        self,
        step: StepBase,
        *,
        ok: bool,
        started: float,
        error: Optional[StepFailure] = None,
    ) -> None:
        if self.event_log is None:
            return
        self.event_log.log_step(
            index=step.index,
            kind=step.type,
            ok=ok,
            duration_ms=int((time.monotonic() - started) * 1000),
            error=error.message if error else None,
            error_code=error.code if error else None,
        )


__all__ = ["ReplayRunner", "RunnerState", "compute_status", "DEFAULT_STEP_DELAY_MS"]
