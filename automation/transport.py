"""Request/response channel that carries a step list into a page."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import List, Optional, Protocol

from playwright.async_api import Error as PlaywrightError, Page
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SerializeAsAny, field_validator

from replay.interpreter import DEFAULT_SETTLE_DELAY_MS, DEFAULT_STEP_TIMEOUT_MS, StepInterpreter
from replay.runner import DEFAULT_STEP_DELAY_MS, ReplayRunner
from replay.selector_resolver import DEFAULT_POLL_INTERVAL_MS, SelectorResolver
from replay.structured_logging import open_event_log

from .errors import TransportError
from .models import ErrorPolicy, RunOutcome
from .recording.models import StepBase
from .recording.registry import registry

log = logging.getLogger(__name__)


class ExecuteStepsRequest(BaseModel):
    """Everything the page side needs to replay a task."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    run_id: str = Field(default_factory=lambda: f"run-{uuid.uuid4().hex[:8]}", alias="runId")
    task_id: str = Field(alias="taskId", validation_alias=AliasChoices("taskId", "task_id"))
    task_name: str = Field(alias="taskName", validation_alias=AliasChoices("taskName", "task_name"))
    steps: List[SerializeAsAny[StepBase]]
    error_policy: ErrorPolicy = Field(
        default=ErrorPolicy.STOP,
        alias="errorPolicy",
        validation_alias=AliasChoices("errorPolicy", "error_policy"),
    )
    step_timeout_ms: int = Field(
        default=DEFAULT_STEP_TIMEOUT_MS,
        ge=0,
        alias="stepTimeout",
        validation_alias=AliasChoices("stepTimeout", "step_timeout_ms"),
    )
    step_delay_ms: int = Field(
        default=DEFAULT_STEP_DELAY_MS,
        ge=0,
        alias="stepDelay",
        validation_alias=AliasChoices("stepDelay", "step_delay_ms"),
    )

    @field_validator("steps", mode="before")
    @classmethod
    def _parse_steps(cls, value):
        if not isinstance(value, list):
            return value
        return [item if isinstance(item, StepBase) else registry.parse_step(item) for item in value]


class PageTransport(Protocol):
    async def send(self, page: Page, request: ExecuteStepsRequest) -> RunOutcome: ...


class InProcessTransport:
    """Replay directly against the Playwright page owned by this process."""

    def __init__(
        self,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS,
        try_all_alternatives: bool = False,
        log_root: Optional[Path] = None,
    ) -> None:
        self.poll_interval_ms = poll_interval_ms
        self.settle_delay_ms = settle_delay_ms
        self.try_all_alternatives = try_all_alternatives
        self.log_root = log_root

    async def send(self, page: Page, request: ExecuteStepsRequest) -> RunOutcome:
        resolver = SelectorResolver(
            page,
            poll_interval_ms=self.poll_interval_ms,
            try_all_alternatives=self.try_all_alternatives,
        )
        interpreter = StepInterpreter(
            page,
            resolver,
            step_timeout_ms=request.step_timeout_ms,
            settle_delay_ms=self.settle_delay_ms,
            poll_interval_ms=self.poll_interval_ms,
        )
        try:
            event_log = open_event_log(request.run_id, self.log_root)
        except OSError as exc:
            raise TransportError(
                f"Cannot open run log under {self.log_root}: {exc}", details={"run_id": request.run_id}
            ) from exc
        runner = ReplayRunner(
            interpreter,
            error_policy=request.error_policy,
            step_delay_ms=request.step_delay_ms,
            event_log=event_log,
        )
        log.info("Executing %d step(s) of task %s (%s)", len(request.steps), request.task_name, request.run_id)
        try:
            return await runner.run(request.steps)
        except PlaywrightError as exc:
            raise TransportError(f"Page channel failed: {exc}", details={"run_id": request.run_id}) from exc
        except OSError as exc:
            raise TransportError(f"Run log write failed: {exc}", details={"run_id": request.run_id}) from exc
        finally:
            if event_log is not None:
                event_log.close()


__all__ = ["ExecuteStepsRequest", "PageTransport", "InProcessTransport"]
