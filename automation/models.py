"""Task, schedule, run outcome and log records."""

from __future__ import annotations

import random
import re
import string
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    field_validator,
)

from automation.recording.models import NavigateStep, StepBase
from automation.recording.registry import registry

DEFAULT_TASK_NAME = "Untitled task"
DEFAULT_SCHEDULE_TIME = "09:00"
WEEKDAYS = [1, 2, 3, 4, 5]
COMPLETION_MESSAGE = "Execution completed"

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
_ID_ALPHABET = string.digits + string.ascii_lowercase


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_id() -> str:
    """Time prefixed identifier: ``<epoch ms>-<9 base36 chars>``."""

    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{now_ms()}-{suffix}"


class ErrorPolicy(str, Enum):
    STOP = "stop"
    CONTINUE = "continue"


class RunStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


def parse_time_of_day(value: str) -> Tuple[int, int]:
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"time must look like HH:MM, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"time out of range: {value!r}")
    return hour, minute


class Schedule(BaseModel):
    """Daily trigger configuration; ``days`` uses 0=Sunday .. 6=Saturday."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    time: str = DEFAULT_SCHEDULE_TIME
    days: List[int] = Field(default_factory=lambda: list(WEEKDAYS))

    @field_validator("time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        hour, minute = parse_time_of_day(value)
        return f"{hour:02d}:{minute:02d}"

    @field_validator("days")
    @classmethod
    def _validate_days(cls, value: List[int]) -> List[int]:
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError("days must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(value))

    def hour_minute(self) -> Tuple[int, int]:
        return parse_time_of_day(self.time)


class Task(BaseModel):
    """A named automation unit built from an imported recording."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    name: str = DEFAULT_TASK_NAME
    url: str = ""
    steps: List[SerializeAsAny[StepBase]] = Field(default_factory=list)
    original_json: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="originalJson",
        validation_alias=AliasChoices("originalJson", "original_json"),
    )
    enabled: bool = True
    error_policy: ErrorPolicy = Field(
        default=ErrorPolicy.STOP,
        alias="errorPolicy",
        validation_alias=AliasChoices("errorPolicy", "error_policy"),
    )
    schedule: Schedule = Field(default_factory=Schedule)
    created_at: int = Field(
        default_factory=now_ms, alias="createdAt", validation_alias=AliasChoices("createdAt", "created_at")
    )
    updated_at: int = Field(
        default_factory=now_ms, alias="updatedAt", validation_alias=AliasChoices("updatedAt", "updated_at")
    )
    last_executed_at: Optional[int] = Field(
        default=None,
        alias="lastExecutedAt",
        validation_alias=AliasChoices("lastExecutedAt", "last_executed_at"),
    )
    last_status: Optional[RunStatus] = Field(
        default=None,
        alias="lastStatus",
        validation_alias=AliasChoices("lastStatus", "last_status"),
    )

    @field_validator("steps", mode="before")
    @classmethod
    def _parse_steps(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [item if isinstance(item, StepBase) else registry.parse_step(item) for item in value]

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_TASK_NAME
        return value

    @field_validator("url", mode="before")
    @classmethod
    def _default_url(cls, value: Any) -> Any:
        return value or ""

    @property
    def start_url(self) -> Optional[str]:
        if self.url:
            return self.url
        for step in self.steps:
            if isinstance(step, NavigateStep) and step.url:
                return step.url
        return None

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RunOutcome(BaseModel):
    """Terminal result of one replay."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    status: RunStatus
    completed_steps: int = Field(
        default=0, ge=0, alias="completedSteps", validation_alias=AliasChoices("completedSteps", "completed_steps")
    )
    total_steps: int = Field(
        default=0, ge=0, alias="totalSteps", validation_alias=AliasChoices("totalSteps", "total_steps")
    )
    duration_ms: int = Field(
        default=0, ge=0, alias="durationMs", validation_alias=AliasChoices("durationMs", "duration_ms")
    )
    message: str = COMPLETION_MESSAGE

    @property
    def success(self) -> bool:
        return self.status is RunStatus.SUCCESS

    @classmethod
    def failure(cls, message: str, *, total_steps: int = 0, duration_ms: int = 0) -> "RunOutcome":
        return cls(
            status=RunStatus.FAILED,
            completed_steps=0,
            total_steps=total_steps,
            duration_ms=duration_ms,
            message=message,
        )

    def as_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True)
        data["success"] = self.success
        return data


class LogEntry(BaseModel):
    """Persisted record of one run."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=generate_id)
    task_id: str = Field(alias="taskId", validation_alias=AliasChoices("taskId", "task_id"))
    task_name: str = Field(alias="taskName", validation_alias=AliasChoices("taskName", "task_name"))
    status: RunStatus
    message: str = ""
    duration: int = 0
    executed_at: int = Field(
        default_factory=now_ms, alias="executedAt", validation_alias=AliasChoices("executedAt", "executed_at")
    )

    @classmethod
    def from_outcome(cls, task_id: str, task_name: str, outcome: RunOutcome) -> "LogEntry":
        return cls(
            task_id=task_id,
            task_name=task_name,
            status=outcome.status,
            message=outcome.message,
            duration=outcome.duration_ms,
        )


__all__ = [
    "DEFAULT_TASK_NAME",
    "COMPLETION_MESSAGE",
    "ErrorPolicy",
    "RunStatus",
    "Schedule",
    "Task",
    "RunOutcome",
    "LogEntry",
    "generate_id",
    "now_ms",
    "parse_time_of_day",
]
