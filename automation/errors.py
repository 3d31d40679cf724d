"""Exception hierarchy shared by the recording, replay and coordination layers."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class FlowRunnerError(Exception):
    """Base error carrying a machine readable code and optional details."""

    default_code = "FLOWRUNNER_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = dict(self.details)
        return payload


# ----------------------------------------------------------------------
# import time
# ----------------------------------------------------------------------
class ValidationReason(str, Enum):
    MALFORMED_DOCUMENT = "MalformedDocument"
    MISSING_KIND = "MissingKind"


class RecordingValidationError(FlowRunnerError):
    """Raised when a recording cannot be imported."""

    default_code = "VALIDATION_ERROR"

    def __init__(self, reason: ValidationReason, message: str, *, step_index: Optional[int] = None):
        details: Dict[str, Any] = {"reason": reason.value}
        if step_index is not None:
            details["step_index"] = step_index
        super().__init__(message, details=details)
        self.reason = reason
        self.step_index = step_index


# ----------------------------------------------------------------------
# step level
# ----------------------------------------------------------------------
class StepFailure(FlowRunnerError):
    """A single step could not be completed."""

    default_code = "STEP_FAILED"

    def __init__(self, kind: str, detail: str):
        super().__init__(detail, details={"kind": kind})
        self.kind = kind
        self.detail = detail


class TargetNotFound(StepFailure):
    default_code = "TARGET_NOT_FOUND"


class ExpressionTimeout(StepFailure):
    default_code = "EXPRESSION_TIMEOUT"


# ----------------------------------------------------------------------
# run level
# ----------------------------------------------------------------------
class RunError(FlowRunnerError):
    """Terminal failure for a whole run, raised before or around replay."""

    default_code = "RUN_ERROR"


class TaskNotFound(RunError):
    default_code = "TASK_NOT_FOUND"


class NoStartUrl(RunError):
    default_code = "NO_START_URL"


class PageLoadTimeout(RunError):
    default_code = "PAGE_LOAD_TIMEOUT"


class TransportError(RunError):
    default_code = "TRANSPORT_ERROR"


class StoreError(FlowRunnerError):
    """Persistence layer failure."""

    default_code = "STORE_ERROR"


__all__ = [
    "FlowRunnerError",
    "ValidationReason",
    "RecordingValidationError",
    "StepFailure",
    "TargetNotFound",
    "ExpressionTimeout",
    "RunError",
    "TaskNotFound",
    "NoStartUrl",
    "PageLoadTimeout",
    "TransportError",
    "StoreError",
]
