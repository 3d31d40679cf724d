"""Task model, recording import and run orchestration."""

from . import errors, recording
from .models import ErrorPolicy, LogEntry, RunOutcome, RunStatus, Schedule, Task

__all__ = [
    "errors",
    "recording",
    "ErrorPolicy",
    "LogEntry",
    "RunOutcome",
    "RunStatus",
    "Schedule",
    "Task",
]
