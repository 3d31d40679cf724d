"""Daily trigger computation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import Schedule

DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True, slots=True)
class TriggerPlan:
    at: datetime
    repeat_interval_ms: int = DAY_MS

    @property
    def at_ms(self) -> int:
        return int(self.at.timestamp() * 1000)


def local_zone(name: str = "") -> tzinfo:
    """Zone used for schedule times.

    An IANA name (``Europe/Berlin``) keeps wall-clock times stable across
    daylight saving changes.  Without one the current system offset is used,
    which is fixed and drifts by the DST shift until the trigger is re-armed.
    """

    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone {name!r}") from exc
    return datetime.now().astimezone().tzinfo


def next_trigger(schedule: Schedule, now: datetime) -> Optional[TriggerPlan]:
    """Return the next firing instant for ``schedule`` or ``None`` when disabled.

    The candidate is today at the configured time in ``now``'s timezone; it
    moves to tomorrow unless it is strictly after ``now``.  The cadence is
    always daily; day-of-week filtering happens at fire time through
    :func:`is_scheduled_day`.
    """

    if not schedule.enabled:
        return None
    hour, minute = schedule.hour_minute()
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return TriggerPlan(at=candidate, repeat_interval_ms=DAY_MS)


def recorder_weekday(when: datetime) -> int:
    """Day number in the 0=Sunday .. 6=Saturday convention used by schedules."""

    return (when.weekday() + 1) % 7


def is_scheduled_day(schedule: Schedule, when: datetime) -> bool:
    if not schedule.days:
        return True
    return recorder_weekday(when) in schedule.days


__all__ = ["DAY_MS", "TriggerPlan", "local_zone", "next_trigger", "is_scheduled_day", "recorder_weekday"]
