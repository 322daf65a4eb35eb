"""
Read-time status evaluation for study groups.

The ``status`` column on a group is what was last written (``StoredStatus``).
Scheduled groups never get their row rewritten when their window opens or
closes; callers derive the status that applies right now
(``EffectiveStatus``) from the schedule and the clock instead.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Protocol

StoredStatus = Literal["active", "scheduled", "archived"]
EffectiveStatus = Literal["active", "scheduled", "archived"]


class Schedulable(Protocol):
    status: str
    is_scheduled: bool
    scheduled_start: datetime | None
    scheduled_end: datetime | None


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def in_window(group: Schedulable, now: datetime) -> bool:
    start = as_utc(group.scheduled_start)
    end = as_utc(group.scheduled_end)
    if start is None or end is None:
        return False
    return start <= as_utc(now) <= end


def effective_status(group: Schedulable, now: datetime | None = None) -> EffectiveStatus:
    """
    Unscheduled groups report their stored status verbatim. Scheduled groups
    are ``active`` while ``now`` is inside ``[scheduled_start, scheduled_end]``
    and fall back to the stored status otherwise.
    """
    if not group.is_scheduled:
        return group.status  # type: ignore[return-value]

    if in_window(group, now or now_utc()):
        return "active"
    return group.status  # type: ignore[return-value]


def is_joinable(group: Schedulable, now: datetime | None = None) -> bool:
    return effective_status(group, now) == "active"
