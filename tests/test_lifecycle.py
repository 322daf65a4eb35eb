from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from studyhub.models.study_group import StudyGroup
from studyhub.services.lifecycle import as_utc, effective_status, is_joinable

NOW = datetime(2026, 3, 2, 14, 0, tzinfo=timezone.utc)


def _scheduled(status: str = "scheduled", start_in: timedelta = timedelta(hours=1), length: timedelta = timedelta(hours=1)):
    return SimpleNamespace(
        status=status,
        is_scheduled=True,
        scheduled_start=NOW + start_in,
        scheduled_end=NOW + start_in + length,
    )


@pytest.mark.parametrize("stored", ["active", "scheduled", "archived"])
@pytest.mark.parametrize("offset_hours", [-48, 0, 3, 1000])
def test_unscheduled_group_reports_stored_status(stored, offset_hours):
    g = SimpleNamespace(status=stored, is_scheduled=False, scheduled_start=None, scheduled_end=None)
    assert effective_status(g, NOW + timedelta(hours=offset_hours)) == stored


def test_unscheduled_group_ignores_stale_window():
    g = SimpleNamespace(
        status="archived",
        is_scheduled=False,
        scheduled_start=NOW - timedelta(hours=1),
        scheduled_end=NOW + timedelta(hours=1),
    )
    assert effective_status(g, NOW) == "archived"
    assert is_joinable(g, NOW) is False


def test_scheduled_group_is_active_only_inside_window():
    g = _scheduled()
    start, end = g.scheduled_start, g.scheduled_end

    assert effective_status(g, start - timedelta(seconds=1)) == "scheduled"
    assert effective_status(g, start) == "active"
    assert effective_status(g, start + timedelta(minutes=30)) == "active"
    assert effective_status(g, end) == "active"
    # after the window the stale stored value shows through
    assert effective_status(g, end + timedelta(seconds=1)) == "scheduled"


def test_scheduled_group_outside_window_falls_back_to_any_stored_value():
    g = _scheduled(status="active", start_in=timedelta(hours=-5))
    assert effective_status(g, NOW) == "active"
    g.status = "archived"
    assert effective_status(g, NOW) == "archived"


def test_joinability_flips_as_clock_crosses_window():
    g = _scheduled()
    timeline = [
        g.scheduled_start - timedelta(minutes=1),
        g.scheduled_start + timedelta(minutes=1),
        g.scheduled_end + timedelta(minutes=1),
    ]
    assert [is_joinable(g, t) for t in timeline] == [False, True, False]


def test_evaluation_is_idempotent():
    g = _scheduled(start_in=timedelta(minutes=-10))
    first = effective_status(g, NOW)
    assert effective_status(g, NOW) == first == "active"
    assert g.status == "scheduled"


def test_naive_datetimes_are_treated_as_utc():
    g = SimpleNamespace(
        status="scheduled",
        is_scheduled=True,
        scheduled_start=datetime(2026, 3, 2, 13, 0),
        scheduled_end=datetime(2026, 3, 2, 15, 0),
    )
    assert effective_status(g, NOW) == "active"
    # 16:00 in UTC+2 is 14:00 UTC
    plus_two = timezone(timedelta(hours=2))
    assert effective_status(g, datetime(2026, 3, 2, 16, 0, tzinfo=plus_two)) == "active"


def test_scheduled_group_missing_window_is_never_active():
    g = SimpleNamespace(status="scheduled", is_scheduled=True, scheduled_start=NOW, scheduled_end=None)
    assert effective_status(g, NOW) == "scheduled"


def test_works_with_orm_instances():
    g = StudyGroup(
        name="Algo Study",
        subject="CS",
        status="scheduled",
        is_scheduled=True,
        scheduled_start=NOW + timedelta(hours=1),
        scheduled_end=NOW + timedelta(hours=2),
    )
    assert effective_status(g, NOW) == "scheduled"
    assert is_joinable(g, NOW) is False
    assert effective_status(g, NOW + timedelta(minutes=90)) == "active"
    assert is_joinable(g, NOW + timedelta(minutes=90)) is True


def test_as_utc_converts_offsets():
    value = datetime(2026, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=-5)))
    assert as_utc(value) == datetime(2026, 1, 1, 17, 0, tzinfo=timezone.utc)
    assert as_utc(None) is None
