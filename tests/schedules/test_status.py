from datetime import date, datetime, time, timedelta

import pytest

from course_sessions.core.enums import ComputedStatus
from course_sessions.core.exceptions import ValidationError
from course_sessions.schedules.model import ClassSession
from course_sessions.schedules.status import compute_status, parse_computed_status, status_window

TODAY = date(2024, 3, 13)


def _session(day: date, *, cancelled: bool = False) -> ClassSession:
    return ClassSession(
        session_id=1,
        course_id=1,
        session_number=1,
        title="Session 1 - Python 101",
        date=day,
        start_time=time(8, 0),
        end_time=time(10, 0),
        is_cancelled=cancelled,
    )


@pytest.mark.parametrize(
    "day, expected",
    [
        (TODAY - timedelta(days=1), ComputedStatus.PAST),
        (TODAY, ComputedStatus.TODAY),
        (TODAY + timedelta(days=1), ComputedStatus.UPCOMING),
    ],
)
def test_status_follows_calendar_date(day, expected):
    assert compute_status(_session(day), TODAY) == expected


@pytest.mark.parametrize("offset", [-30, 0, 30])
def test_cancelled_wins_over_date(offset):
    assert compute_status(_session(TODAY + timedelta(days=offset), cancelled=True), TODAY) == ComputedStatus.CANCELLED


def test_time_of_day_is_ignored():
    # A session that already ended this morning is still "today".
    late_evening = datetime(2024, 3, 13, 23, 59)
    assert compute_status(_session(TODAY), late_evening) == ComputedStatus.TODAY


def test_status_window_bounds():
    past = status_window(ComputedStatus.PAST, TODAY)
    assert (past.date_from, past.date_before, past.is_cancelled) == (None, TODAY, False)

    today = status_window(ComputedStatus.TODAY, TODAY)
    assert (today.date_from, today.date_before) == (TODAY, TODAY + timedelta(days=1))

    upcoming = status_window(ComputedStatus.UPCOMING, TODAY)
    assert (upcoming.date_from, upcoming.date_before) == (TODAY + timedelta(days=1), None)

    cancelled = status_window(ComputedStatus.CANCELLED, TODAY)
    assert cancelled.is_cancelled is True
    assert cancelled.date_from is None and cancelled.date_before is None


def test_parse_computed_status():
    assert parse_computed_status(None) is None
    assert parse_computed_status("") is None
    assert parse_computed_status("past") == ComputedStatus.PAST

    with pytest.raises(ValidationError):
        parse_computed_status("finished")
