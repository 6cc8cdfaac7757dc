"""Session lifecycle derived from the calendar.

Status is recomputed on every read and is never persisted; `is_cancelled` is
the only stored override.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from ..core.enums import ComputedStatus
from ..core.exceptions import ValidationError
from .model import ClassSession


def _as_day(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_status(session: ClassSession, today: Union[date, datetime]) -> ComputedStatus:
    if session.is_cancelled:
        return ComputedStatus.CANCELLED

    session_day = _as_day(session.date)
    today = _as_day(today)
    if session_day < today:
        return ComputedStatus.PAST
    if session_day == today:
        return ComputedStatus.TODAY
    return ComputedStatus.UPCOMING


def is_elapsed(session: ClassSession, today: Union[date, datetime]) -> bool:
    return _as_day(session.date) < _as_day(today)


@dataclass(frozen=True)
class StatusWindow:
    date_from: Optional[date] = None
    date_before: Optional[date] = None
    is_cancelled: Optional[bool] = None


def parse_computed_status(value: Optional[str]) -> Optional[ComputedStatus]:
    if value is None or value == "":
        return None
    try:
        return ComputedStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ComputedStatus)
        raise ValidationError(f"Invalid computedStatus: {value}. Must be one of: {allowed}")


def status_window(status: ComputedStatus, today: Union[date, datetime]) -> StatusWindow:
    """Translate a computed status into a date/cancellation filter."""

    today = _as_day(today)
    tomorrow = today + timedelta(days=1)

    if status == ComputedStatus.PAST:
        return StatusWindow(date_before=today, is_cancelled=False)
    if status == ComputedStatus.TODAY:
        return StatusWindow(date_from=today, date_before=tomorrow, is_cancelled=False)
    if status == ComputedStatus.UPCOMING:
        return StatusWindow(date_from=tomorrow, is_cancelled=False)
    return StatusWindow(is_cancelled=True)
