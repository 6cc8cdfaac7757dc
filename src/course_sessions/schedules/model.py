from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Optional, Tuple


@dataclass(frozen=True)
class ClassSession:
    """One scheduled class meeting of a course (a.k.a. schedule)."""

    session_id: int
    course_id: int
    session_number: int
    title: str
    date: date
    start_time: time
    end_time: time
    room: Optional[str] = None
    lesson_id: Optional[int] = None
    substitute_teacher_id: Optional[int] = None
    internal_notes: Optional[str] = None
    is_cancelled: bool = False
    cancellation_reason: Optional[str] = None
    meeting_url: Optional[str] = None


@dataclass(frozen=True)
class NewSession:
    course_id: int
    session_number: int
    title: str
    date: date
    start_time: time
    end_time: time
    room: Optional[str] = None


@dataclass(frozen=True)
class SessionQuery:
    """Repository-level filter.

    `course_ids` and `substitute_teacher_id` form the caller scope and are
    OR-ed together; every other field is AND-ed on top. `None` means "no
    restriction" except for `course_ids=()` which matches nothing.
    """

    course_ids: Optional[Tuple[int, ...]] = None
    substitute_teacher_id: Optional[int] = None
    course_id: Optional[int] = None
    date_from: Optional[date] = None
    date_before: Optional[date] = None
    is_cancelled: Optional[bool] = None
    offset: int = 0
    limit: Optional[int] = None
