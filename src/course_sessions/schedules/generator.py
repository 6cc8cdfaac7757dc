from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import time
from typing import Iterable, List, Optional, Sequence

from ..common.datetime_utils import iter_days, js_weekday, parse_hhmm
from ..common.validators import optional_text
from ..core.constants import SESSION_TITLE_FORMAT
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..courses.model import Course
from ..courses.repository import CourseRepository
from .model import ClassSession, NewSession
from .repository import SessionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    total: int
    sessions: Sequence[ClassSession]


def normalize_weekdays(weekdays: Iterable[object]) -> frozenset:
    """Validate a weekday set (0=Sunday ... 6=Saturday)."""

    if weekdays is None or isinstance(weekdays, (str, bytes)):
        raise ValidationError("weekDays must be a non-empty list of integers 0-6")

    days = set()
    for value in weekdays:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
            raise ValidationError("weekDays must be a non-empty list of integers 0-6")
        days.add(value)

    if not days:
        raise ValidationError("weekDays must be a non-empty list of integers 0-6")
    return frozenset(days)


def plan_sessions(
    course: Course,
    *,
    weekdays: frozenset,
    start_time: time,
    end_time: time,
    room: Optional[str] = None,
) -> List[NewSession]:
    """Lay out the calendar for a course without touching storage."""

    if not course.start_date or not course.end_date:
        raise ValidationError("Course must have both a start date and an end date")

    planned: List[NewSession] = []
    number = 1
    for day in iter_days(course.start_date, course.end_date):
        if js_weekday(day) not in weekdays:
            continue
        planned.append(
            NewSession(
                course_id=course.course_id,
                session_number=number,
                title=SESSION_TITLE_FORMAT.format(number=number, course_name=course.name),
                date=day,
                start_time=start_time,
                end_time=end_time,
                room=room or course.room,
            )
        )
        number += 1
    return planned


class SessionGenerator:
    """Builds the full session calendar of a course, once."""

    def __init__(self, sessions: SessionRepository, courses: CourseRepository):
        self._sessions = sessions
        self._courses = courses

    def generate(
        self,
        course_id: int,
        *,
        weekdays: Iterable[object],
        start_time: str,
        end_time: str,
        room: Optional[str] = None,
    ) -> GenerationResult:
        days = normalize_weekdays(weekdays)
        start_t = parse_hhmm(start_time, "startTime")
        end_t = parse_hhmm(end_time, "endTime")
        if end_t <= start_t:
            raise ValidationError("endTime must be after startTime")

        course = self._courses.get_by_id(int(course_id))
        if not course:
            raise NotFoundError("Course not found")

        if not course.start_date or not course.end_date:
            raise ValidationError("Course must have both a start date and an end date")

        if self._sessions.exists_for_course(course.course_id):
            raise ConflictError("Sessions already exist for this course. Delete them first or use the update API.")

        planned = plan_sessions(course, weekdays=days, start_time=start_t, end_time=end_t, room=optional_text(room))
        if not planned:
            raise ValidationError("No sessions generated. Check the weekDays configuration against the course dates.")

        created = self._sessions.create_generated(course.course_id, planned)
        logger.info("Generated %d sessions for course %s", len(created), course.course_id)
        return GenerationResult(total=len(created), sessions=created)
