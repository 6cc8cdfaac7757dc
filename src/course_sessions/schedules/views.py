from __future__ import annotations

from datetime import date
from typing import Optional

from ..common.datetime_utils import format_hhmm
from ..courses.model import Course
from ..users.model import Teacher
from .model import ClassSession
from .status import compute_status


def session_to_view(session: ClassSession, *, today: date) -> dict:
    return {
        "session_id": session.session_id,
        "course_id": session.course_id,
        "session_number": session.session_number,
        "title": session.title,
        "date": session.date.strftime("%Y-%m-%d"),
        "start_time": format_hhmm(session.start_time),
        "end_time": format_hhmm(session.end_time),
        "room": session.room,
        "lesson_id": session.lesson_id,
        "substitute_teacher_id": session.substitute_teacher_id,
        "internal_notes": session.internal_notes,
        "is_cancelled": session.is_cancelled,
        "cancellation_reason": session.cancellation_reason,
        "meeting_url": session.meeting_url,
        "computed_status": compute_status(session, today).value,
    }


def course_to_view(course: Course) -> dict:
    return {
        "course_id": course.course_id,
        "name": course.name,
        "code": course.code,
        "start_date": course.start_date.strftime("%Y-%m-%d") if course.start_date else None,
        "end_date": course.end_date.strftime("%Y-%m-%d") if course.end_date else None,
        "room": course.room,
        "teacher_id": course.teacher_id,
    }


def teacher_to_view(teacher: Optional[Teacher], *, reason: Optional[str] = None) -> Optional[dict]:
    if not teacher:
        return None
    view = {
        "teacher_id": teacher.teacher_id,
        "teacher_code": teacher.teacher_code,
        "name": teacher.full_name,
    }
    if reason is not None:
        view["reason"] = reason
    return view
