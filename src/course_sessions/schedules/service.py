from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from ..attendance.reconciler import AutoAbsenceReconciler
from ..attendance.repository import AttendanceRepository
from ..attendance.summary import summarize_session
from ..authz.gate import AuthorizationGate
from ..authz.policy import Subject
from ..common.datetime_utils import now_local, parse_hhmm, parse_iso_date
from ..common.validators import optional_text, require_positive_int
from ..core.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from ..core.enums import Action, ComputedStatus, Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..courses.model import Course
from ..courses.repository import CourseRepository, EnrollmentRepository
from ..users.model import CallerContext
from ..users.repository import TeacherRepository
from .generator import SessionGenerator
from .model import ClassSession, SessionQuery
from .repository import SessionRepository
from .status import StatusWindow, parse_computed_status, status_window
from .views import course_to_view, session_to_view, teacher_to_view

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = frozenset(
    {
        "date",
        "start_time",
        "end_time",
        "room",
        "is_cancelled",
        "cancellation_reason",
        "lesson_id",
        "substitute_teacher_id",
        "internal_notes",
        "meeting_url",
    }
)
_TEXT_FIELDS = ("room", "cancellation_reason", "internal_notes", "meeting_url")


def _as_date(value: Union[str, date, None], field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field_name} is not a valid date (YYYY-MM-DD)")


def _later(a: Optional[date], b: Optional[date]) -> Optional[date]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def _earlier(a: Optional[date], b: Optional[date]) -> Optional[date]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


class ScheduleService:
    """Use cases around a course's session calendar."""

    def __init__(
        self,
        sessions: SessionRepository,
        courses: CourseRepository,
        enrollments: EnrollmentRepository,
        teachers: TeacherRepository,
        attendance: AttendanceRepository,
        gate: AuthorizationGate,
        generator: SessionGenerator,
        reconciler: AutoAbsenceReconciler,
        *,
        auto_reconcile_on_read: bool = True,
        default_limit: int = DEFAULT_PAGE_LIMIT,
    ):
        self._sessions = sessions
        self._courses = courses
        self._enrollments = enrollments
        self._teachers = teachers
        self._attendance = attendance
        self._gate = gate
        self._generator = generator
        self._reconciler = reconciler
        self._auto_reconcile = bool(auto_reconcile_on_read)
        self._default_limit = int(default_limit)

    def _load(self, session_id: Any) -> Tuple[ClassSession, Course]:
        session = self._sessions.get_by_id(require_positive_int(session_id, "sessionId"))
        if not session:
            raise NotFoundError("Session not found")
        course = self._courses.get_by_id(session.course_id)
        if not course:
            raise NotFoundError("Course not found")
        return session, course

    def generate_sessions(
        self,
        *,
        caller: CallerContext,
        course_id: Any,
        weekdays: Iterable[object],
        start_time: str,
        end_time: str,
        room: Optional[str] = None,
        today: Optional[date] = None,
    ) -> dict:
        subject = self._gate.resolve(caller)
        self._gate.require(subject, Action.GENERATE_SESSIONS, message="Only admins can generate sessions")

        result = self._generator.generate(
            require_positive_int(course_id, "courseId"),
            weekdays=weekdays,
            start_time=start_time,
            end_time=end_time,
            room=room,
        )
        today = today or now_local().date()
        return {
            "total": result.total,
            "sessions": [session_to_view(s, today=today) for s in result.sessions],
        }

    def _scope(self, subject: Subject, course_id: Optional[int]) -> Dict[str, Any]:
        if subject.role == Role.TEACHER:
            return {
                "course_ids": tuple(self._courses.list_ids_for_teacher(subject.teacher_id)),
                "substitute_teacher_id": subject.teacher_id,
            }

        if subject.role == Role.STUDENT:
            course_ids = tuple(self._enrollments.list_active_course_ids_for_student(subject.student_id))
            if course_id is not None and course_id not in course_ids:
                raise AuthorizationError("You are not enrolled in this course")
            return {"course_ids": course_ids, "substitute_teacher_id": None}

        return {"course_ids": None, "substitute_teacher_id": None}

    def list_sessions(
        self,
        *,
        caller: CallerContext,
        course_id: Any = None,
        computed_status: Union[str, ComputedStatus, None] = None,
        from_date: Union[str, date, None] = None,
        to_date: Union[str, date, None] = None,
        page: Any = 1,
        limit: Any = None,
        today: Optional[date] = None,
    ) -> dict:
        """List sessions visible to the caller.

        Not a pure read: elapsed sessions on the page that nobody marked get
        their absences backfilled first (when auto-absence is enabled).
        """

        now = now_local()
        today = today or now.date()

        status = computed_status if isinstance(computed_status, ComputedStatus) else parse_computed_status(computed_status)
        course_id = require_positive_int(course_id, "courseId") if course_id not in (None, "") else None
        page = require_positive_int(page or 1, "page")
        limit = require_positive_int(limit, "limit") if limit not in (None, "") else self._default_limit
        limit = min(limit, MAX_PAGE_LIMIT)

        start = _as_date(from_date, "fromDate")
        end = _as_date(to_date, "toDate")

        subject = self._gate.resolve(caller)
        scope = self._scope(subject, course_id)

        window = status_window(status, today) if status else StatusWindow()
        query = SessionQuery(
            course_ids=scope["course_ids"],
            substitute_teacher_id=scope["substitute_teacher_id"],
            course_id=course_id,
            date_from=_later(window.date_from, start),
            date_before=_earlier(window.date_before, end + timedelta(days=1) if end else None),
            is_cancelled=window.is_cancelled,
            offset=(page - 1) * limit,
            limit=limit,
        )
        sessions, total = self._sessions.query(query)

        if self._auto_reconcile:
            for session in sessions:
                self._reconciler.reconcile_session(session, today=today, now=now)

        return {
            "sessions": [self._to_row(s, subject, today) for s in sessions],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def _to_row(self, session: ClassSession, subject: Subject, today: date) -> dict:
        records = self._attendance.list_for_session(session.session_id)
        row = session_to_view(session, today=today)
        row["attendance_summary"] = summarize_session(
            session,
            records,
            total_students=self._enrollments.count_active(session.course_id),
            today=today,
        )

        if subject.role == Role.STUDENT:
            mine = next((r for r in records if r.student_id == subject.student_id), None)
            row["my_attendance"] = (
                {"status": mine.status.value, "notes": mine.notes, "recorded_at": mine.recorded_at.isoformat()}
                if mine
                else None
            )
        return row

    def get_session(self, *, caller: CallerContext, session_id: Any, today: Optional[date] = None) -> dict:
        today = today or now_local().date()
        session, course = self._load(session_id)
        subject = self._gate.resolve(caller)
        self._gate.require_for_session(subject, Action.VIEW_SESSION, course=course, session=session)

        main_teacher = self._teachers.get_by_id(course.teacher_id) if course.teacher_id else None
        substitute = (
            self._teachers.get_by_id(session.substitute_teacher_id) if session.substitute_teacher_id else None
        )

        view = self._to_row(session, subject, today)
        view["course"] = course_to_view(course)
        view["main_teacher"] = teacher_to_view(main_teacher)
        view["substitute_teacher"] = teacher_to_view(substitute, reason=session.internal_notes)
        return view

    def _clean_changes(self, session: ClassSession, changes: Mapping[str, Any]) -> Dict[str, Any]:
        clean: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "date":
                day = _as_date(value, "date")
                if day is None:
                    raise ValidationError("date cannot be empty")
                clean["date"] = day
            elif key in ("start_time", "end_time"):
                clean[key] = parse_hhmm(value, "startTime" if key == "start_time" else "endTime")
            elif key == "is_cancelled":
                if not isinstance(value, bool):
                    raise ValidationError("isCancelled must be a boolean")
                clean[key] = value
            elif key == "lesson_id":
                clean[key] = require_positive_int(value, "lessonId") if value not in (None, "") else None
            elif key == "substitute_teacher_id":
                if value in (None, ""):
                    clean[key] = None
                else:
                    teacher_id = require_positive_int(value, "substituteTeacherId")
                    if not self._teachers.get_by_id(teacher_id):
                        raise NotFoundError("Substitute teacher not found")
                    clean[key] = teacher_id
            elif key in _TEXT_FIELDS:
                clean[key] = optional_text(value)

        start_t = clean.get("start_time", session.start_time)
        end_t = clean.get("end_time", session.end_time)
        if end_t <= start_t:
            raise ValidationError("endTime must be after startTime")
        return clean

    def update_session(
        self,
        *,
        caller: CallerContext,
        session_id: Any,
        changes: Mapping[str, Any],
        today: Optional[date] = None,
    ) -> dict:
        """Per-session edit. Session numbers are never recomputed."""

        if not changes:
            raise ValidationError("Nothing to update")
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported fields: {', '.join(sorted(unknown))}")

        session, course = self._load(session_id)
        subject = self._gate.resolve(caller)
        self._gate.require_for_session(
            subject,
            Action.UPDATE_SESSION,
            course=course,
            session=session,
            message="Teachers can only update sessions of their own courses",
        )

        clean = self._clean_changes(session, changes)
        if not self._sessions.update(session.session_id, clean):
            raise NotFoundError("Session not found")

        updated = self._sessions.get_by_id(session.session_id)
        if not updated:
            raise NotFoundError("Session not found")

        logger.info("Session %s updated by user %s: %s", session.session_id, subject.user_id, sorted(clean))
        return session_to_view(updated, today=today or now_local().date())

    def delete_session(self, *, caller: CallerContext, session_id: Any, today: Optional[date] = None) -> dict:
        session, course = self._load(session_id)
        subject = self._gate.resolve(caller)
        self._gate.require_for_session(
            subject,
            Action.DELETE_SESSION,
            course=course,
            session=session,
            message="Only admins can delete sessions",
        )

        if not self._sessions.delete(session.session_id):
            raise NotFoundError("Session not found")

        logger.info("Session %s deleted by user %s", session.session_id, subject.user_id)
        return session_to_view(session, today=today or now_local().date())

    def delete_sessions_by_course(self, *, caller: CallerContext, course_id: Any) -> dict:
        subject = self._gate.resolve(caller)
        self._gate.require(subject, Action.DELETE_SESSION, message="Only admins can delete sessions")

        course_id = require_positive_int(course_id, "courseId")
        deleted = self._sessions.delete_by_course(course_id)
        logger.info("Deleted %d sessions of course %s", deleted, course_id)
        return {"deleted_count": deleted}

    def reconcile_past_sessions(
        self,
        *,
        caller: CallerContext,
        course_id: Any = None,
        session_id: Any = None,
        today: Optional[date] = None,
    ) -> dict:
        subject = self._gate.resolve(caller)
        self._gate.require(subject, Action.RECONCILE, message="Only admins can run reconciliation")

        return self._reconciler.reconcile_past_sessions(
            course_id=require_positive_int(course_id, "courseId") if course_id not in (None, "") else None,
            session_id=require_positive_int(session_id, "sessionId") if session_id not in (None, "") else None,
            today=today,
        )
