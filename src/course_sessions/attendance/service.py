from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..authz.gate import AuthorizationGate
from ..common.datetime_utils import now_local
from ..common.validators import optional_text, require_positive_int
from ..core.enums import Action, AttendanceStatus, Role
from ..core.exceptions import NotFoundError, ValidationError
from ..courses.model import Course
from ..courses.repository import CourseRepository, EnrollmentRepository
from ..schedules.model import ClassSession
from ..schedules.repository import SessionRepository
from ..schedules.views import course_to_view, session_to_view, teacher_to_view
from ..users.model import CallerContext
from ..users.repository import StudentRepository, TeacherRepository
from .model import AttendanceRecord
from .reconciler import AutoAbsenceReconciler
from .repository import AttendanceRepository
from .summary import attendance_statistics

logger = logging.getLogger(__name__)

_NOT_ENROLLED = "Student is not enrolled in this course"
_UPDATABLE_FIELDS = frozenset({"status", "notes"})


def parse_attendance_status(value: Any) -> AttendanceStatus:
    try:
        return AttendanceStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"Invalid status: {value}. Must be one of: {allowed}")


def record_to_view(record: AttendanceRecord) -> dict:
    return {
        "attendance_id": record.attendance_id,
        "session_id": record.session_id,
        "student_id": record.student_id,
        "status": record.status.value,
        "notes": record.notes,
        "recorded_by": record.recorded_by,
        "recorded_at": record.recorded_at.isoformat(),
    }


class AttendanceService:
    """Attendance ledger: per-session rosters, batch upserts and corrections."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        sessions: SessionRepository,
        courses: CourseRepository,
        enrollments: EnrollmentRepository,
        teachers: TeacherRepository,
        students: StudentRepository,
        gate: AuthorizationGate,
        reconciler: Optional[AutoAbsenceReconciler] = None,
        *,
        auto_reconcile_on_read: bool = True,
    ):
        self._attendance = attendance
        self._sessions = sessions
        self._courses = courses
        self._enrollments = enrollments
        self._teachers = teachers
        self._students = students
        self._gate = gate
        self._reconciler = reconciler
        self._auto_reconcile = bool(auto_reconcile_on_read)

    def _load_session(self, session_id: int) -> Tuple[ClassSession, Course]:
        session = self._sessions.get_by_id(require_positive_int(session_id, "sessionId"))
        if not session:
            raise NotFoundError("Session not found")
        course = self._courses.get_by_id(session.course_id)
        if not course:
            raise NotFoundError("Course not found")
        return session, course

    def get_for_session(self, *, caller: CallerContext, session_id: int, today: Optional[date] = None) -> dict:
        now = now_local()
        today = today or now.date()

        session, course = self._load_session(session_id)
        subject = self._gate.resolve(caller)
        self._gate.require_for_session(subject, Action.VIEW_ATTENDANCE, course=course, session=session)

        if self._auto_reconcile and self._reconciler:
            self._reconciler.reconcile_session(session, today=today, now=now)

        main_teacher = self._teachers.get_by_id(course.teacher_id) if course.teacher_id else None
        substitute = (
            self._teachers.get_by_id(session.substitute_teacher_id) if session.substitute_teacher_id else None
        )

        enrollments = self._enrollments.list_active_for_course(course.course_id)
        students = {s.student_id: s for s in self._students.list_by_ids([e.student_id for e in enrollments])}
        records = {r.student_id: r for r in self._attendance.list_for_session(session.session_id)}

        rows: List[dict] = []
        for enrollment in enrollments:
            student = students.get(enrollment.student_id)
            if not student or not student.is_active:
                continue
            if subject.role == Role.STUDENT and student.student_id != subject.student_id:
                continue

            record = records.get(student.student_id)
            rows.append(
                {
                    "student_id": student.student_id,
                    "student_code": student.student_code,
                    "student_name": student.full_name,
                    "email": student.email,
                    "status": record.status.value if record else None,
                    "notes": record.notes if record else None,
                    "recorded_at": record.recorded_at.isoformat() if record else None,
                    "recorded_by": record.recorded_by if record else None,
                    "attendance_id": record.attendance_id if record else None,
                }
            )

        rows.sort(key=lambda r: (r["student_code"] or "", r["student_id"]))
        recorded = sum(1 for r in rows if r["status"] is not None)

        return {
            "session": session_to_view(session, today=today),
            "course": course_to_view(course),
            "main_teacher": teacher_to_view(main_teacher),
            "substitute_teacher": teacher_to_view(substitute, reason=session.internal_notes),
            "students": rows,
            "summary": {
                "total_students": len(rows),
                "recorded": recorded,
                "not_recorded": len(rows) - recorded,
            },
        }

    def record_attendance(
        self,
        *,
        caller: CallerContext,
        session_id: int,
        entries: Sequence[Mapping[str, Any]],
        mark_completed: bool = False,
        now: Optional[datetime] = None,
    ) -> dict:
        """Upsert a batch of marks. One bad entry never blocks the others."""

        if not isinstance(entries, (list, tuple)) or not entries:
            raise ValidationError("attendanceList must be a non-empty array")

        now = now or now_local()
        session, course = self._load_session(session_id)
        subject = self._gate.resolve(caller)
        self._gate.require_for_session(
            subject,
            Action.RECORD_ATTENDANCE,
            course=course,
            session=session,
            message="You do not have permission to record attendance for this session",
        )

        successful: List[dict] = []
        failed: List[dict] = []

        for entry in entries:
            if not isinstance(entry, Mapping):
                failed.append({"student_id": None, "reason": "Malformed attendance entry"})
                continue

            raw_student_id = entry.get("student_id")
            try:
                student_id = require_positive_int(raw_student_id, "studentId")
                status = parse_attendance_status(entry.get("status"))
            except ValidationError as e:
                failed.append({"student_id": raw_student_id, "reason": str(e)})
                continue

            if not self._enrollments.get_active(course_id=course.course_id, student_id=student_id):
                failed.append({"student_id": student_id, "reason": _NOT_ENROLLED})
                continue

            notes = optional_text(entry.get("notes"))
            attendance_id = self._attendance.upsert(
                session_id=session.session_id,
                student_id=student_id,
                status=status,
                notes=notes,
                recorded_by=subject.user_id,
                recorded_at=now,
            )
            successful.append(
                {
                    "attendance_id": attendance_id,
                    "student_id": student_id,
                    "status": status.value,
                    "notes": notes,
                }
            )

        logger.info(
            "Recorded attendance for session %s: %d successful, %d failed",
            session.session_id,
            len(successful),
            len(failed),
        )

        return {
            "summary": {
                "total": len(entries),
                "successful": len(successful),
                "failed": len(failed),
                "mark_completed": bool(mark_completed),
            },
            "successful": successful,
            "failed": failed,
        }

    def update_single(
        self,
        *,
        caller: CallerContext,
        session_id: int,
        attendance_id: int,
        fields: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        """Correct one existing row without touching roster membership."""

        unknown = set(fields or {}) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unsupported fields: {', '.join(sorted(unknown))}")
        if not fields:
            raise ValidationError("Nothing to update")

        now = now or now_local()
        session, course = self._load_session(session_id)
        subject = self._gate.resolve(caller)
        self._gate.require_for_session(
            subject,
            Action.RECORD_ATTENDANCE,
            course=course,
            session=session,
            message="You can only update attendance for your own sessions",
        )

        record = self._attendance.get_by_id(require_positive_int(attendance_id, "attendanceId"))
        if not record or record.session_id != session.session_id:
            raise NotFoundError("Attendance record not found")

        status = parse_attendance_status(fields["status"]) if "status" in fields else record.status
        notes = optional_text(fields["notes"]) if "notes" in fields else record.notes

        ok = self._attendance.update_record(
            attendance_id=record.attendance_id,
            status=status,
            notes=notes,
            recorded_by=subject.user_id,
            recorded_at=now,
        )
        if not ok:
            raise NotFoundError("Attendance record not found")

        updated = self._attendance.get_by_id(record.attendance_id)
        if not updated:
            raise NotFoundError("Attendance record not found")
        return updated

    def get_student_history(
        self,
        *,
        caller: CallerContext,
        student_id: int,
        course_id: Any = None,
    ) -> dict:
        course_id = require_positive_int(course_id, "courseId") if course_id not in (None, "") else None
        student = self._students.get_by_id(require_positive_int(student_id, "studentId"))
        if not student:
            raise NotFoundError("Student not found")

        subject = self._gate.resolve(caller)
        resource = self._gate.context_for_student_history(subject, student_id=student.student_id)
        self._gate.require(
            subject,
            Action.VIEW_ATTENDANCE,
            resource,
            "You can only view attendance of yourself or of students in your courses",
        )

        courses: Dict[int, Optional[Course]] = {}
        history: List[Tuple[date, dict]] = []
        kept: List[AttendanceRecord] = []

        for record in self._attendance.list_for_student(student.student_id):
            session = self._sessions.get_by_id(record.session_id)
            if not session:
                continue
            if course_id is not None and session.course_id != course_id:
                continue
            if session.course_id not in courses:
                courses[session.course_id] = self._courses.get_by_id(session.course_id)
            course = courses[session.course_id]
            if not course:
                continue

            kept.append(record)
            history.append(
                (
                    session.date,
                    {
                        "attendance_id": record.attendance_id,
                        "session": {
                            "session_id": session.session_id,
                            "session_number": session.session_number,
                            "title": session.title,
                            "date": session.date.strftime("%Y-%m-%d"),
                        },
                        "course": {"course_id": course.course_id, "name": course.name, "code": course.code},
                        "status": record.status.value,
                        "notes": record.notes,
                        "recorded_at": record.recorded_at.isoformat(),
                        "recorded_by": record.recorded_by,
                    },
                )
            )

        history.sort(key=lambda item: item[0], reverse=True)

        return {
            "student": {
                "student_id": student.student_id,
                "student_code": student.student_code,
                "name": student.full_name,
            },
            "statistics": attendance_statistics(kept),
            "attendance_history": [item for _, item in history],
        }
