from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import now_local
from ..core.constants import AUTO_ABSENT_NOTE
from ..core.enums import AttendanceStatus
from ..core.exceptions import NotFoundError
from ..courses.repository import EnrollmentRepository
from ..schedules.model import ClassSession, SessionQuery
from ..schedules.repository import SessionRepository
from ..schedules.status import is_elapsed
from .model import NewAttendance
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AutoAbsenceReconciler:
    """Backfills absences for elapsed sessions nobody marked.

    Trigger per session: date before today and zero attendance rows. Cancelled
    sessions are included.
    Once any row exists the trigger is false, so running it again is a no-op.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        enrollments: EnrollmentRepository,
        sessions: SessionRepository,
    ):
        self._attendance = attendance
        self._enrollments = enrollments
        self._sessions = sessions

    def reconcile_session(
        self,
        session: ClassSession,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> int:
        now = now or now_local()
        today = today or now.date()

        if not is_elapsed(session, today):
            return 0
        if self._attendance.count_for_session(session.session_id) > 0:
            return 0

        enrollments = self._enrollments.list_active_for_course(session.course_id)
        if not enrollments:
            return 0

        created = self._attendance.insert_missing(
            [
                NewAttendance(
                    session_id=session.session_id,
                    student_id=e.student_id,
                    status=AttendanceStatus.ABSENT,
                    notes=AUTO_ABSENT_NOTE,
                    recorded_by=None,
                    recorded_at=now,
                )
                for e in enrollments
            ]
        )
        if created:
            logger.info("Auto-marked %d absences for session %s", created, session.session_id)
        return created

    def reconcile_past_sessions(
        self,
        *,
        course_id: Optional[int] = None,
        session_id: Optional[int] = None,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        now = now or now_local()
        today = today or now.date()

        if session_id is not None:
            session = self._sessions.get_by_id(int(session_id))
            if not session:
                raise NotFoundError("Session not found")
            if course_id is not None and session.course_id != int(course_id):
                raise NotFoundError("Session not found in this course")
            sessions = [session]
        else:
            query = SessionQuery(
                course_id=int(course_id) if course_id is not None else None,
                date_before=today,
            )
            sessions, _ = self._sessions.query(query)

        created = 0
        for session in sessions:
            created += self.reconcile_session(session, today=today, now=now)

        return {"sessions_checked": len(sessions), "records_created": created}
