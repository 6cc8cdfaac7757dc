from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller roles used for authorization."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class AttendanceStatus(str, Enum):
    """Per-student attendance mark for one session."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"


class ComputedStatus(str, Enum):
    """Session lifecycle derived from its date; never stored."""

    PAST = "past"
    TODAY = "today"
    UPCOMING = "upcoming"
    CANCELLED = "cancelled"


class AttendanceSummaryStatus(str, Enum):
    """Overview of a session's attendance in listings."""

    NOT_YET = "not_yet"
    ABSENT = "absent"
    ATTENDED = "attended"


class Action(str, Enum):
    GENERATE_SESSIONS = "generate_sessions"
    VIEW_SESSION = "view_session"
    VIEW_ATTENDANCE = "view_attendance"
    RECORD_ATTENDANCE = "record_attendance"
    UPDATE_SESSION = "update_session"
    DELETE_SESSION = "delete_session"
    RECONCILE = "reconcile"
