from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """One student's mark for one session. Unique per (session_id, student_id)."""

    attendance_id: int
    session_id: int
    student_id: int
    status: AttendanceStatus
    notes: Optional[str]
    recorded_by: Optional[int]
    recorded_at: datetime


@dataclass(frozen=True)
class NewAttendance:
    session_id: int
    student_id: int
    status: AttendanceStatus
    notes: Optional[str]
    recorded_by: Optional[int]
    recorded_at: datetime
