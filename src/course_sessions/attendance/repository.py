from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord, NewAttendance


class AttendanceRepository(Protocol):
    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def count_for_session(self, session_id: int) -> int:
        raise NotImplementedError

    def list_for_student(self, student_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def upsert(
        self,
        *,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        notes: Optional[str],
        recorded_by: Optional[int],
        recorded_at: datetime,
    ) -> int:
        """Create or update the row for (session_id, student_id).

        Returns attendance_id.
        """

        raise NotImplementedError

    def insert_missing(self, records: Sequence[NewAttendance]) -> int:
        """Insert rows, skipping pairs that already exist. Returns inserted count."""

        raise NotImplementedError

    def update_record(
        self,
        *,
        attendance_id: int,
        status: AttendanceStatus,
        notes: Optional[str],
        recorded_by: Optional[int],
        recorded_at: datetime,
    ) -> bool:
        raise NotImplementedError
