from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import MySQLRepository, db_cursor, fetchone
from .model import AttendanceRecord, NewAttendance
from .repository import AttendanceRepository


class MySQLAttendanceRepository(MySQLRepository[AttendanceRecord], AttendanceRepository):
    table = "attendances"
    pk = "attendance_id"
    columns = ("attendance_id", "schedule_id", "student_id", "status", "notes", "recorded_by", "recorded_at")

    def __init__(self, conn_factory: DatabaseConnection):
        super().__init__(conn_factory)

    def _to_entity(self, r: Dict[str, Any]) -> AttendanceRecord:
        return AttendanceRecord(
            attendance_id=int(r["attendance_id"]),
            session_id=int(r["schedule_id"]),
            student_id=int(r["student_id"]),
            status=AttendanceStatus(r["status"]),
            notes=r.get("notes"),
            recorded_by=int(r["recorded_by"]) if r.get("recorded_by") is not None else None,
            recorded_at=r["recorded_at"],
        )

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self._get_by_id(attendance_id)

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        return self._find("schedule_id=%s", (int(session_id),), order_by="student_id ASC")

    def count_for_session(self, session_id: int) -> int:
        return self._count("schedule_id=%s", (int(session_id),))

    def list_for_student(self, student_id: int) -> Sequence[AttendanceRecord]:
        return self._find("student_id=%s", (int(student_id),), order_by="recorded_at DESC")

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
        with db_cursor(self._conn_factory) as (_, cur):
            # LAST_INSERT_ID(expr) makes lastrowid point at the existing row on update.
            cur.execute(
                """
                INSERT INTO attendances(schedule_id, student_id, status, notes, recorded_by, recorded_at)
                VALUES(%s,%s,%s,%s,%s,%s)
                ON DUPLICATE KEY UPDATE
                    attendance_id=LAST_INSERT_ID(attendance_id),
                    status=VALUES(status),
                    notes=VALUES(notes),
                    recorded_by=VALUES(recorded_by),
                    recorded_at=VALUES(recorded_at)
                """,
                (int(session_id), int(student_id), status.value, notes, recorded_by, recorded_at),
            )
            if cur.lastrowid:
                return int(cur.lastrowid)

            cur.execute(
                "SELECT attendance_id FROM attendances WHERE schedule_id=%s AND student_id=%s",
                (int(session_id), int(student_id)),
            )
            row = fetchone(cur)
            return int(row["attendance_id"])

    def insert_missing(self, records: Sequence[NewAttendance]) -> int:
        if not records:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(
                """
                INSERT IGNORE INTO attendances(schedule_id, student_id, status, notes, recorded_by, recorded_at)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                [
                    (r.session_id, r.student_id, r.status.value, r.notes, r.recorded_by, r.recorded_at)
                    for r in records
                ],
            )
            return int(cur.rowcount)

    def update_record(
        self,
        *,
        attendance_id: int,
        status: AttendanceStatus,
        notes: Optional[str],
        recorded_by: Optional[int],
        recorded_at: datetime,
    ) -> bool:
        return self._update_by_id(
            attendance_id,
            {"status": status.value, "notes": notes, "recorded_by": recorded_by, "recorded_at": recorded_at},
        )
