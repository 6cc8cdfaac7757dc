from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import mysql.connector

from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import MySQLRepository, db_cursor, fetchall, fetchone, is_duplicate_key, normalize_mysql_time
from .model import ClassSession, NewSession, SessionQuery
from .repository import SessionRepository

logger = logging.getLogger(__name__)

_CONFLICT_MESSAGE = "Sessions already exist for this course. Delete them first or use the update API."

# Entity field -> column name where they differ.
_FIELD_COLUMNS = {"session_id": "schedule_id", "date": "session_date"}


class MySQLScheduleRepository(MySQLRepository[ClassSession], SessionRepository):
    table = "schedules"
    pk = "schedule_id"
    columns = (
        "schedule_id",
        "course_id",
        "session_number",
        "title",
        "session_date",
        "start_time",
        "end_time",
        "room",
        "lesson_id",
        "substitute_teacher_id",
        "internal_notes",
        "is_cancelled",
        "cancellation_reason",
        "meeting_url",
    )

    def __init__(self, conn_factory: DatabaseConnection):
        super().__init__(conn_factory)

    def _to_entity(self, r: Dict[str, Any]) -> ClassSession:
        return ClassSession(
            session_id=int(r["schedule_id"]),
            course_id=int(r["course_id"]),
            session_number=int(r["session_number"]),
            title=r["title"],
            date=r["session_date"],
            start_time=normalize_mysql_time(r["start_time"]),
            end_time=normalize_mysql_time(r["end_time"]),
            room=r.get("room"),
            lesson_id=int(r["lesson_id"]) if r.get("lesson_id") is not None else None,
            substitute_teacher_id=(
                int(r["substitute_teacher_id"]) if r.get("substitute_teacher_id") is not None else None
            ),
            internal_notes=r.get("internal_notes"),
            is_cancelled=bool(r.get("is_cancelled")),
            cancellation_reason=r.get("cancellation_reason"),
            meeting_url=r.get("meeting_url"),
        )

    def get_by_id(self, session_id: int) -> Optional[ClassSession]:
        return self._get_by_id(session_id)

    def exists_for_course(self, course_id: int) -> bool:
        return self._count("course_id=%s", (int(course_id),)) > 0

    @staticmethod
    def _query_where(query: SessionQuery) -> Tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []

        scope: List[str] = []
        if query.course_ids is not None:
            if query.course_ids:
                scope.append("course_id IN (" + ", ".join(["%s"] * len(query.course_ids)) + ")")
                params.extend(int(c) for c in query.course_ids)
            if query.substitute_teacher_id is not None:
                scope.append("substitute_teacher_id=%s")
                params.append(int(query.substitute_teacher_id))
            clauses.append("(" + " OR ".join(scope) + ")" if scope else "1=0")

        if query.course_id is not None:
            clauses.append("course_id=%s")
            params.append(int(query.course_id))
        if query.date_from is not None:
            clauses.append("session_date>=%s")
            params.append(query.date_from)
        if query.date_before is not None:
            clauses.append("session_date<%s")
            params.append(query.date_before)
        if query.is_cancelled is not None:
            clauses.append("is_cancelled=%s")
            params.append(1 if query.is_cancelled else 0)

        return " AND ".join(clauses), params

    def query(self, query: SessionQuery) -> Tuple[Sequence[ClassSession], int]:
        where, params = self._query_where(query)
        total = self._count(where, params)
        rows = self._find(
            where,
            params,
            order_by="session_date ASC, start_time ASC, schedule_id ASC",
            limit=query.limit,
            offset=query.offset,
        )
        return rows, total

    def create_generated(self, course_id: int, sessions: Sequence[NewSession]) -> Sequence[ClassSession]:
        course_id = int(course_id)
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute("INSERT INTO session_generation_claims(course_id) VALUES(%s)", (course_id,))
            except mysql.connector.Error as e:
                if is_duplicate_key(e):
                    raise ConflictError(_CONFLICT_MESSAGE) from e
                raise

            # Sessions inserted outside the generator (or before claims existed) still block.
            cur.execute("SELECT COUNT(*) AS n FROM schedules WHERE course_id=%s", (course_id,))
            row = fetchone(cur)
            if row and int(row["n"]) > 0:
                raise ConflictError(_CONFLICT_MESSAGE)

            cur.executemany(
                """
                INSERT INTO schedules(course_id, session_number, title, session_date, start_time, end_time, room)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                [
                    (course_id, s.session_number, s.title, s.date, s.start_time, s.end_time, s.room)
                    for s in sessions
                ],
            )

            cur.execute(
                self._select_sql() + " WHERE course_id=%s ORDER BY session_number ASC",
                (course_id,),
            )
            return [self._to_entity(r) for r in fetchall(cur)]

    def update(self, session_id: int, changes: Mapping[str, Any]) -> bool:
        fields = {_FIELD_COLUMNS.get(k, k): v for k, v in changes.items()}
        if "is_cancelled" in fields:
            fields["is_cancelled"] = 1 if fields["is_cancelled"] else 0
        return self._update_by_id(session_id, fields)

    def delete(self, session_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT course_id FROM schedules WHERE schedule_id=%s", (int(session_id),))
            row = fetchone(cur)
            if not row:
                return False
            course_id = int(row["course_id"])

            cur.execute("DELETE FROM schedules WHERE schedule_id=%s", (int(session_id),))
            cur.execute("SELECT COUNT(*) AS n FROM schedules WHERE course_id=%s", (course_id,))
            remaining = fetchone(cur)
            if not remaining or int(remaining["n"]) == 0:
                cur.execute("DELETE FROM session_generation_claims WHERE course_id=%s", (course_id,))
                logger.info("Released generation claim of course %s", course_id)
            return True

    def delete_by_course(self, course_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM schedules WHERE course_id=%s", (int(course_id),))
            deleted = int(cur.rowcount)
            cur.execute("DELETE FROM session_generation_claims WHERE course_id=%s", (int(course_id),))
            return deleted
