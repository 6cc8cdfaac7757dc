from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Student, Teacher
from .repository import StudentRepository, TeacherRepository

# Profiles carry their display name and active flag on the user account.


class MySQLTeacherRepository(TeacherRepository):
    _SELECT = """
        SELECT t.teacher_id, t.user_id, t.teacher_code, u.full_name, u.is_active
        FROM teachers t
        JOIN users u ON u.user_id = t.user_id
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _map(r: Dict[str, Any]) -> Teacher:
        return Teacher(
            teacher_id=int(r["teacher_id"]),
            user_id=int(r["user_id"]),
            teacher_code=r.get("teacher_code"),
            full_name=r["full_name"],
            is_active=bool(r.get("is_active", 1)),
        )

    def _get_one(self, where: str, value: int) -> Optional[Teacher]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(self._SELECT + f" WHERE {where}=%s", (int(value),))
            r = fetchone(cur)
            return self._map(r) if r else None

    def get_by_id(self, teacher_id: int) -> Optional[Teacher]:
        return self._get_one("t.teacher_id", teacher_id)

    def get_by_user_id(self, user_id: int) -> Optional[Teacher]:
        return self._get_one("t.user_id", user_id)


class MySQLStudentRepository(StudentRepository):
    _SELECT = """
        SELECT s.student_id, s.user_id, s.student_code, u.full_name, u.email, u.is_active
        FROM students s
        JOIN users u ON u.user_id = s.user_id
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _map(r: Dict[str, Any]) -> Student:
        return Student(
            student_id=int(r["student_id"]),
            user_id=int(r["user_id"]),
            student_code=r.get("student_code"),
            full_name=r["full_name"],
            email=r.get("email"),
            is_active=bool(r.get("is_active", 1)),
        )

    def _get_one(self, where: str, value: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(self._SELECT + f" WHERE {where}=%s", (int(value),))
            r = fetchone(cur)
            return self._map(r) if r else None

    def get_by_id(self, student_id: int) -> Optional[Student]:
        return self._get_one("s.student_id", student_id)

    def get_by_user_id(self, user_id: int) -> Optional[Student]:
        return self._get_one("s.user_id", user_id)

    def list_by_ids(self, student_ids: Sequence[int]) -> Sequence[Student]:
        ids = [int(i) for i in student_ids]
        if not ids:
            return []
        placeholders = ", ".join(["%s"] * len(ids))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(self._SELECT + f" WHERE s.student_id IN ({placeholders}) ORDER BY s.student_code", tuple(ids))
            return [self._map(r) for r in fetchall(cur)]
