from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.enums import EnrollmentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import MySQLRepository, db_cursor, fetchall
from .model import Course, Enrollment
from .repository import CourseRepository, EnrollmentRepository


class MySQLCourseRepository(MySQLRepository[Course], CourseRepository):
    table = "courses"
    pk = "course_id"
    columns = ("course_id", "name", "code", "start_date", "end_date", "room", "teacher_id", "is_active")

    def __init__(self, conn_factory: DatabaseConnection):
        super().__init__(conn_factory)

    def _to_entity(self, r: Dict[str, Any]) -> Course:
        return Course(
            course_id=int(r["course_id"]),
            name=r["name"],
            code=r.get("code"),
            start_date=r.get("start_date"),
            end_date=r.get("end_date"),
            room=r.get("room"),
            teacher_id=int(r["teacher_id"]) if r.get("teacher_id") is not None else None,
            is_active=bool(r.get("is_active", 1)),
        )

    def get_by_id(self, course_id: int) -> Optional[Course]:
        return self._get_by_id(course_id)

    def list_ids_for_teacher(self, teacher_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT course_id FROM courses WHERE teacher_id=%s ORDER BY course_id", (int(teacher_id),))
            return [int(r["course_id"]) for r in fetchall(cur)]


class MySQLEnrollmentRepository(MySQLRepository[Enrollment], EnrollmentRepository):
    table = "enrollments"
    pk = "enrollment_id"
    columns = ("enrollment_id", "course_id", "student_id", "status")

    _ACTIVE = "status='active'"

    def __init__(self, conn_factory: DatabaseConnection):
        super().__init__(conn_factory)

    def _to_entity(self, r: Dict[str, Any]) -> Enrollment:
        return Enrollment(
            enrollment_id=int(r["enrollment_id"]),
            course_id=int(r["course_id"]),
            student_id=int(r["student_id"]),
            status=EnrollmentStatus(r["status"]),
        )

    def list_active_for_course(self, course_id: int) -> Sequence[Enrollment]:
        return self._find(f"course_id=%s AND {self._ACTIVE}", (int(course_id),), order_by="student_id ASC")

    def get_active(self, *, course_id: int, student_id: int) -> Optional[Enrollment]:
        return self._find_one(f"course_id=%s AND student_id=%s AND {self._ACTIVE}", (int(course_id), int(student_id)))

    def count_active(self, course_id: int) -> int:
        return self._count(f"course_id=%s AND {self._ACTIVE}", (int(course_id),))

    def list_active_course_ids_for_student(self, student_id: int) -> Sequence[int]:
        return [e.course_id for e in self._find(f"student_id=%s AND {self._ACTIVE}", (int(student_id),))]
