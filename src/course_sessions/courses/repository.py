from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Course, Enrollment


class CourseRepository(Protocol):
    """Read-only course lookups consumed by scheduling."""

    def get_by_id(self, course_id: int) -> Optional[Course]:
        raise NotImplementedError

    def list_ids_for_teacher(self, teacher_id: int) -> Sequence[int]:
        """Courses where the teacher is the assigned main teacher."""

        raise NotImplementedError


class EnrollmentRepository(Protocol):
    """Enrollment lookups; every method only considers `active` rows."""

    def list_active_for_course(self, course_id: int) -> Sequence[Enrollment]:
        raise NotImplementedError

    def get_active(self, *, course_id: int, student_id: int) -> Optional[Enrollment]:
        raise NotImplementedError

    def count_active(self, course_id: int) -> int:
        raise NotImplementedError

    def list_active_course_ids_for_student(self, student_id: int) -> Sequence[int]:
        raise NotImplementedError
