from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Student, Teacher


class TeacherRepository(Protocol):
    def get_by_id(self, teacher_id: int) -> Optional[Teacher]:
        raise NotImplementedError

    def get_by_user_id(self, user_id: int) -> Optional[Teacher]:
        raise NotImplementedError


class StudentRepository(Protocol):
    def get_by_id(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def get_by_user_id(self, user_id: int) -> Optional[Student]:
        raise NotImplementedError

    def list_by_ids(self, student_ids: Sequence[int]) -> Sequence[Student]:
        raise NotImplementedError
