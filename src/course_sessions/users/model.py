from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class CallerContext:
    """Who is calling, as supplied by the authentication layer."""

    user_id: int
    role: Role


@dataclass(frozen=True)
class Teacher:
    teacher_id: int
    user_id: int
    teacher_code: Optional[str]
    full_name: str
    is_active: bool = True


@dataclass(frozen=True)
class Student:
    """Student profile joined with its backing user account."""

    student_id: int
    user_id: int
    student_code: Optional[str]
    full_name: str
    email: Optional[str] = None
    is_active: bool = True
