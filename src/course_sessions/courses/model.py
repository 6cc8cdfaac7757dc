from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import EnrollmentStatus


@dataclass(frozen=True)
class Course:
    """Course as seen by the scheduling engine (owned by course management)."""

    course_id: int
    name: str
    code: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    room: Optional[str]
    teacher_id: Optional[int]
    is_active: bool = True


@dataclass(frozen=True)
class Enrollment:
    enrollment_id: int
    course_id: int
    student_id: int
    status: EnrollmentStatus
