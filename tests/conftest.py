from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from typing import Any, Mapping, Optional, Sequence

import pytest

from course_sessions.attendance.model import AttendanceRecord, NewAttendance
from course_sessions.container import Container, wire_services
from course_sessions.core.enums import AttendanceStatus, EnrollmentStatus, Role
from course_sessions.core.exceptions import ConflictError
from course_sessions.courses.model import Course, Enrollment
from course_sessions.schedules.model import ClassSession, NewSession, SessionQuery
from course_sessions.users.model import CallerContext, Student, Teacher

TODAY = date(2024, 3, 13)
NOW = datetime(2024, 3, 13, 9, 30, 0)

ADMIN = CallerContext(user_id=1, role=Role.ADMIN)
MAIN_TEACHER = CallerContext(user_id=10, role=Role.TEACHER)
SUBSTITUTE = CallerContext(user_id=11, role=Role.TEACHER)
OTHER_TEACHER = CallerContext(user_id=12, role=Role.TEACHER)
STUDENT_A = CallerContext(user_id=20, role=Role.STUDENT)
STUDENT_B = CallerContext(user_id=21, role=Role.STUDENT)
OUTSIDER = CallerContext(user_id=29, role=Role.STUDENT)


class InMemoryCourses:
    def __init__(self):
        self.courses: dict[int, Course] = {}

    def get_by_id(self, course_id: int) -> Optional[Course]:
        return self.courses.get(int(course_id))

    def list_ids_for_teacher(self, teacher_id: int) -> Sequence[int]:
        return sorted(c.course_id for c in self.courses.values() if c.teacher_id == teacher_id)


class InMemoryEnrollments:
    def __init__(self):
        self.rows: list[Enrollment] = []

    def _active(self):
        return [e for e in self.rows if e.status == EnrollmentStatus.ACTIVE]

    def list_active_for_course(self, course_id: int) -> Sequence[Enrollment]:
        return [e for e in self._active() if e.course_id == course_id]

    def get_active(self, *, course_id: int, student_id: int) -> Optional[Enrollment]:
        for e in self._active():
            if e.course_id == course_id and e.student_id == student_id:
                return e
        return None

    def count_active(self, course_id: int) -> int:
        return len(self.list_active_for_course(course_id))

    def list_active_course_ids_for_student(self, student_id: int) -> Sequence[int]:
        return sorted({e.course_id for e in self._active() if e.student_id == student_id})


@dataclass
class InMemoryTeachers:
    teachers: dict[int, Teacher] = field(default_factory=dict)

    def get_by_id(self, teacher_id: int) -> Optional[Teacher]:
        return self.teachers.get(int(teacher_id))

    def get_by_user_id(self, user_id: int) -> Optional[Teacher]:
        return next((t for t in self.teachers.values() if t.user_id == user_id), None)


@dataclass
class InMemoryStudents:
    students: dict[int, Student] = field(default_factory=dict)

    def get_by_id(self, student_id: int) -> Optional[Student]:
        return self.students.get(int(student_id))

    def get_by_user_id(self, user_id: int) -> Optional[Student]:
        return next((s for s in self.students.values() if s.user_id == user_id), None)

    def list_by_ids(self, student_ids: Sequence[int]) -> Sequence[Student]:
        return [self.students[i] for i in student_ids if i in self.students]


class InMemorySessions:
    def __init__(self):
        self.sessions: dict[int, ClassSession] = {}
        self.claims: set[int] = set()
        self._next_id = 1

    def add(self, **kwargs) -> ClassSession:
        session = ClassSession(session_id=self._next_id, **kwargs)
        self.sessions[session.session_id] = session
        self._next_id += 1
        return session

    def get_by_id(self, session_id: int) -> Optional[ClassSession]:
        return self.sessions.get(int(session_id))

    def exists_for_course(self, course_id: int) -> bool:
        return any(s.course_id == course_id for s in self.sessions.values())

    def _matches(self, s: ClassSession, q: SessionQuery) -> bool:
        if q.course_ids is not None:
            in_scope = s.course_id in q.course_ids
            if q.substitute_teacher_id is not None:
                in_scope = in_scope or s.substitute_teacher_id == q.substitute_teacher_id
            if not in_scope:
                return False
        if q.course_id is not None and s.course_id != q.course_id:
            return False
        if q.date_from is not None and s.date < q.date_from:
            return False
        if q.date_before is not None and s.date >= q.date_before:
            return False
        if q.is_cancelled is not None and s.is_cancelled != q.is_cancelled:
            return False
        return True

    def query(self, query: SessionQuery):
        rows = sorted(
            (s for s in self.sessions.values() if self._matches(s, query)),
            key=lambda s: (s.date, s.start_time, s.session_id),
        )
        total = len(rows)
        if query.limit is not None:
            rows = rows[query.offset : query.offset + query.limit]
        return rows, total

    def create_generated(self, course_id: int, sessions: Sequence[NewSession]) -> Sequence[ClassSession]:
        if course_id in self.claims or self.exists_for_course(course_id):
            raise ConflictError("Sessions already exist for this course")
        self.claims.add(course_id)
        return [
            self.add(
                course_id=s.course_id,
                session_number=s.session_number,
                title=s.title,
                date=s.date,
                start_time=s.start_time,
                end_time=s.end_time,
                room=s.room,
            )
            for s in sessions
        ]

    def update(self, session_id: int, changes: Mapping[str, Any]) -> bool:
        current = self.sessions.get(int(session_id))
        if not current:
            return False
        self.sessions[current.session_id] = replace(current, **changes)
        return True

    def delete(self, session_id: int) -> bool:
        session = self.sessions.pop(int(session_id), None)
        if not session:
            return False
        if not self.exists_for_course(session.course_id):
            self.claims.discard(session.course_id)
        return True

    def delete_by_course(self, course_id: int) -> int:
        doomed = [sid for sid, s in self.sessions.items() if s.course_id == course_id]
        for sid in doomed:
            del self.sessions[sid]
        self.claims.discard(course_id)
        return len(doomed)


class InMemoryAttendance:
    def __init__(self):
        self.records: dict[int, AttendanceRecord] = {}
        self._next_id = 1

    def _by_pair(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        return next(
            (r for r in self.records.values() if r.session_id == session_id and r.student_id == student_id),
            None,
        )

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return self.records.get(int(attendance_id))

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        return [r for r in self.records.values() if r.session_id == session_id]

    def count_for_session(self, session_id: int) -> int:
        return len(self.list_for_session(session_id))

    def list_for_student(self, student_id: int) -> Sequence[AttendanceRecord]:
        return [r for r in self.records.values() if r.student_id == student_id]

    def _insert(self, *, session_id, student_id, status, notes, recorded_by, recorded_at) -> int:
        rid = self._next_id
        self._next_id += 1
        self.records[rid] = AttendanceRecord(
            attendance_id=rid,
            session_id=session_id,
            student_id=student_id,
            status=status,
            notes=notes,
            recorded_by=recorded_by,
            recorded_at=recorded_at,
        )
        return rid

    def upsert(self, *, session_id, student_id, status, notes, recorded_by, recorded_at) -> int:
        existing = self._by_pair(session_id, student_id)
        if existing:
            self.records[existing.attendance_id] = replace(
                existing, status=status, notes=notes, recorded_by=recorded_by, recorded_at=recorded_at
            )
            return existing.attendance_id
        return self._insert(
            session_id=session_id,
            student_id=student_id,
            status=status,
            notes=notes,
            recorded_by=recorded_by,
            recorded_at=recorded_at,
        )

    def insert_missing(self, records: Sequence[NewAttendance]) -> int:
        created = 0
        for r in records:
            if self._by_pair(r.session_id, r.student_id):
                continue
            self._insert(
                session_id=r.session_id,
                student_id=r.student_id,
                status=r.status,
                notes=r.notes,
                recorded_by=r.recorded_by,
                recorded_at=r.recorded_at,
            )
            created += 1
        return created

    def update_record(self, *, attendance_id, status, notes, recorded_by, recorded_at) -> bool:
        existing = self.records.get(int(attendance_id))
        if not existing:
            return False
        self.records[existing.attendance_id] = replace(
            existing, status=status, notes=notes, recorded_by=recorded_by, recorded_at=recorded_at
        )
        return True


@dataclass
class World:
    """A small school: one course taught by teacher 1, three enrolled students."""

    courses: InMemoryCourses
    enrollments: InMemoryEnrollments
    teachers: InMemoryTeachers
    students: InMemoryStudents
    sessions: InMemorySessions
    attendance: InMemoryAttendance

    def container(self, *, auto_absence_on_read: bool = True, default_page_limit: int = 50) -> Container:
        return wire_services(
            sessions_repo=self.sessions,
            courses_repo=self.courses,
            enrollments_repo=self.enrollments,
            teachers_repo=self.teachers,
            students_repo=self.students,
            attendance_repo=self.attendance,
            auto_absence_on_read=auto_absence_on_read,
            default_page_limit=default_page_limit,
        )

    def add_session(self, day: date, *, course_id: int = 1, **kwargs) -> ClassSession:
        number = 1 + sum(1 for s in self.sessions.sessions.values() if s.course_id == course_id)
        values = dict(
            course_id=course_id,
            session_number=number,
            title=f"Session {number} - Python 101",
            date=day,
            start_time=time(8, 0),
            end_time=time(10, 0),
            room="A1",
        )
        values.update(kwargs)
        return self.sessions.add(**values)

    def mark(self, session: ClassSession, student_id: int, status: AttendanceStatus) -> int:
        return self.attendance.upsert(
            session_id=session.session_id,
            student_id=student_id,
            status=status,
            notes=None,
            recorded_by=MAIN_TEACHER.user_id,
            recorded_at=NOW,
        )


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def fixed_now() -> datetime:
    return NOW


@pytest.fixture
def world() -> World:
    courses = InMemoryCourses()
    courses.courses[1] = Course(
        course_id=1,
        name="Python 101",
        code="PY101",
        start_date=date(2024, 2, 1),
        end_date=date(2024, 2, 14),
        room="A1",
        teacher_id=1,
    )
    courses.courses[2] = Course(
        course_id=2,
        name="Data 201",
        code="DA201",
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 31),
        room="B2",
        teacher_id=3,
    )
    courses.courses[3] = Course(
        course_id=3,
        name="Undated",
        code="UN000",
        start_date=None,
        end_date=None,
        room=None,
        teacher_id=1,
    )

    teachers = InMemoryTeachers(
        {
            1: Teacher(teacher_id=1, user_id=10, teacher_code="T01", full_name="Main Teacher"),
            2: Teacher(teacher_id=2, user_id=11, teacher_code="T02", full_name="Substitute Teacher"),
            3: Teacher(teacher_id=3, user_id=12, teacher_code="T03", full_name="Other Teacher"),
        }
    )

    students = InMemoryStudents(
        {
            1: Student(student_id=1, user_id=20, student_code="S003", full_name="Alice", email="a@example.com"),
            2: Student(student_id=2, user_id=21, student_code="S001", full_name="Bob", email="b@example.com"),
            3: Student(student_id=3, user_id=22, student_code="S002", full_name="Chen", email="c@example.com"),
            4: Student(student_id=4, user_id=29, student_code="S009", full_name="Dana", email="d@example.com"),
        }
    )

    enrollments = InMemoryEnrollments()
    enrollments.rows = [
        Enrollment(enrollment_id=1, course_id=1, student_id=1, status=EnrollmentStatus.ACTIVE),
        Enrollment(enrollment_id=2, course_id=1, student_id=2, status=EnrollmentStatus.ACTIVE),
        Enrollment(enrollment_id=3, course_id=1, student_id=3, status=EnrollmentStatus.ACTIVE),
        Enrollment(enrollment_id=4, course_id=1, student_id=4, status=EnrollmentStatus.DROPPED),
        Enrollment(enrollment_id=5, course_id=2, student_id=4, status=EnrollmentStatus.ACTIVE),
    ]

    return World(
        courses=courses,
        enrollments=enrollments,
        teachers=teachers,
        students=students,
        sessions=InMemorySessions(),
        attendance=InMemoryAttendance(),
    )


@pytest.fixture
def container(world: World) -> Container:
    return world.container()
