from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.reconciler import AutoAbsenceReconciler
from .attendance.repository import AttendanceRepository
from .attendance.service import AttendanceService
from .authz.gate import AuthorizationGate
from .core.constants import DEFAULT_PAGE_LIMIT
from .courses.mysql_course_repository import MySQLCourseRepository, MySQLEnrollmentRepository
from .courses.repository import CourseRepository, EnrollmentRepository
from .database.connection import DBConfig, DatabaseConnection
from .schedules.generator import SessionGenerator
from .schedules.mysql_schedule_repository import MySQLScheduleRepository
from .schedules.repository import SessionRepository
from .schedules.service import ScheduleService
from .users.mysql_people_repository import MySQLStudentRepository, MySQLTeacherRepository
from .users.repository import StudentRepository, TeacherRepository


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    sessions_repo: SessionRepository
    courses_repo: CourseRepository
    enrollments_repo: EnrollmentRepository
    teachers_repo: TeacherRepository
    students_repo: StudentRepository
    attendance_repo: AttendanceRepository

    gate: AuthorizationGate
    reconciler: AutoAbsenceReconciler
    schedule_service: ScheduleService
    attendance_service: AttendanceService


def wire_services(
    *,
    sessions_repo: SessionRepository,
    courses_repo: CourseRepository,
    enrollments_repo: EnrollmentRepository,
    teachers_repo: TeacherRepository,
    students_repo: StudentRepository,
    attendance_repo: AttendanceRepository,
    conn: Optional[DatabaseConnection] = None,
    auto_absence_on_read: bool = True,
    default_page_limit: int = DEFAULT_PAGE_LIMIT,
) -> Container:
    """Build services on top of any repository implementations."""

    gate = AuthorizationGate(teachers_repo, students_repo, enrollments_repo, courses_repo)
    reconciler = AutoAbsenceReconciler(attendance_repo, enrollments_repo, sessions_repo)
    generator = SessionGenerator(sessions_repo, courses_repo)

    schedule_service = ScheduleService(
        sessions_repo,
        courses_repo,
        enrollments_repo,
        teachers_repo,
        attendance_repo,
        gate,
        generator,
        reconciler,
        auto_reconcile_on_read=auto_absence_on_read,
        default_limit=default_page_limit,
    )
    attendance_service = AttendanceService(
        attendance_repo,
        sessions_repo,
        courses_repo,
        enrollments_repo,
        teachers_repo,
        students_repo,
        gate,
        reconciler,
        auto_reconcile_on_read=auto_absence_on_read,
    )

    return Container(
        conn=conn,
        sessions_repo=sessions_repo,
        courses_repo=courses_repo,
        enrollments_repo=enrollments_repo,
        teachers_repo=teachers_repo,
        students_repo=students_repo,
        attendance_repo=attendance_repo,
        gate=gate,
        reconciler=reconciler,
        schedule_service=schedule_service,
        attendance_service=attendance_service,
    )


def build_container(
    *,
    db_config: dict,
    auto_absence_on_read: bool = True,
    default_page_limit: int = DEFAULT_PAGE_LIMIT,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    return wire_services(
        sessions_repo=MySQLScheduleRepository(conn),
        courses_repo=MySQLCourseRepository(conn),
        enrollments_repo=MySQLEnrollmentRepository(conn),
        teachers_repo=MySQLTeacherRepository(conn),
        students_repo=MySQLStudentRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        conn=conn,
        auto_absence_on_read=auto_absence_on_read,
        default_page_limit=default_page_limit,
    )
