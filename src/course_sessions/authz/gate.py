from __future__ import annotations

from typing import Optional

from ..core.enums import Action, Role
from ..core.exceptions import AuthorizationError, NotFoundError
from ..courses.model import Course
from ..courses.repository import CourseRepository, EnrollmentRepository
from ..schedules.model import ClassSession
from ..users.model import CallerContext
from ..users.repository import StudentRepository, TeacherRepository
from .policy import Decision, ResourceContext, Subject, authorize


class AuthorizationGate:
    """Resolves callers and resources, then applies the role policies."""

    def __init__(
        self,
        teachers: TeacherRepository,
        students: StudentRepository,
        enrollments: EnrollmentRepository,
        courses: CourseRepository,
    ):
        self._teachers = teachers
        self._students = students
        self._enrollments = enrollments
        self._courses = courses

    def resolve(self, caller: CallerContext) -> Subject:
        role = Role(caller.role)
        if role == Role.TEACHER:
            teacher = self._teachers.get_by_user_id(int(caller.user_id))
            if not teacher:
                raise NotFoundError("Teacher profile not found")
            return Subject(user_id=int(caller.user_id), role=role, teacher_id=teacher.teacher_id)

        if role == Role.STUDENT:
            student = self._students.get_by_user_id(int(caller.user_id))
            if not student:
                raise NotFoundError("Student profile not found")
            return Subject(user_id=int(caller.user_id), role=role, student_id=student.student_id)

        return Subject(user_id=int(caller.user_id), role=role)

    def context_for(
        self,
        subject: Subject,
        *,
        course: Optional[Course],
        session: Optional[ClassSession] = None,
        target_student_id: Optional[int] = None,
    ) -> ResourceContext:
        enrollment_active = False
        if subject.role == Role.STUDENT and course is not None and subject.student_id is not None:
            enrollment_active = (
                self._enrollments.get_active(course_id=course.course_id, student_id=subject.student_id) is not None
            )

        return ResourceContext(
            main_teacher_id=course.teacher_id if course else None,
            substitute_teacher_id=session.substitute_teacher_id if session else None,
            enrollment_active=enrollment_active,
            target_student_id=target_student_id,
        )

    def context_for_student_history(self, subject: Subject, *, student_id: int) -> ResourceContext:
        """Attendance history spans every course of one student.

        A student owns their whole history; a teacher needs the student to be
        actively enrolled in at least one course they teach.
        """

        if subject.role == Role.STUDENT:
            return ResourceContext(
                enrollment_active=subject.student_id == int(student_id),
                target_student_id=int(student_id),
            )

        main_teacher_id = None
        if subject.role == Role.TEACHER and subject.teacher_id is not None:
            taught = set(self._courses.list_ids_for_teacher(subject.teacher_id))
            enrolled = set(self._enrollments.list_active_course_ids_for_student(int(student_id)))
            if taught & enrolled:
                main_teacher_id = subject.teacher_id

        return ResourceContext(main_teacher_id=main_teacher_id, target_student_id=int(student_id))

    def is_allowed(self, subject: Subject, action: Action, resource: ResourceContext) -> bool:
        return authorize(subject, action, resource) == Decision.ALLOW

    def require(
        self,
        subject: Subject,
        action: Action,
        resource: ResourceContext = ResourceContext(),
        message: str = "You do not have permission to perform this action",
    ) -> None:
        if not self.is_allowed(subject, action, resource):
            raise AuthorizationError(message)

    def require_for_session(
        self,
        subject: Subject,
        action: Action,
        *,
        course: Course,
        session: ClassSession,
        message: str = "You do not have permission to access this session",
    ) -> None:
        target = subject.student_id if subject.role == Role.STUDENT else None
        resource = self.context_for(subject, course=course, session=session, target_student_id=target)
        self.require(subject, action, resource, message)
