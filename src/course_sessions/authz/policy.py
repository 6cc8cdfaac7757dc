"""Capability resolution: who may do what to which session.

Every role rule lives here so handlers only ask `authorize(...)`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.enums import Action, Role


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Subject:
    """A caller resolved to its teacher/student profile."""

    user_id: int
    role: Role
    teacher_id: Optional[int] = None
    student_id: Optional[int] = None


@dataclass(frozen=True)
class ResourceContext:
    """Facts about the target session/course needed for a decision.

    `substitute_teacher_id` is per session: it never grants access to other
    sessions of the same course.
    """

    main_teacher_id: Optional[int] = None
    substitute_teacher_id: Optional[int] = None
    enrollment_active: bool = False
    target_student_id: Optional[int] = None


class RolePolicy(ABC):
    @abstractmethod
    def decide(self, subject: Subject, action: Action, resource: ResourceContext) -> Decision:
        raise NotImplementedError


class AdminPolicy(RolePolicy):
    def decide(self, subject: Subject, action: Action, resource: ResourceContext) -> Decision:
        return Decision.ALLOW


class TeacherPolicy(RolePolicy):
    _OWN_COURSE_ACTIONS = frozenset(
        {
            Action.VIEW_SESSION,
            Action.VIEW_ATTENDANCE,
            Action.RECORD_ATTENDANCE,
            Action.UPDATE_SESSION,
        }
    )

    def decide(self, subject: Subject, action: Action, resource: ResourceContext) -> Decision:
        if action not in self._OWN_COURSE_ACTIONS or subject.teacher_id is None:
            return Decision.DENY

        is_main = resource.main_teacher_id is not None and resource.main_teacher_id == subject.teacher_id
        is_substitute = (
            resource.substitute_teacher_id is not None and resource.substitute_teacher_id == subject.teacher_id
        )
        return Decision.ALLOW if (is_main or is_substitute) else Decision.DENY


class StudentPolicy(RolePolicy):
    def decide(self, subject: Subject, action: Action, resource: ResourceContext) -> Decision:
        if subject.student_id is None or not resource.enrollment_active:
            return Decision.DENY

        if action == Action.VIEW_SESSION:
            return Decision.ALLOW
        if action == Action.VIEW_ATTENDANCE:
            # Own attendance row only.
            if resource.target_student_id == subject.student_id:
                return Decision.ALLOW
        return Decision.DENY


class PolicyFactory:
    """Factory Pattern: choose the policy for a role."""

    _policies = {
        Role.ADMIN: AdminPolicy(),
        Role.TEACHER: TeacherPolicy(),
        Role.STUDENT: StudentPolicy(),
    }

    def for_role(self, role: Role) -> RolePolicy:
        policy = self._policies.get(role)
        if policy is None:
            raise ValueError(f"Unsupported role: {role!r}")
        return policy


_factory = PolicyFactory()


def authorize(subject: Subject, action: Action, resource: ResourceContext) -> Decision:
    return _factory.for_role(subject.role).decide(subject, action, resource)
