from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence, Tuple

from .model import ClassSession, NewSession, SessionQuery


class SessionRepository(Protocol):
    def get_by_id(self, session_id: int) -> Optional[ClassSession]:
        raise NotImplementedError

    def exists_for_course(self, course_id: int) -> bool:
        raise NotImplementedError

    def query(self, query: SessionQuery) -> Tuple[Sequence[ClassSession], int]:
        """Return one page of sessions ordered by (date, start_time) and the total count."""

        raise NotImplementedError

    def create_generated(self, course_id: int, sessions: Sequence[NewSession]) -> Sequence[ClassSession]:
        """Claim generation for the course and insert the calendar atomically.

        Raises ConflictError when the course was already claimed or has sessions.
        """

        raise NotImplementedError

    def update(self, session_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def delete(self, session_id: int) -> bool:
        """Delete one session; releases the course claim when it was the last one."""

        raise NotImplementedError

    def delete_by_course(self, course_id: int) -> int:
        """Delete every session of a course and release its claim. Returns deleted count."""

        raise NotImplementedError
