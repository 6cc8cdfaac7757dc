class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class NotFoundError(DomainError):
    """Raised when a course, session, teacher, student or record is absent."""


class ConflictError(DomainError):
    """Raised when the requested change collides with existing state."""


class AuthorizationError(DomainError):
    """Raised when a caller lacks permission for an action."""
