class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when the caller is not logged in or credentials are invalid."""


class ForbiddenError(DomainError):
    """Raised when the caller lacks the role or enrollment for an action."""


class NotFoundError(DomainError):
    """Raised when a meeting, enrollment or material does not exist."""


class ConflictError(DomainError):
    """Raised on a concurrent-update collision. Safe to retry."""


class DependencyError(DomainError):
    """Raised when a datastore call fails."""
