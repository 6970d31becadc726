"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class UniVibeError(Exception):
    """Base exception for univibe."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidIdentityError(UniVibeError):
    """Identity cannot be used to resolve a chat session."""

    pass


class UnauthenticatedError(UniVibeError):
    """No caller identity is available."""

    pass


class ValidationError(UniVibeError):
    """Validation error."""

    pass


class NotFoundError(UniVibeError):
    """Document not found."""

    pass


class SessionNotFoundError(NotFoundError):
    """Chat session has no log yet. Reads treat this as an empty log."""

    pass


class DuplicateError(UniVibeError):
    """Document already exists."""

    pass


class ConflictError(UniVibeError):
    """Document changed since it was read."""

    def __init__(self, message: str, expected_version: int, actual_version: int):
        super().__init__(
            message,
            details={"expected_version": expected_version, "actual_version": actual_version},
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class InfrastructureError(UniVibeError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass


class StoreUnavailableError(InfrastructureError):
    """Document backend transport failure."""

    pass
