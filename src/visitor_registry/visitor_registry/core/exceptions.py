from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(DomainError):
    """Raised when a pending request of the same type already exists for a visitor."""


class NotFoundError(DomainError):
    """Raised when a visitor or request id is unknown."""


class InvalidStateError(DomainError):
    """Raised on an illegal transition (double checkout, resolving a resolved request)."""


class StorageError(DomainError):
    """Raised when the storage transaction fails.

    The transaction may or may not have committed; re-read current state before retrying.
    """


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""
