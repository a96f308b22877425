from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class StorageError(DomainError):
    """Raised when the local store cannot read or persist data."""


class NotInitialized(DomainError):
    """Raised when an operation runs before the store/sync service exists."""


class NetworkError(DomainError):
    """Raised when a request fails, times out or returns a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RequestCancelled(DomainError):
    """Raised when the caller aborted a request before it completed."""
