"""
Exception taxonomy shared by the relay services and routers.
"""

from typing import Any, Optional


class RelayError(Exception):
    """Base exception for counsel-relay."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(RelayError):
    """Bad input shape (empty content, malformed idempotency key)."""

    pass


class NotFoundError(RelayError):
    """Resource not found."""

    pass


class ConflictError(RelayError):
    """A unique slot (room role) is already taken."""

    pass


class AuthenticationError(RelayError):
    """Admin credentials missing or invalid."""

    pass


class ForbiddenError(RelayError):
    """Caller may not perform this operation."""

    pass


class RoomClosedError(ForbiddenError):
    """Room is closed or does not exist."""

    pass


class StoreError(RelayError):
    """Backend storage failure."""

    pass


_HTTP_STATUS_BY_ERROR: tuple[tuple[type[RelayError], int], ...] = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StoreError, 500),
)


def http_status_for(exc: RelayError) -> int:
    """Map a relay error onto the HTTP status the API answers with."""

    for error_type, status_code in _HTTP_STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500
