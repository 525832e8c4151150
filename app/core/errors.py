"""Error taxonomy for the account API.

Flows raise ``ApiError`` subclasses; ``app.main`` renders them as the error
envelope. ``DuplicateKeyError`` and ``InvalidTokenError`` are internal
signals from the store and the token issuer that flows translate before
they reach a client.
"""

from typing import Any


class ApiError(Exception):
    """Client-facing error with an HTTP status code and a safe message."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        errors: list[Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(ApiError):
    """Missing, empty or mismatched input."""

    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(ApiError):
    """Bad credentials or a missing, invalid or stale token."""

    status_code = 401
    default_message = "Unauthorized request"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource already exists"


class InternalError(ApiError):
    """Store, hasher or token failure. The message never carries the cause."""

    status_code = 500
    default_message = "Internal server error"


class DuplicateKeyError(Exception):
    """Raised by the user store when username or email is already taken."""


class InvalidTokenError(Exception):
    """Raised by the token issuer when a token fails signature, expiry or claim checks."""


class PasswordHashError(Exception):
    """Raised when hashing or verifying a password fails (e.g. malformed stored hash)."""
