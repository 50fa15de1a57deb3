"""Service errors. Each carries the HTTP status and the outward message it maps to."""

from __future__ import annotations


class AuthServiceError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: list | dict | None = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class ValidationFailed(AuthServiceError):
    status_code = 400
    message = "Validation error"


class DuplicateUsername(AuthServiceError):
    status_code = 409
    message = "Username already exists"


class InvalidCredentials(AuthServiceError):
    """Unknown user and wrong password both land here."""

    status_code = 401
    message = "Invalid credentials"


class InvalidRefreshToken(AuthServiceError):
    """Malformed, expired, wrongly signed, or revoked refresh token."""

    status_code = 401
    message = "Invalid refresh token"


class NoToken(AuthServiceError):
    status_code = 401
    message = "No token"


class InvalidToken(AuthServiceError):
    status_code = 403
    message = "Invalid token"


class TaskNotFound(AuthServiceError):
    status_code = 404
    message = "Task not found"


class StorageFailure(AuthServiceError):
    status_code = 500
    message = "Storage failure"
