"""
core/errors.py -- Application error taxonomy.

Every failure the API reports deliberately is an AppError subclass carrying
its HTTP status and a machine-readable code. api/main.py installs one
exception handler for AppError that renders the ErrorResponse envelope, so
stores, services, and dependencies raise these without importing FastAPI.

Token failures (InvalidToken, TokenExpired, TokenNotRecognized) are all
Unauthenticated: every bad credential is a 401, including a garbled refresh
token presented to /auth/refresh.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "You do not have permission to modify this resource."


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Resource not found."


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    message = "Resource already exists."


class InternalError(AppError):
    pass


# ---------------------------------------------------------------------------
# Token failures
# ---------------------------------------------------------------------------


class InvalidToken(Unauthenticated):
    code = "invalid_token"
    message = "Token is invalid."


class TokenExpired(Unauthenticated):
    code = "token_expired"
    message = "Token has expired."


class TokenNotRecognized(Unauthenticated):
    code = "token_not_recognized"
    message = "Token is not recognized."


class BadCredentials(Unauthenticated):
    code = "bad_credentials"
    message = "Invalid username/email or password."
