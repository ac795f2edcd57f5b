"""
Application error taxonomy.

Services raise these exceptions; the HTTP layer renders them into the
``{success: false, message, errors?}`` envelope using ``status_code``.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for errors that carry a user-visible message and an HTTP status."""

    status_code = 500
    headers: Optional[Dict[str, str]] = None

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(AppError):
    """Malformed or missing input. ``errors`` holds per-field issues."""

    status_code = 400


class Unauthorized(AppError):
    """Missing, invalid or expired identity."""

    status_code = 401
    headers = {"WWW-Authenticate": "Bearer"}


class InsufficientPermission(AppError):
    status_code = 403


class NotFound(AppError):
    """Entity is absent or not visible to the caller. Both cases share this error."""

    status_code = 404


class Conflict(AppError):
    status_code = 409


class OwnerRemovalError(AppError):
    """The project owner can only leave a project by deleting it."""

    status_code = 400

    def __init__(self, message: str = "Cannot remove project owner"):
        super().__init__(message)
