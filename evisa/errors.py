"""
Vietnam eVisa Portal — Error Taxonomy

Every failure the intake flow can surface to a user derives from
ApplicationError and carries a user-facing ``message``. The HTTP layer maps
each class to a status code (see STATUS_CODES); the record gateway maps the
status codes back.
"""

from __future__ import annotations


class ApplicationError(Exception):
    """Base class for recoverable, user-facing failures."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApplicationError):
    """Field-level or cross-field validation failure (never fatal)."""

    default_message = "Please correct the highlighted fields."

    def __init__(self, errors: dict[str, str], message: str | None = None):
        self.errors = dict(errors)
        super().__init__(message or self.default_message)


class NotFoundError(ApplicationError):
    default_message = "Application not found"


class ConflictError(ApplicationError):
    default_message = "Application has already been submitted"


class UploadError(ApplicationError):
    default_message = "Upload failed"


class TransportError(ApplicationError):
    default_message = "Could not reach the server. Please try again."


STATUS_CODES: dict[type[ApplicationError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    UploadError: 400,
    TransportError: 502,
}


def status_code_for(exc: ApplicationError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500
