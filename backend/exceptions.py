"""
Exception hierarchy for the notes application.

Every error carries the HTTP status it maps to, so routers can simply
raise and the handlers registered in main.py render the response.
"""

from typing import Any, Dict


class NotekeeperError(Exception):
    """Base exception for all application errors.

    Attributes:
        message: Human-readable error message returned to the caller.
        status_code: HTTP status the error maps to.
    """

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(NotekeeperError):
    """A required field is missing or a value is malformed."""

    status_code = 400


class NotFoundError(NotekeeperError):
    """Direct-id lookup matched no row."""

    status_code = 404


class ConflictError(NotekeeperError):
    """The client edited a stale version of the row."""

    status_code = 409


class PayloadTooLargeError(NotekeeperError):
    status_code = 413


class UnsupportedMediaError(NotekeeperError):
    status_code = 415


class StoreError(NotekeeperError):
    """The SQLite engine rejected a statement.

    The message is safe to show to callers; the underlying engine error
    is kept on ``__cause__`` and logged by the exception handler.
    """

    status_code = 500

    def __init__(self, message: str = "Database operation failed", detail: str = ""):
        self.detail = detail
        super().__init__(message)
