"""
Base exception classes and the DRF exception handler that renders them.

Services raise these domain errors; views never translate them by hand.
The handler registered as REST_FRAMEWORK["EXCEPTION_HANDLER"] turns any
BaseApplicationError into a JSON body plus the HTTP status the exception
class declares.

Exception Hierarchy:
    BaseApplicationError (base, 500)
    ├── ValidationError - Malformed input (400)
    ├── PermissionDeniedError - Caller may not act on the resource (403)
    ├── NotFoundError - Resource not found (404)
    └── ConflictError - Operation conflicts with current state (409)

Usage:
    from core.exceptions import NotFoundError

    raise NotFoundError(
        "Upload not found",
        error_code="UPLOAD_NOT_FOUND",
        details={"upload_id": str(upload_id)},
    )

Response body:
    {
        "error": "Upload not found",
        "error_code": "UPLOAD_NOT_FOUND",
        "details": {"upload_id": "..."}
    }
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rest_framework.response import Response
from rest_framework.views import exception_handler

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
        status_code: HTTP status used when rendered by the API
        headers: Extra response headers to emit with the error
    """

    default_error_code: str = "APPLICATION_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.headers = headers or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Raised when input validation fails."""

    default_error_code: str = "VALIDATION_ERROR"
    status_code: int = 400


class PermissionDeniedError(BaseApplicationError):
    """Raised when the caller lacks permission for an operation."""

    default_error_code: str = "PERMISSION_DENIED"
    status_code: int = 403


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Also used for resources owned by someone else, so that lookups never
    reveal whether another user's record exists.
    """

    default_error_code: str = "NOT_FOUND"
    status_code: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for invalid state transitions and concurrent modification conflicts.
    """

    default_error_code: str = "CONFLICT"
    status_code: int = 409


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """
    DRF exception handler aware of BaseApplicationError.

    Falls back to DRF's default handler for everything else (authentication,
    parse errors, throttling). Unknown exceptions return None so Django's
    500 handling applies.
    """
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request failed with %s",
            exc.error_code,
            extra={
                "event_type": "api_error",
                "error_code": exc.error_code,
                "view": view.__class__.__name__ if view else None,
            },
        )
        response = Response(exc.to_dict(), status=exc.status_code)
        for header, value in exc.headers.items():
            response[header] = value
        return response

    return exception_handler(exc, context)
