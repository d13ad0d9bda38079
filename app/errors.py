"""Application error taxonomy.

Request-fatal errors (auth, validation, not found) carry the HTTP status the
API layer answers with. External-service errors (extraction, search,
navigation) are normally recovered at the smallest unit of work and only
reach the API layer when a whole operation depends on a single call.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base application error with structured data."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, "details": self.details}


class AuthError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ExternalServiceError(AppError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 502


class ExtractionError(ExternalServiceError):
    """Model output could not be obtained or validated against the schema."""

    code = "EXTRACTION_FAILED"


class SearchError(ExternalServiceError):
    code = "SEARCH_FAILED"


class NavigationError(ExternalServiceError):
    code = "NAVIGATION_FAILED"
