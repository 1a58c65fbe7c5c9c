"""
Base exception classes for application-wide error handling.

Every domain error carries a human-readable message, a machine-readable
error code (the tag callers and the HTTP layer match on), and optional
details for debugging.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── PermissionDeniedError - Ownership or role violations
    ├── ConflictError - State conflicts (concurrent operations)
    └── ExternalServiceError - Third-party service failures

Usage:
    from core.exceptions import NotFoundError, PermissionDeniedError

    raise NotFoundError(
        f"Request {request_id} not found",
        error_code="REQUEST_NOT_FOUND",
        details={"request_id": str(request_id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (serialization, authentication, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (ids, field errors, upstream codes)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and (when present) details keys

        Example:
            {
                "error": "Request not found",
                "error_code": "REQUEST_NOT_FOUND",
                "details": {"request_id": "..."}
            }
        """
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
    """
    Raised when input validation fails in the service layer.

    Never retried: the same input fails the same way.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """Raised when a single resource expected to exist is missing."""

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller is authenticated but not allowed to act.

    Use for ownership checks ("caller must be the payer unless admin").
    Authentication failures stay with DRF.
    """

    default_error_code: str = "FORBIDDEN"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current resource state.

    HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Log the original error for debugging; clients only see the message
    and the error code.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
