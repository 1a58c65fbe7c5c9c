"""
Base service layer patterns for business logic encapsulation.

This module provides:
- ServiceResult: Result wrapper for outcomes the caller records rather
  than propagates (webhook handlers, best-effort side effects)
- BaseService: Base class with logging and transaction helpers

Pattern Comparison:
    - Exceptions (core.exceptions): request-path failures the HTTP layer
      maps to a status code
    - ServiceResult: per-event outcomes that must never fail the caller

Usage:
    from core.services import BaseService, ServiceResult

    class CompensationService(BaseService):
        @classmethod
        def compensate(cls, hold) -> ServiceResult[Decimal]:
            with cls.atomic():
                ...
            cls.get_logger().info("Compensated hold", extra={"hold_id": str(hold.id)})
            return ServiceResult.success(amount)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code
        details: Extra error context copied from a domain exception

    Usage:
        result = dispatch_webhook(webhook_event)
        if not result:
            webhook_event.mark_failed(result.error)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """Alias for success() - use whichever reads better in context."""
        return cls(success=True, data=data)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying data."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """Create a failed result."""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            details=details,
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str | None = None
    ) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Domain exceptions keep their own error_code and details; anything
        else falls back to the upper-cased class name.
        """
        return cls(
            success=False,
            error=getattr(exc, "message", None) or str(exc),
            error_code=error_code
            or getattr(exc, "error_code", None)
            or exc.__class__.__name__.upper(),
            details=getattr(exc, "details", None) or None,
        )

    def to_response(self) -> dict[str, Any]:
        """Convert to API response format."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.details:
            response["details"] = self.details
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - A per-class logger (`module.ClassName`) for filtering
    - An explicit transaction boundary helper

    Services that talk to the payment processor are instantiated with the
    processor adapter they should use; purely local services stay
    classmethod-based.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute the enclosed block in a database transaction.

        Thin wrapper around django.db.transaction.atomic() that makes
        transaction boundaries explicit in service code.
        """
        with transaction.atomic():
            yield
