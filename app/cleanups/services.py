"""
Request-lifecycle interface consumed by the payments engine.

Services:
    CleanupRequestService: lookup, settlement marking, contributed-total
    counters

All counter mutations are single UPDATE statements built from F()
expressions, so concurrent donation creation and compensation never
lose an update. The decrement is clamped at zero inside the same
statement.

Usage:
    from cleanups.services import CleanupRequestService

    cleanup = CleanupRequestService.get_request(request_id)
    if cleanup is None:
        raise RequestNotFoundError(...)

    CleanupRequestService.decrement_contributed(request_id, Decimal("10.00"))
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Case, DecimalField, F, Value, When
from django.utils import timezone

from core.services import BaseService

from cleanups.models import CleanupRequest, CleanupRequestStatus

ZERO = Decimal("0.00")


class CleanupRequestService(BaseService):
    """
    Narrow request-lifecycle operations used by payments.

    Methods:
        get_request: Fetch a request or None
        mark_settled: Record settlement and the performer
        increment_contributed: Atomically add to total_contributed
        decrement_contributed: Atomically subtract, clamped at zero
    """

    @classmethod
    def get_request(cls, request_id: uuid.UUID | str) -> CleanupRequest | None:
        """
        Get a cleanup request by id.

        Malformed ids are treated the same as unknown ones.
        """
        try:
            return CleanupRequest.objects.select_related("created_by").get(
                id=request_id
            )
        except (CleanupRequest.DoesNotExist, DjangoValidationError, ValueError):
            return None

    @classmethod
    def mark_settled(cls, request_id: uuid.UUID | str, performer_id) -> int:
        """
        Mark a request settled and assign its performer.

        Re-applying to an already settled request rewrites the same values.

        Returns:
            Number of rows updated (0 if the request does not exist)
        """
        updated = CleanupRequest.objects.filter(id=request_id).update(
            status=CleanupRequestStatus.SETTLED,
            performer_id=performer_id,
            updated_at=timezone.now(),
        )
        cls.get_logger().info(
            "Marked cleanup request settled",
            extra={
                "request_id": str(request_id),
                "performer_id": str(performer_id),
                "updated": updated,
            },
        )
        return updated

    @classmethod
    def increment_contributed(cls, request_id: uuid.UUID | str, delta: Decimal) -> int:
        """Atomically add delta (major units) to the request's contributed total."""
        return CleanupRequest.objects.filter(id=request_id).update(
            total_contributed=F("total_contributed") + delta,
            updated_at=timezone.now(),
        )

    @classmethod
    def decrement_contributed(cls, request_id: uuid.UUID | str, delta: Decimal) -> int:
        """
        Atomically subtract delta (major units), never going below zero.

        The clamp is evaluated by the database against the current row, not
        against a value read earlier.
        """
        return CleanupRequest.objects.filter(id=request_id).update(
            total_contributed=Case(
                When(
                    total_contributed__gt=delta,
                    then=F("total_contributed") - delta,
                ),
                default=Value(ZERO),
                output_field=DecimalField(max_digits=12, decimal_places=2),
            ),
            updated_at=timezone.now(),
        )
