"""
Cleanup request model.

A CleanupRequest is the unit money is collected for: donors place holds
against it, a volunteer performer completes it, and settlement pays the
performer out of the captured funds.

Design Decisions:
    - Amounts on the request are major units (Decimal, 2 places); the
      payments app works in minor units and converts at the boundary
    - total_contributed is only ever changed with atomic F() expressions
      (see CleanupRequestService)
    - The performer is recorded at settlement time
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class CleanupRequestStatus(models.TextChoices):
    """
    Lifecycle of a cleanup request, as far as payments is concerned.

    OPEN: Accepting donations
    COMPLETED: Work verified, awaiting settlement
    SETTLED: Funds captured and payout requested (terminal)
    """

    OPEN = "open", "Open"
    COMPLETED = "completed", "Completed"
    SETTLED = "settled", "Settled"


class CleanupRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A cleanup request that donors fund and a performer completes.

    Fields:
        name: Short human-readable title
        category: Request category, copied into hold metadata
        cost: Requested cost in major units
        created_by: Request owner
        performer: Volunteer paid at settlement (null until settled)
        total_contributed: Running total of donations in major units
        status: CleanupRequestStatus value
    """

    name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Short title of the cleanup request",
    )
    category = models.CharField(
        max_length=50,
        blank=True,
        help_text="Request category (e.g. 'wasteLocation', 'event')",
    )
    cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Requested cost in major currency units",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="cleanup_requests",
        help_text="User who created the request",
    )
    performer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="performed_cleanup_requests",
        help_text="Volunteer assigned at settlement",
    )
    total_contributed = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Running total of donations in major currency units",
    )
    status = models.CharField(
        max_length=20,
        choices=CleanupRequestStatus.choices,
        default=CleanupRequestStatus.OPEN,
        db_index=True,
        help_text="Current lifecycle status",
    )

    class Meta:
        verbose_name = "cleanup request"
        verbose_name_plural = "cleanup requests"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_contributed__gte=0),
                name="cleanup_request_contributed_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"CleanupRequest {self.id} ({self.status})"
