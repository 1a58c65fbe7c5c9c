"""
Donation model: the business record of a contribution to a request.

A Donation is written together with its Hold when a donor pays, before
the processor has confirmed anything. If the hold later fails or is
canceled, compensation deletes the Donation and takes its amount back
off the request's contributed total.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin


class Donation(UUIDPrimaryKeyMixin, models.Model):
    """
    A donor's contribution to a cleanup request.

    Fields:
        request: Cleanup request donated to
        donor: Donating user
        amount: Amount in major units; equals hold.amount_cents / 100
        hold: Linked hold (nullable)
        created_at: When the donation was made
    """

    request = models.ForeignKey(
        "cleanups.CleanupRequest",
        on_delete=models.CASCADE,
        related_name="donations",
        help_text="Cleanup request donated to",
    )
    donor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="donations",
        help_text="User who donated",
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Donated amount in major currency units",
    )
    hold = models.OneToOneField(
        "payments.Hold",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="donation",
        help_text="Authorization hold backing this donation",
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the donation was made",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Donation({self.amount} to {self.request_id})"
