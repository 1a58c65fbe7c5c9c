"""
Payout model for transfers of settled funds to a performer.

Exactly one Payout exists per settled cleanup request. The settlement
service creates it as PENDING before asking the processor for the
transfer; transfer.paid / transfer.failed events move it to a terminal
state. If a transfer event arrives before the settlement service has
written the row (or stored the transfer id), the webhook handler builds
or completes the row from the event payload.

Usage:
    from payments.models import Payout

    payout = Payout.objects.create(
        request=cleanup,
        performer=performer,
        net_amount_cents=4072,
        platform_fee_cents=350,
        processor_fee_cents=578,
        source_hold=first_hold,
    )
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import PayoutStatus


class Payout(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Transfer of net settled funds to a performer's payout account.

    State Flow:
        PENDING -> PAID
        PENDING -> FAILED

    Invariant:
        net_amount_cents + platform_fee_cents + processor_fee_cents equals
        the total captured for the request.

    Fields:
        external_id: Processor transfer id (tr_xxx); null until returned
        request: Settled cleanup request (one payout per request)
        performer: User being paid
        net_amount_cents: Amount transferred
        platform_fee_cents: Platform share
        processor_fee_cents: Processor share
        currency: ISO 4217 code
        status: PayoutStatus (FSM managed)
        source_hold: First captured hold, for traceability
        failure_reason: Processor-reported failure, if any
        paid_at: When the transfer was reported paid
    """

    # ==========================================================================
    # Identity & Relationships
    # ==========================================================================

    external_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Processor transfer id (tr_xxx)",
    )
    request = models.OneToOneField(
        "cleanups.CleanupRequest",
        on_delete=models.PROTECT,
        related_name="payout",
        help_text="Cleanup request this payout settles",
    )
    performer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payouts",
        help_text="Performer receiving the funds",
    )
    source_hold = models.ForeignKey(
        "payments.Hold",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="First captured hold of the settlement",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    net_amount_cents = models.IntegerField(
        help_text="Amount transferred to the performer in minor units",
    )
    platform_fee_cents = models.IntegerField(
        default=0,
        help_text="Platform fee in minor units",
    )
    processor_fee_cents = models.IntegerField(
        default=0,
        help_text="Processor fee in minor units",
    )
    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PayoutStatus.PENDING,
        choices=PayoutStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status of the payout (managed by FSM)",
    )
    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Failure reason reported by the processor",
    )
    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the processor reported the transfer paid",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout"
        verbose_name_plural = "Payouts"
        indexes = [
            models.Index(
                fields=["performer", "-created_at"],
                name="payments_payout_perf_ts_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(net_amount_cents__gte=0),
                name="payout_net_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(platform_fee_cents__gte=0)
                & models.Q(processor_fee_cents__gte=0),
                name="payout_fees_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Payout({self.external_id or self.id}, {self.status})"

    @property
    def total_cents(self) -> int:
        """Captured total this payout was computed from."""
        return self.net_amount_cents + self.platform_fee_cents + self.processor_fee_cents

    # ==========================================================================
    # State Transitions
    # ==========================================================================

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.PAID,
    )
    def mark_paid(self):
        """Processor reported the transfer paid."""
        self.paid_at = timezone.now()

    @transition(
        field=status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.FAILED,
    )
    def mark_failed(self, reason: str = ""):
        """Processor reported the transfer failed."""
        self.failure_reason = reason or ""
