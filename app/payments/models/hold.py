"""
Hold model: the local mirror of a manual-capture authorization.

A Hold is created when a payer starts a payment for a cleanup request
(a donation or the request's own cost). Funds stay authorized on the
payer's card until settlement captures them, or the processor reports
the authorization failed or canceled.

Usage:
    from payments.models import Hold
    from payments.state_machines import HoldStatus

    with transaction.atomic():
        hold = Hold.objects.select_for_update().get(external_id="pi_123")
        if can_proceed(hold.mark_requires_capture):
            hold.mark_requires_capture()
            hold.save()

Note:
    status is a protected FSMField. It can only change through the
    transition methods below, so reload with Hold.objects.get() instead
    of refresh_from_db().
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import HoldKind, HoldStatus

# Statuses a hold may be in before it reaches a terminal one
OPEN_HOLD_STATUSES = [HoldStatus.CREATED, HoldStatus.REQUIRES_CAPTURE]


class Hold(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Local mirror of an external authorization hold.

    State Flow:
        CREATED -> REQUIRES_CAPTURE -> SUCCEEDED
        CREATED/REQUIRES_CAPTURE -> CANCELED
        CREATED/REQUIRES_CAPTURE -> FAILED

    CREATED -> SUCCEEDED is also allowed: a succeeded event may be the
    first thing we hear about a hold.

    Fields:
        external_id: Processor reference (PaymentIntent id), unique
        payer: User whose card is authorized
        request: Cleanup request the funds are for
        amount_cents: Authorized amount in minor units (> 0)
        currency: ISO 4217 code
        kind: donation or request_cost
        status: HoldStatus (FSM managed)
        metadata: Opaque key/value data (mirrors processor metadata)
    """

    # ==========================================================================
    # Identity & Relationships
    # ==========================================================================

    external_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor authorization id (pi_xxx)",
    )
    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="holds",
        help_text="User whose funds are held",
    )
    request = models.ForeignKey(
        "cleanups.CleanupRequest",
        on_delete=models.PROTECT,
        related_name="holds",
        help_text="Cleanup request the hold pays for",
    )

    # ==========================================================================
    # Amount
    # ==========================================================================

    amount_cents = models.PositiveIntegerField(
        help_text="Held amount in minor currency units",
    )
    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code",
    )
    kind = models.CharField(
        max_length=20,
        choices=HoldKind.choices,
        default=HoldKind.DONATION,
        help_text="What the hold pays for",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=HoldStatus.CREATED,
        choices=HoldStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current status of the hold (managed by FSM)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Hold"
        verbose_name_plural = "Holds"
        indexes = [
            models.Index(
                fields=["request", "status"],
                name="payments_hold_req_status_idx",
            ),
            models.Index(
                fields=["payer", "-created_at"],
                name="payments_hold_payer_ts_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0),
                name="hold_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Hold({self.external_id}, {self.status})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status in HoldStatus.terminal()

    @property
    def amount_major(self) -> Decimal:
        """Amount in major units, as stored on Donation rows."""
        return (Decimal(self.amount_cents) / 100).quantize(Decimal("0.01"))

    # ==========================================================================
    # State Transitions
    # ==========================================================================

    @transition(
        field=status,
        source=HoldStatus.CREATED,
        target=HoldStatus.REQUIRES_CAPTURE,
    )
    def mark_requires_capture(self):
        """Payer confirmed the payment; funds are capturable."""

    @transition(
        field=status,
        source=OPEN_HOLD_STATUSES,
        target=HoldStatus.SUCCEEDED,
    )
    def mark_succeeded(self):
        """Funds were captured."""

    @transition(
        field=status,
        source=OPEN_HOLD_STATUSES,
        target=HoldStatus.CANCELED,
    )
    def cancel(self):
        """Authorization was canceled (explicitly or by expiry)."""

    @transition(
        field=status,
        source=OPEN_HOLD_STATUSES,
        target=HoldStatus.FAILED,
    )
    def fail(self):
        """Authorization failed."""
