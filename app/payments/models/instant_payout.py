"""
InstantPayout model: a payout from a performer's connected account to
their own bank account or debit card.

Distinct from Payout, which is the platform's transfer into the
connected account. Rows are created when the performer requests an
instant payout, or from a payout.created event when the request was
made elsewhere. payout.paid / payout.failed events move a row to its
terminal state; status writes are conditional so a late event never
overwrites a terminal status.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import InstantPayoutStatus


class InstantPayout(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    Payout out of a connected account, as reported by the processor.

    Fields:
        user: Account owner
        account_id: Connected account id (acct_xxx) the payout left from
        external_id: Processor payout id (po_xxx), unique
        amount_cents: Amount paid out in minor units
        currency: ISO 4217 code
        method: "instant" or "standard"
        destination: External account id (ba_xxx / card_xxx), if known
        status: InstantPayoutStatus
        arrival_date: Expected or actual arrival
        failure_code / failure_message: Processor-reported failure
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="instant_payouts",
        help_text="Owner of the connected account",
    )
    account_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Connected account id (acct_xxx)",
    )
    external_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor payout id (po_xxx)",
    )
    amount_cents = models.IntegerField(
        help_text="Amount in minor units",
    )
    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code",
    )
    method = models.CharField(
        max_length=20,
        default="instant",
        help_text="Payout speed: instant or standard",
    )
    destination = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="External account id the funds were sent to",
    )
    status = models.CharField(
        max_length=20,
        choices=InstantPayoutStatus.choices,
        default=InstantPayoutStatus.PENDING,
        db_index=True,
        help_text="Processor-reported payout status",
    )
    arrival_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Expected or actual arrival of the funds",
    )
    failure_code = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Processor failure code",
    )
    failure_message = models.TextField(
        blank=True,
        default="",
        help_text="Processor failure message",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Instant Payout"
        verbose_name_plural = "Instant Payouts"
        indexes = [
            models.Index(
                fields=["user", "-created_at"],
                name="payments_ipayout_user_ts_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0),
                name="instant_payout_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"InstantPayout({self.external_id}, {self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in InstantPayoutStatus.terminal()
