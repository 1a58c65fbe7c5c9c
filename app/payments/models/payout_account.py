"""
PayoutAccount model: a performer's external payout account.

Maps a user to the processor's connected-account id and mirrors the
three onboarding flags the processor reports. Created the first time a
user starts onboarding, refreshed by account.updated events and status
checks, never deleted.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class PayoutAccount(UUIDPrimaryKeyMixin, BaseModel):
    """
    Connected payout account for a performer.

    Fields:
        user: Owning user (one account per user)
        external_account_id: Processor account id (acct_xxx), unique
        charges_enabled: Account can accept charges
        payouts_enabled: Account can receive transfers/payouts
        details_submitted: Onboarding form completed
        country: Country the account was created in
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payout_account",
        help_text="User who owns this payout account",
    )
    external_account_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor connected account id (acct_xxx)",
    )
    charges_enabled = models.BooleanField(
        default=False,
        help_text="Whether the account can accept charges",
    )
    payouts_enabled = models.BooleanField(
        default=False,
        help_text="Whether the account can receive payouts",
    )
    details_submitted = models.BooleanField(
        default=False,
        help_text="Whether onboarding details have been submitted",
    )
    country = models.CharField(
        max_length=2,
        default="US",
        help_text="ISO 3166-1 alpha-2 country of the account",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout Account"
        verbose_name_plural = "Payout Accounts"

    def __str__(self) -> str:
        return f"PayoutAccount({self.external_account_id})"

    @property
    def onboarding_complete(self) -> bool:
        return self.charges_enabled and self.payouts_enabled and self.details_submitted

    @property
    def is_ready_for_payouts(self) -> bool:
        return self.payouts_enabled
