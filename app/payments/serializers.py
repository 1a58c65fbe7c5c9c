"""
DRF serializers for the payments app.

This module provides serializers for:
- Hold creation requests and responses
- Settlement requests and summaries
- Hold and payout history
- Payout account onboarding
- Instant payouts, payout schedule, payout methods and balance

Related files:
    - views.py: Payment API views
    - services/: The operations these serializers feed

Usage:
    serializer = CreateHoldSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from django.conf import settings
from rest_framework import serializers

from payments.models import Hold, InstantPayout, Payout, PayoutAccount
from payments.state_machines import HoldKind


# =============================================================================
# Holds
# =============================================================================


class CreateHoldSerializer(serializers.Serializer):
    """
    Request body for hold creation.

    Amount and kind are range-checked by HoldService so that the error
    codes (AMOUNT_TOO_SMALL, VALIDATION_ERROR) stay the same whichever
    entry point is used; this serializer only checks types.
    """

    user_id = serializers.IntegerField(
        required=False,
        help_text="Payer user id; defaults to the caller (admins may pay for others)",
    )
    request_id = serializers.UUIDField(help_text="Cleanup request id")
    amount_cents = serializers.IntegerField(help_text="Amount in minor units")
    kind = serializers.CharField(
        max_length=32,
        help_text=f"One of: {', '.join(HoldKind.values)}",
    )


class HoldCreatedSerializer(serializers.Serializer):
    hold_id = serializers.UUIDField()
    external_id = serializers.CharField()
    client_handle = serializers.CharField(allow_null=True)


class HoldSerializer(serializers.ModelSerializer):
    """Hold as shown in payment history."""

    class Meta:
        model = Hold
        fields = [
            "id",
            "external_id",
            "request",
            "payer",
            "amount_cents",
            "currency",
            "kind",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


# =============================================================================
# Settlement
# =============================================================================


class SettleRequestSerializer(serializers.Serializer):
    request_id = serializers.UUIDField(help_text="Cleanup request to settle")
    performer_user_id = serializers.IntegerField(
        help_text="User who performed the cleanup and receives the payout",
    )


class CaptureFailureSerializer(serializers.Serializer):
    hold_id = serializers.UUIDField()
    external_id = serializers.CharField()
    error_code = serializers.CharField()
    error = serializers.CharField()


class SettlementSummarySerializer(serializers.Serializer):
    """Serializes a SettlementResult."""

    payout_id = serializers.UUIDField(source="payout.id")
    transfer_id = serializers.CharField(source="payout.external_id", allow_null=True)
    status = serializers.CharField(source="payout.status")
    currency = serializers.CharField(source="payout.currency")
    net_amount_cents = serializers.IntegerField()
    platform_fee_cents = serializers.IntegerField()
    processor_fee_cents = serializers.IntegerField()
    captured_hold_ids = serializers.ListField(child=serializers.UUIDField())
    failed_captures = CaptureFailureSerializer(many=True)
    created = serializers.BooleanField()


# =============================================================================
# Payouts
# =============================================================================


class PayoutSerializer(serializers.ModelSerializer):
    """Payout as shown in payout history."""

    class Meta:
        model = Payout
        fields = [
            "id",
            "external_id",
            "request",
            "performer",
            "net_amount_cents",
            "platform_fee_cents",
            "processor_fee_cents",
            "currency",
            "status",
            "failure_reason",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class PayoutAccountSerializer(serializers.ModelSerializer):
    onboarding_complete = serializers.BooleanField(read_only=True)

    class Meta:
        model = PayoutAccount
        fields = [
            "external_account_id",
            "country",
            "charges_enabled",
            "payouts_enabled",
            "details_submitted",
            "onboarding_complete",
        ]
        read_only_fields = fields


class StartOnboardingSerializer(serializers.Serializer):
    country = serializers.CharField(
        max_length=2,
        min_length=2,
        required=False,
        help_text="ISO 3166-1 alpha-2 country; defaults to the platform country",
    )
    email = serializers.EmailField(required=False)


class OnboardingResponseSerializer(serializers.Serializer):
    account = PayoutAccountSerializer()
    onboarding_url = serializers.URLField()
    created = serializers.BooleanField()


class AccountStatusResponseSerializer(serializers.Serializer):
    account = PayoutAccountSerializer()
    onboarding_complete = serializers.BooleanField()
    onboarding_url = serializers.URLField(allow_null=True)


# =============================================================================
# Instant Payouts & Payout Settings
# =============================================================================


class AccountOwnerQuerySerializer(serializers.Serializer):
    user_id = serializers.IntegerField(
        required=False,
        help_text="Account owner; defaults to the caller (admins may read others)",
    )


class CreateInstantPayoutSerializer(serializers.Serializer):
    """Amount is range-checked by InstantPayoutService (AMOUNT_TOO_SMALL)."""

    user_id = serializers.IntegerField(
        required=False,
        help_text="Account owner; defaults to the caller",
    )
    amount_cents = serializers.IntegerField(help_text="Amount in minor units")
    external_account_id = serializers.CharField(
        max_length=255,
        required=False,
        help_text="Card or bank account to pay out to; the account default if omitted",
    )


class InstantPayoutSerializer(serializers.ModelSerializer):
    """Instant payout as shown in history and balance responses."""

    class Meta:
        model = InstantPayout
        fields = [
            "id",
            "external_id",
            "user",
            "amount_cents",
            "currency",
            "method",
            "destination",
            "status",
            "arrival_date",
            "failure_code",
            "failure_message",
            "created_at",
        ]
        read_only_fields = fields


class PayoutScheduleSerializer(serializers.Serializer):
    """Interval and delay are checked by PayoutAccountService."""

    user_id = serializers.IntegerField(
        required=False,
        help_text="Account owner; defaults to the caller",
    )
    interval = serializers.CharField(
        max_length=16,
        help_text="One of: manual, daily, weekly, monthly",
    )
    delay_days = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Days funds are held before payout (0..365); ignored for manual",
    )


class PayoutScheduleResponseSerializer(serializers.Serializer):
    account_id = serializers.CharField()
    payout_schedule = serializers.JSONField(allow_null=True)


class ExternalAccountSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = serializers.CharField()
    last4 = serializers.CharField(allow_null=True)
    brand = serializers.CharField(allow_null=True)
    bank_name = serializers.CharField(allow_null=True)
    currency = serializers.CharField(allow_null=True)
    country = serializers.CharField(allow_null=True)
    default_for_currency = serializers.BooleanField()
    status = serializers.CharField()
    available_payout_methods = serializers.ListField(child=serializers.CharField())


class PayoutMethodsSerializer(serializers.Serializer):
    """Serializes PayoutMethods."""

    account_id = serializers.CharField(source="account.external_account_id")
    instant_payout_available = serializers.BooleanField()
    payout_schedule = serializers.JSONField(allow_null=True)
    external_accounts = ExternalAccountSerializer(many=True)
    can_add_debit_card = serializers.BooleanField()
    onboarding_complete = serializers.BooleanField()


class BalanceAmountSerializer(serializers.Serializer):
    amount_cents = serializers.IntegerField()
    currency = serializers.CharField()


class AccountBalanceSerializer(serializers.Serializer):
    """Serializes AccountBalance."""

    account_id = serializers.CharField(source="account.external_account_id")
    payouts_enabled = serializers.BooleanField(source="account.payouts_enabled")
    available = BalanceAmountSerializer(source="balance.available", many=True)
    pending = BalanceAmountSerializer(source="balance.pending", many=True)
    payout_schedule = serializers.JSONField(allow_null=True)
    recent_payouts = InstantPayoutSerializer(many=True)
    can_instant_payout = serializers.BooleanField()


# =============================================================================
# History
# =============================================================================


class HistoryQuerySerializer(serializers.Serializer):
    """
    Query parameters shared by the history endpoints.

    Out-of-range values are clamped rather than rejected: page to at least
    1, limit to 1..PAYMENTS_HISTORY_MAX_PAGE_SIZE.
    """

    user_id = serializers.IntegerField()
    page = serializers.IntegerField(required=False, default=1)
    limit = serializers.IntegerField(required=False)

    def validate_page(self, value: int) -> int:
        return max(1, value)

    def validate_limit(self, value: int) -> int:
        return max(1, min(value, settings.PAYMENTS_HISTORY_MAX_PAGE_SIZE))

    def validate(self, attrs: dict) -> dict:
        attrs.setdefault("limit", settings.PAYMENTS_HISTORY_PAGE_SIZE)
        return attrs
