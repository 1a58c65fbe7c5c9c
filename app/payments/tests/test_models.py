"""
Tests for payment domain models.

Tests field defaults, constraints and helper properties for Hold,
Donation, Payout, PayoutAccount, InstantPayout and WebhookEvent.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError
from django.test import override_settings

from payments.models import (
    Donation,
    Hold,
    InstantPayout,
    Payout,
    PayoutAccount,
    WebhookEvent,
)
from payments.state_machines import (
    HoldKind,
    HoldStatus,
    InstantPayoutStatus,
    PayoutStatus,
    WebhookEventStatus,
)
from payments.tests.factories import (
    DonationFactory,
    HoldFactory,
    InstantPayoutFactory,
    PayoutAccountFactory,
    PayoutFactory,
    WebhookEventFactory,
    payment_intent_event,
)


# =============================================================================
# Hold Tests
# =============================================================================


@pytest.mark.django_db
class TestHold:
    def test_defaults(self, cleanup_request, payer):
        hold = Hold.objects.create(
            external_id="pi_defaults",
            payer=payer,
            request=cleanup_request,
            amount_cents=1000,
        )

        assert hold.status == HoldStatus.CREATED
        assert hold.kind == HoldKind.DONATION
        assert hold.currency == "usd"
        assert hold.metadata == {}

    def test_external_id_is_unique(self):
        HoldFactory(external_id="pi_unique")

        with pytest.raises(IntegrityError):
            HoldFactory(external_id="pi_unique")

    def test_amount_must_be_positive(self):
        with pytest.raises(IntegrityError):
            HoldFactory(amount_cents=0)

    @pytest.mark.parametrize(
        "amount_cents,expected",
        [(5000, Decimal("50.00")), (1, Decimal("0.01")), (1999, Decimal("19.99"))],
    )
    def test_amount_major(self, amount_cents, expected):
        assert HoldFactory.build(amount_cents=amount_cents).amount_major == expected

    def test_is_terminal(self):
        assert HoldFactory.build(status=HoldStatus.FAILED).is_terminal is True
        assert HoldFactory.build(status=HoldStatus.REQUIRES_CAPTURE).is_terminal is False

    def test_str(self):
        hold = HoldFactory.build(external_id="pi_str", status=HoldStatus.CREATED)

        assert str(hold) == "Hold(pi_str, created)"


# =============================================================================
# Donation Tests
# =============================================================================


@pytest.mark.django_db
class TestDonation:
    def test_amount_follows_hold(self):
        donation = DonationFactory(hold=HoldFactory(amount_cents=1250))

        assert donation.amount == Decimal("12.50")
        assert donation.request_id == donation.hold.request_id
        assert donation.donor_id == donation.hold.payer_id

    def test_one_donation_per_hold(self):
        donation = DonationFactory()

        with pytest.raises(IntegrityError):
            Donation.objects.create(
                hold=donation.hold,
                request=donation.request,
                donor=donation.donor,
                amount=Decimal("1.00"),
            )

    def test_reverse_accessor(self):
        donation = DonationFactory()

        assert Hold.objects.get(pk=donation.hold_id).donation == donation


# =============================================================================
# Payout Tests
# =============================================================================


@pytest.mark.django_db
class TestPayout:
    def test_defaults(self, cleanup_request, performer):
        payout = Payout.objects.create(
            request=cleanup_request,
            performer=performer,
            net_amount_cents=4072,
        )

        assert payout.status == PayoutStatus.PENDING
        assert payout.external_id is None
        assert payout.platform_fee_cents == 0
        assert payout.failure_reason == ""
        assert payout.paid_at is None

    def test_one_payout_per_request(self, cleanup_request):
        PayoutFactory(request=cleanup_request)

        with pytest.raises(IntegrityError):
            PayoutFactory(request=cleanup_request)

    def test_several_payouts_may_lack_transfer_id(self):
        PayoutFactory(external_id=None)
        PayoutFactory(external_id=None)

        assert Payout.objects.filter(external_id__isnull=True).count() == 2

    def test_net_cannot_be_negative(self):
        with pytest.raises(IntegrityError):
            PayoutFactory(net_amount_cents=-1)

    def test_fees_cannot_be_negative(self):
        with pytest.raises(IntegrityError):
            PayoutFactory(platform_fee_cents=-1)

    def test_total_cents(self):
        assert PayoutFactory.build().total_cents == 5000


# =============================================================================
# PayoutAccount Tests
# =============================================================================


@pytest.mark.django_db
class TestPayoutAccount:
    def test_onboarding_complete_requires_all_flags(self):
        assert PayoutAccountFactory.build().onboarding_complete is True
        assert (
            PayoutAccountFactory.build(details_submitted=False).onboarding_complete
            is False
        )

    def test_ready_for_payouts_follows_payouts_enabled(self):
        account = PayoutAccountFactory.build(
            charges_enabled=False, details_submitted=False, payouts_enabled=True
        )

        assert account.is_ready_for_payouts is True
        assert PayoutAccountFactory.build(incomplete=True).is_ready_for_payouts is False

    def test_one_account_per_user(self, performer):
        PayoutAccountFactory(user=performer)

        with pytest.raises(IntegrityError):
            PayoutAccountFactory(user=performer)

    def test_external_account_id_is_unique(self):
        PayoutAccountFactory(external_account_id="acct_dup")

        with pytest.raises(IntegrityError):
            PayoutAccount.objects.create(
                user=PayoutAccountFactory().user,
                external_account_id="acct_dup",
            )


# =============================================================================
# InstantPayout Tests
# =============================================================================


@pytest.mark.django_db
class TestInstantPayout:
    def test_str(self):
        payout = InstantPayoutFactory.build(external_id="po_test_str")

        assert str(payout) == "InstantPayout(po_test_str, pending)"

    @pytest.mark.parametrize(
        "status,terminal",
        [
            (InstantPayoutStatus.PENDING, False),
            (InstantPayoutStatus.IN_TRANSIT, False),
            (InstantPayoutStatus.PAID, True),
            (InstantPayoutStatus.FAILED, True),
            (InstantPayoutStatus.CANCELED, True),
        ],
    )
    def test_is_terminal(self, status, terminal):
        assert InstantPayoutFactory.build(status=status).is_terminal is terminal

    def test_amount_must_be_positive(self):
        with pytest.raises(IntegrityError):
            InstantPayoutFactory(amount_cents=0)

    def test_external_id_is_unique(self):
        InstantPayoutFactory(external_id="po_dup")

        with pytest.raises(IntegrityError):
            InstantPayout.objects.create(
                user=PayoutAccountFactory().user,
                account_id="acct_dup",
                external_id="po_dup",
                amount_cents=100,
            )


# =============================================================================
# WebhookEvent Tests
# =============================================================================


@pytest.mark.django_db
class TestWebhookEvent:
    def test_event_id_is_unique(self):
        WebhookEventFactory(event_id="evt_unique")

        with pytest.raises(IntegrityError):
            WebhookEventFactory(event_id="evt_unique")

    def test_lifecycle_mutators(self):
        event = WebhookEventFactory()

        event.mark_processing()
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 1

        event.mark_failed("boom")
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "boom"

        event.mark_processed()
        assert event.is_processed is True
        assert event.processed_at is not None
        assert event.error_message is None

    @override_settings(PAYMENTS_WEBHOOK_MAX_RETRIES=2)
    def test_can_retry(self):
        assert WebhookEventFactory.build(
            status=WebhookEventStatus.FAILED, retry_count=1
        ).can_retry is True
        assert WebhookEventFactory.build(
            status=WebhookEventStatus.FAILED, retry_count=2
        ).can_retry is False
        assert WebhookEventFactory.build(
            status=WebhookEventStatus.PENDING, retry_count=0
        ).can_retry is False

    def test_payload_accessors(self):
        event = WebhookEventFactory.build(
            payload=payment_intent_event(
                "payment_intent.succeeded", "pi_acc", metadata={"request_id": "r1"}
            )
        )

        assert event.get_object_id() == "pi_acc"
        assert event.get_object_metadata() == {"request_id": "r1"}

    @pytest.mark.parametrize(
        "payload", [{}, {"data": None}, {"data": {"object": "str"}}, []]
    )
    def test_malformed_payload_accessors(self, payload):
        event = WebhookEventFactory.build(payload=payload)

        assert event.get_object() == {}
        assert event.get_object_id() is None
        assert event.get_object_metadata() == {}
