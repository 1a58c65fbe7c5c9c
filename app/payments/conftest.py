"""
Pytest fixtures shared by all payments tests.

This module provides users in the roles the engine cares about (payer,
request creator, performer, admin), a cleanup request, and a processor
adapter double. Redis is replaced by a MagicMock for every test so the
settlement lock never needs a server.

Usage:
    def test_settle(processor, cleanup_request, creator, performer):
        SettlementService(processor=processor).settle_request(
            cleanup_request.id, performer.id, caller=creator
        )
"""

from unittest.mock import MagicMock, patch

import pytest

from cleanups.tests.factories import CleanupRequestFactory, UserFactory
from payments.adapters import (
    AccountResult,
    BalanceAmount,
    BalanceResult,
    ExternalAccountResult,
    PaymentIntentResult,
    PayoutResult,
    StripeAdapter,
    TransferResult,
)
from payments.tests.factories import HoldFactory, PayoutAccountFactory
from payments.state_machines import HoldKind, HoldStatus


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture(autouse=True)
def mock_redis():
    """Redis connection double; every lock acquisition succeeds."""
    with patch("payments.locks.get_redis_connection") as mock_get_conn:
        redis_instance = MagicMock()
        redis_instance.set.return_value = True
        redis_instance.eval.return_value = 1
        mock_get_conn.return_value = redis_instance
        yield redis_instance


@pytest.fixture
def processor():
    """
    StripeAdapter double with happy-path return values.

    Override per test, e.g.
        processor.capture_hold.side_effect = ProcessorCardDeclinedError(...)
    """
    adapter = MagicMock(spec=StripeAdapter)
    adapter.create_hold.return_value = PaymentIntentResult(
        id="pi_test_new",
        status="requires_payment_method",
        amount_cents=5000,
        currency="usd",
        client_secret="pi_test_new_secret_abc",
    )
    adapter.capture_hold.side_effect = lambda external_id, idempotency_key: (
        PaymentIntentResult(
            id=external_id,
            status="succeeded",
            amount_cents=0,
            currency="usd",
        )
    )
    adapter.create_transfer.return_value = TransferResult(
        id="tr_test_123",
        amount_cents=4072,
        currency="usd",
        destination_account="acct_test_000001",
    )
    adapter.create_express_account.return_value = AccountResult(
        id="acct_test_new",
        country="US",
    )
    adapter.create_account_link.return_value = (
        "https://connect.stripe.com/setup/e/acct_test_new/abc"
    )
    adapter.retrieve_account.return_value = AccountResult(
        id="acct_test_new",
        country="US",
        charges_enabled=True,
        payouts_enabled=True,
        details_submitted=True,
        transfers_active=True,
        payout_schedule={"interval": "daily", "delay_days": 2},
    )
    adapter.create_payout.return_value = PayoutResult(
        id="po_test_new",
        status="pending",
        amount_cents=2500,
        currency="usd",
        method="instant",
        destination="card_test_visa",
        arrival_date=1767225600,
    )
    adapter.retrieve_payout.return_value = PayoutResult(
        id="po_test_new",
        status="paid",
        amount_cents=2500,
        currency="usd",
        method="instant",
        arrival_date=1767225600,
    )
    adapter.list_external_accounts.return_value = [
        ExternalAccountResult(
            id="card_test_visa",
            type="debit_card",
            last4="4242",
            brand="visa",
            currency="usd",
            country="US",
            default_for_currency=True,
            available_payout_methods=["standard", "instant"],
        ),
    ]
    adapter.update_payout_schedule.return_value = AccountResult(
        id="acct_test_000001",
        country="US",
        payouts_enabled=True,
        payout_schedule={"interval": "weekly", "delay_days": 7},
    )
    adapter.retrieve_balance.return_value = BalanceResult(
        available=[BalanceAmount(amount_cents=4072, currency="usd")],
        pending=[BalanceAmount(amount_cents=0, currency="usd")],
    )
    return adapter


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def payer(db):
    """User who donates to or pays for a request."""
    return UserFactory()


@pytest.fixture
def creator(db):
    """User who created the cleanup request."""
    return UserFactory()


@pytest.fixture
def performer(db):
    """Volunteer who performed the cleanup and receives the payout."""
    return UserFactory()


@pytest.fixture
def staff_user(db):
    """Platform admin."""
    return UserFactory(is_staff=True)


@pytest.fixture
def other_user(db):
    """User with no role in the request."""
    return UserFactory()


# =============================================================================
# Domain objects
# =============================================================================


@pytest.fixture
def cleanup_request(db, creator):
    """Open cleanup request owned by creator."""
    return CleanupRequestFactory(created_by=creator)


@pytest.fixture
def payout_account(db, performer):
    """Fully onboarded payout account for the performer."""
    return PayoutAccountFactory(user=performer, external_account_id="acct_test_000001")


@pytest.fixture
def capturable_hold(db, cleanup_request, payer):
    """$50.00 donation hold awaiting capture."""
    return HoldFactory(
        request=cleanup_request,
        payer=payer,
        amount_cents=5000,
        kind=HoldKind.DONATION,
        status=HoldStatus.REQUIRES_CAPTURE,
    )
