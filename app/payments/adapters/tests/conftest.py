"""
Pytest fixtures for Stripe adapter tests.

Sections:
    - Adapter Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import stripe

from payments.adapters import RetryPolicy, StripeAdapter


# =============================================================================
# Adapter Fixtures
# =============================================================================


@pytest.fixture
def sleep():
    """Recorded in place of time.sleep so retries run instantly."""
    return MagicMock()


@pytest.fixture
def adapter(mock_stripe_http_client, sleep):
    """Adapter with three attempts and no real backoff."""
    return StripeAdapter(
        api_key="sk_test_123",
        webhook_secret="whsec_test_123",
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.01, max_delay=0.05),
        timeout=5,
        sleep=sleep,
    )


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_payment_intent():
    """Create a mock PaymentIntent response."""

    def _create(
        id: str = "pi_test123456",
        status: str = "requires_payment_method",
        amount: int = 5000,
        currency: str = "usd",
        client_secret: str = "pi_test123456_secret_abc123",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "currency": currency,
                "client_secret": client_secret,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_transfer():
    """Create a mock Transfer response."""

    def _create(
        id: str = "tr_test123456",
        amount: int = 4072,
        currency: str = "usd",
        destination: str = "acct_dest123",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "transfer",
                "amount": amount,
                "currency": currency,
                "destination": destination,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_account():
    """Create a mock connected Account response."""

    def _create(
        id: str = "acct_test123",
        country: str = "US",
        charges_enabled: bool = False,
        payouts_enabled: bool = False,
        details_submitted: bool = False,
        capabilities: dict | None = None,
        payout_schedule: dict | None = None,
    ) -> MockStripeObject:
        data = {
            "id": id,
            "object": "account",
            "country": country,
            "charges_enabled": charges_enabled,
            "payouts_enabled": payouts_enabled,
            "details_submitted": details_submitted,
        }
        if capabilities is not None:
            data["capabilities"] = capabilities
        if payout_schedule is not None:
            data["settings"] = {"payouts": {"schedule": payout_schedule}}
        return MockStripeObject(data)

    return _create


@pytest.fixture
def mock_payout():
    """Create a mock Payout response for a connected account."""

    def _create(
        id: str = "po_test123456",
        status: str = "pending",
        amount: int = 2500,
        currency: str = "usd",
        method: str = "instant",
        destination: str | None = "card_test_visa",
        arrival_date: int | None = 1767225600,
        failure_code: str | None = None,
        failure_message: str | None = None,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "payout",
                "status": status,
                "amount": amount,
                "currency": currency,
                "method": method,
                "destination": destination,
                "arrival_date": arrival_date,
                "failure_code": failure_code,
                "failure_message": failure_message,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_external_account():
    """Create a mock external account (card or bank account)."""

    def _create(id: str = "card_test_visa", object: str = "card", **fields):
        return MockStripeObject(
            {"id": id, "object": object, "currency": "usd", "country": "US", **fields}
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError."""

    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = "generic_decline",
    ) -> stripe.CardError:
        error = stripe.CardError(message=message, param=None, code=code)
        error.decline_code = decline_code
        return error

    return _create


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such payment_intent: 'pi_missing'",
        param: str | None = "intent",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError(message="Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError(message="Could not connect to Stripe.")


@pytest.fixture
def api_error():
    return stripe.APIError(message="Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError(message="Invalid API Key provided.")


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_payment_intent(mock_payment_intent):
    """Mock stripe.PaymentIntent API."""
    with patch("stripe.PaymentIntent") as mock:
        mock.create.return_value = mock_payment_intent()
        mock.capture.return_value = mock_payment_intent(status="succeeded")
        yield mock


@pytest.fixture
def mock_stripe_transfer(mock_transfer):
    """Mock stripe.Transfer API."""
    with patch("stripe.Transfer") as mock:
        mock.create.return_value = mock_transfer()
        yield mock


@pytest.fixture
def mock_stripe_account(mock_account):
    """Mock stripe.Account API."""
    with patch("stripe.Account") as mock:
        mock.create.return_value = mock_account()
        mock.retrieve.return_value = mock_account()
        yield mock


@pytest.fixture
def mock_stripe_account_link():
    """Mock stripe.AccountLink API."""
    with patch("stripe.AccountLink") as mock:
        mock.create.return_value = MockStripeObject(
            {"url": "https://connect.stripe.com/setup/e/acct_test123/abc"}
        )
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    """Mock stripe.Webhook API."""
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = MockStripeObject(
            {
                "id": "evt_test123",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": "pi_test123", "object": "payment_intent"}},
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def mock_stripe_payout(mock_payout):
    """Mock stripe.Payout API."""
    with patch("stripe.Payout") as mock:
        mock.create.return_value = mock_payout()
        mock.retrieve.return_value = mock_payout(status="paid")
        yield mock


@pytest.fixture
def mock_stripe_balance():
    """Mock stripe.Balance API."""
    with patch("stripe.Balance") as mock:
        mock.retrieve.return_value = MockStripeObject(
            {
                "object": "balance",
                "available": [{"amount": 4072, "currency": "usd"}],
                "pending": [{"amount": 1200, "currency": "usd"}],
            }
        )
        yield mock
