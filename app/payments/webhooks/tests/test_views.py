"""
Tests for webhook views.

Tests cover:
- Stripe signature verification
- Webhook event creation and idempotency
- Task queuing
- Error handling
"""

import hashlib
import hmac
import json
import time
from unittest.mock import patch

import pytest
from django.test import RequestFactory, override_settings

from payments.exceptions import SignatureVerificationFailedError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory, payment_intent_event
from payments.webhooks.views import stripe_webhook

WEBHOOK_URL = "/api/v1/payments/webhooks/"
VERIFY = "payments.webhooks.views.StripeAdapter.verify_webhook_signature"
DELAY = "payments.tasks.process_webhook_event.delay"


# =============================================================================
# Setup
# =============================================================================


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


def make_webhook_request(rf, payload: dict, signature: str = "test_sig"):
    """Create a POST request to the webhook endpoint."""
    return rf.post(
        WEBHOOK_URL,
        data=json.dumps(payload),
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=signature,
    )


def sign(body: str, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{body}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# =============================================================================
# Signature Verification Tests
# =============================================================================


@pytest.mark.django_db
class TestStripeWebhookSignature:
    """Tests for signature verification."""

    def test_missing_signature_returns_400(self, rf):
        request = rf.post(
            WEBHOOK_URL,
            data=json.dumps({"id": "evt_test"}),
            content_type="application/json",
        )

        response = stripe_webhook(request)

        assert response.status_code == 400
        body = json.loads(response.content)
        assert body["error_code"] == "SIGNATURE_VERIFICATION_FAILED"
        assert not WebhookEvent.objects.exists()

    def test_invalid_signature_returns_400(self, rf):
        payload = payment_intent_event("payment_intent.succeeded", "pi_1")
        request = make_webhook_request(rf, payload, signature="t=1,v1=bad")

        with patch(DELAY) as mock_delay:
            response = stripe_webhook(request)

        assert response.status_code == 400
        assert json.loads(response.content)["error_code"] == (
            "SIGNATURE_VERIFICATION_FAILED"
        )
        assert not WebhookEvent.objects.exists()
        mock_delay.assert_not_called()

    def test_verification_error_message_is_returned(self, rf):
        payload = payment_intent_event("payment_intent.succeeded", "pi_1")

        with patch(
            VERIFY,
            side_effect=SignatureVerificationFailedError("Invalid webhook payload"),
        ):
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 400
        assert json.loads(response.content)["error"] == "Invalid webhook payload"

    @override_settings(STRIPE_WEBHOOK_SECRET="whsec_view_test")
    def test_correctly_signed_event_is_accepted(self, rf):
        payload = payment_intent_event("payment_intent.succeeded", "pi_signed")
        body = json.dumps(payload)
        request = rf.post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=sign(body, "whsec_view_test"),
        )

        with patch(DELAY) as mock_delay:
            response = stripe_webhook(request)

        assert response.status_code == 200
        event = WebhookEvent.objects.get(event_id=payload["id"])
        assert event.event_type == "payment_intent.succeeded"
        assert event.payload["data"]["object"]["id"] == "pi_signed"
        mock_delay.assert_called_once_with(str(event.id))

    def test_get_not_allowed(self, rf):
        response = stripe_webhook(rf.get(WEBHOOK_URL))

        assert response.status_code == 405


# =============================================================================
# Inbox and queuing Tests
# =============================================================================


@pytest.mark.django_db
class TestStripeWebhookInbox:
    """Tests for storing and queuing events."""

    def test_new_event_is_stored_and_queued(self, rf):
        payload = payment_intent_event("payment_intent.succeeded", "pi_new")

        with patch(VERIFY, return_value=payload), patch(DELAY) as mock_delay:
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        assert json.loads(response.content) == {"received": True}
        event = WebhookEvent.objects.get(event_id=payload["id"])
        assert event.status == WebhookEventStatus.PENDING
        mock_delay.assert_called_once_with(str(event.id))

    @pytest.mark.parametrize(
        "status", [WebhookEventStatus.PROCESSED, WebhookEventStatus.PROCESSING]
    )
    def test_duplicate_event_is_not_requeued(self, rf, status):
        payload = payment_intent_event("payment_intent.succeeded", "pi_dup")
        WebhookEventFactory(event_id=payload["id"], payload=payload, status=status)

        with patch(VERIFY, return_value=payload), patch(DELAY) as mock_delay:
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        assert json.loads(response.content)["duplicate"] is True
        assert WebhookEvent.objects.filter(event_id=payload["id"]).count() == 1
        mock_delay.assert_not_called()

    def test_redelivered_failed_event_is_requeued(self, rf):
        payload = payment_intent_event("payment_intent.succeeded", "pi_retry")
        existing = WebhookEventFactory(
            event_id=payload["id"],
            payload=payload,
            status=WebhookEventStatus.FAILED,
        )

        with patch(VERIFY, return_value=payload), patch(DELAY) as mock_delay:
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        mock_delay.assert_called_once_with(str(existing.id))

    @pytest.mark.parametrize(
        "event_data",
        [
            {"type": "payment_intent.succeeded", "data": {}},
            {"id": "evt_no_type", "data": {}},
        ],
    )
    def test_event_missing_fields_returns_400(self, rf, event_data):
        with patch(VERIFY, return_value=event_data), patch(DELAY) as mock_delay:
            response = stripe_webhook(make_webhook_request(rf, event_data))

        assert response.status_code == 400
        assert json.loads(response.content)["error_code"] == "INVALID_WEBHOOK_PAYLOAD"
        mock_delay.assert_not_called()

    def test_unknown_event_type_is_accepted(self, rf):
        payload = {
            "id": "evt_unknown_type",
            "type": "customer.subscription.deleted",
            "data": {"object": {"id": "sub_1"}},
        }

        with patch(VERIFY, return_value=payload), patch(DELAY):
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        assert WebhookEvent.objects.filter(event_id="evt_unknown_type").exists()

    def test_queue_failure_still_returns_200(self, rf):
        payload = payment_intent_event("payment_intent.succeeded", "pi_broker_down")

        with patch(VERIFY, return_value=payload), patch(
            DELAY, side_effect=ConnectionError("broker unreachable")
        ):
            response = stripe_webhook(make_webhook_request(rf, payload))

        assert response.status_code == 200
        assert WebhookEvent.objects.filter(event_id=payload["id"]).exists()
