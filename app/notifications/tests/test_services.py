"""
Tests for NotificationService.notify.
"""

import pytest

from notifications.models import Notification, NotificationKind
from notifications.services import NotificationService, format_amount
from notifications.tests.factories import NotificationFactory


class TestFormatAmount:
    """Tests for the minor-unit display helper."""

    def test_usd(self):
        """Should render dollars with two decimals."""
        assert format_amount(4072) == "$40.72"

    def test_other_currency(self):
        """Should suffix non-USD currencies with their code."""
        assert format_amount(500, "eur") == "5.00 EUR"


@pytest.mark.django_db
class TestNotify:
    """Tests for NotificationService.notify."""

    def test_renders_template_from_payload(self, user):
        """Should render the payout-paid template with the amount."""
        result = NotificationService.notify(
            user_id=user.id,
            kind=NotificationKind.PAYOUT_PAID,
            payload={"payout_id": "p1", "amount_cents": 4072},
        )

        assert result.success
        notification = result.data
        assert notification.recipient == user
        assert notification.title == "Payout completed"
        assert "$40.72" in notification.body
        assert notification.payload == {"payout_id": "p1", "amount_cents": 4072}
        assert notification.is_read is False

    def test_explicit_title_and_body_override_template(self, user):
        """Should prefer explicit title and body."""
        result = NotificationService.notify(
            user_id=user.id,
            kind=NotificationKind.PAYOUT_FAILED,
            title="Custom",
            body="Custom body",
        )

        assert result.data.title == "Custom"
        assert result.data.body == "Custom body"

    def test_unknown_user_fails(self):
        """Should fail with USER_NOT_FOUND and create nothing."""
        result = NotificationService.notify(
            user_id=999999,
            kind=NotificationKind.PAYOUT_FAILED,
        )

        assert not result
        assert result.error_code == "USER_NOT_FOUND"
        assert Notification.objects.count() == 0

    def test_duplicate_idempotency_key_is_rejected(self, user):
        """Should create a single notification per idempotency key."""
        NotificationFactory(recipient=user, idempotency_key="payout_paid:abc")

        result = NotificationService.notify(
            user_id=user.id,
            kind=NotificationKind.PAYOUT_PAID,
            payload={"amount_cents": 100},
            idempotency_key="payout_paid:abc",
        )

        assert result.error_code == "DUPLICATE"
        assert Notification.objects.filter(idempotency_key="payout_paid:abc").count() == 1
