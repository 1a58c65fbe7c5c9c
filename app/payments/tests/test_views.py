"""
Tests for the payments API views.

Tests cover:
- Authentication on every endpoint
- Request validation and the error envelope
- Mapping of service errors to HTTP status codes
- History pagination and access rules
- Instant payouts and payout account settings
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from django.test import override_settings
from django.urls import reverse_lazy
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from payments.exceptions import (
    ProcessorCardDeclinedError,
    ProcessorInsufficientFundsError,
    ProcessorUnavailableError,
)
from payments.models import Hold, InstantPayout
from payments.state_machines import HoldKind, HoldStatus, InstantPayoutStatus
from payments.tests.factories import (
    HoldFactory,
    InstantPayoutFactory,
    PayoutAccountFactory,
    PayoutFactory,
)
from payments.views import ERROR_STATUS_MAP, status_for_error


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def stripe_adapter(processor):
    """Route every view's adapter to the processor double."""
    with patch("payments.views.StripeAdapter", return_value=processor):
        yield processor


# =============================================================================
# Hold creation
# =============================================================================


@pytest.mark.django_db
class TestCreateHoldView:
    url = reverse_lazy("payments:create-hold")

    def _payload(self, payer, cleanup_request, **overrides):
        payload = {
            "user_id": payer.pk,
            "request_id": str(cleanup_request.id),
            "amount_cents": 5000,
            "kind": HoldKind.DONATION,
        }
        payload.update(overrides)
        return payload

    def test_requires_authentication(self, api_client, payer, cleanup_request):
        response = api_client.post(
            self.url, self._payload(payer, cleanup_request), format="json"
        )

        assert response.status_code in (
            status.HTTP_401_UNAUTHORIZED,
            status.HTTP_403_FORBIDDEN,
        )

    def test_creates_hold(self, api_client, stripe_adapter, payer, cleanup_request):
        api_client.force_authenticate(payer)

        response = api_client.post(
            self.url, self._payload(payer, cleanup_request), format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        hold = Hold.objects.get()
        assert response.data["hold_id"] == str(hold.id)
        assert response.data["external_id"] == "pi_test_new"
        assert response.data["client_handle"] == "pi_test_new_secret_abc"

    def test_payer_defaults_to_caller(
        self, api_client, stripe_adapter, payer, cleanup_request
    ):
        api_client.force_authenticate(payer)
        payload = self._payload(payer, cleanup_request)
        del payload["user_id"]

        response = api_client.post(self.url, payload, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert Hold.objects.get().payer_id == payer.pk

    def test_amount_too_small(self, api_client, stripe_adapter, payer, cleanup_request):
        api_client.force_authenticate(payer)

        response = api_client.post(
            self.url, self._payload(payer, cleanup_request, amount_cents=10), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "AMOUNT_TOO_SMALL"
        assert response.data["details"]["minimum_cents"] == 50

    def test_unknown_kind(self, api_client, stripe_adapter, payer, cleanup_request):
        api_client.force_authenticate(payer)

        response = api_client.post(
            self.url, self._payload(payer, cleanup_request, kind="tip"), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "VALIDATION_ERROR"

    def test_malformed_body(self, api_client, stripe_adapter, payer):
        api_client.force_authenticate(payer)

        response = api_client.post(self.url, {"amount_cents": "lots"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        stripe_adapter.create_hold.assert_not_called()

    def test_unknown_request(self, api_client, stripe_adapter, payer, cleanup_request):
        api_client.force_authenticate(payer)

        response = api_client.post(
            self.url,
            self._payload(
                payer, cleanup_request, request_id="00000000-0000-0000-0000-000000000000"
            ),
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "REQUEST_NOT_FOUND"

    def test_paying_for_someone_else(
        self, api_client, stripe_adapter, payer, other_user, cleanup_request
    ):
        api_client.force_authenticate(other_user)

        response = api_client.post(
            self.url, self._payload(payer, cleanup_request), format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_card_declined(self, api_client, stripe_adapter, payer, cleanup_request):
        stripe_adapter.create_hold.side_effect = ProcessorCardDeclinedError(
            "Your card was declined.", decline_code="generic_decline"
        )
        api_client.force_authenticate(payer)

        response = api_client.post(
            self.url, self._payload(payer, cleanup_request), format="json"
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.data["error_code"] == "CARD_DECLINED"
        assert response.data["details"]["decline_code"] == "generic_decline"

    def test_processor_unavailable(self, api_client, stripe_adapter, payer, cleanup_request):
        stripe_adapter.create_hold.side_effect = ProcessorUnavailableError("timeout")
        api_client.force_authenticate(payer)

        response = api_client.post(
            self.url, self._payload(payer, cleanup_request), format="json"
        )

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


# =============================================================================
# Settlement
# =============================================================================


@pytest.mark.django_db
class TestSettleRequestView:
    url = reverse_lazy("payments:settle-request")

    def _payload(self, cleanup_request, performer):
        return {"request_id": str(cleanup_request.id), "performer_user_id": performer.pk}

    def test_settles(
        self,
        api_client,
        stripe_adapter,
        creator,
        performer,
        cleanup_request,
        payout_account,
        capturable_hold,
    ):
        api_client.force_authenticate(creator)

        response = api_client.post(
            self.url, self._payload(cleanup_request, performer), format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["transfer_id"] == "tr_test_123"
        assert response.data["net_amount_cents"] == 4072
        assert response.data["platform_fee_cents"] == 350
        assert response.data["processor_fee_cents"] == 578
        assert response.data["captured_hold_ids"] == [str(capturable_hold.id)]
        assert response.data["failed_captures"] == []
        assert response.data["created"] is True

    def test_repeat_returns_existing(
        self,
        api_client,
        stripe_adapter,
        creator,
        performer,
        cleanup_request,
        payout_account,
        capturable_hold,
    ):
        api_client.force_authenticate(creator)
        payload = self._payload(cleanup_request, performer)

        first = api_client.post(self.url, payload, format="json")
        second = api_client.post(self.url, payload, format="json")

        assert second.status_code == status.HTTP_200_OK
        assert second.data["payout_id"] == first.data["payout_id"]
        assert second.data["created"] is False

    def test_insufficient_amount(
        self, api_client, stripe_adapter, creator, performer, cleanup_request, payout_account
    ):
        HoldFactory(request=cleanup_request, amount_cents=30, status=HoldStatus.SUCCEEDED)
        api_client.force_authenticate(creator)

        response = api_client.post(
            self.url, self._payload(cleanup_request, performer), format="json"
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data["error_code"] == "INSUFFICIENT_SETTLEMENT_AMOUNT"

    def test_missing_payout_account(
        self, api_client, stripe_adapter, creator, performer, cleanup_request, capturable_hold
    ):
        api_client.force_authenticate(creator)

        response = api_client.post(
            self.url, self._payload(cleanup_request, performer), format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "PAYOUT_ACCOUNT_NOT_FOUND"

    def test_in_progress(
        self,
        api_client,
        stripe_adapter,
        mock_redis,
        creator,
        performer,
        cleanup_request,
        payout_account,
        capturable_hold,
    ):
        mock_redis.set.return_value = False
        api_client.force_authenticate(creator)

        response = api_client.post(
            self.url, self._payload(cleanup_request, performer), format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "SETTLEMENT_IN_PROGRESS"

    def test_not_creator(
        self, api_client, stripe_adapter, other_user, performer, cleanup_request
    ):
        api_client.force_authenticate(other_user)

        response = api_client.post(
            self.url, self._payload(cleanup_request, performer), format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# History
# =============================================================================


@pytest.mark.django_db
class TestHoldHistoryView:
    url = reverse_lazy("payments:hold-history")

    def test_own_history_newest_first(self, api_client, payer):
        older = HoldFactory(payer=payer)
        newer = HoldFactory(payer=payer)
        Hold.objects.filter(pk=older.pk).update(
            created_at=timezone.now() - timedelta(hours=1)
        )
        HoldFactory()
        api_client.force_authenticate(payer)

        response = api_client.get(self.url, {"user_id": payer.pk})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total"] == 2
        assert response.data["page"] == 1
        assert response.data["limit"] == 20
        assert [item["id"] for item in response.data["items"]] == [
            str(newer.id),
            str(older.id),
        ]

    def test_pagination(self, api_client, payer):
        HoldFactory.create_batch(5, payer=payer)
        api_client.force_authenticate(payer)

        response = api_client.get(self.url, {"user_id": payer.pk, "page": 3, "limit": 2})

        assert response.data["total"] == 5
        assert len(response.data["items"]) == 1

    def test_page_beyond_end_is_empty(self, api_client, payer):
        HoldFactory(payer=payer)
        api_client.force_authenticate(payer)

        response = api_client.get(self.url, {"user_id": payer.pk, "page": 9})

        assert response.data["items"] == []
        assert response.data["total"] == 1

    @override_settings(PAYMENTS_HISTORY_MAX_PAGE_SIZE=100)
    def test_out_of_range_values_are_clamped(self, api_client, payer):
        api_client.force_authenticate(payer)

        response = api_client.get(
            self.url, {"user_id": payer.pk, "page": 0, "limit": 1000}
        )

        assert response.data["page"] == 1
        assert response.data["limit"] == 100

    def test_user_id_required(self, api_client, payer):
        api_client.force_authenticate(payer)

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_other_users_history_forbidden(self, api_client, payer, other_user):
        api_client.force_authenticate(other_user)

        response = api_client.get(self.url, {"user_id": payer.pk})

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_can_view_any_history(self, api_client, payer, staff_user):
        HoldFactory(payer=payer)
        api_client.force_authenticate(staff_user)

        response = api_client.get(self.url, {"user_id": payer.pk})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total"] == 1


@pytest.mark.django_db
class TestPayoutHistoryView:
    url = reverse_lazy("payouts:payout-history")

    def test_own_payouts(self, api_client, performer):
        payout = PayoutFactory(performer=performer)
        PayoutFactory()
        api_client.force_authenticate(performer)

        response = api_client.get(self.url, {"user_id": performer.pk})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total"] == 1
        item = response.data["items"][0]
        assert item["id"] == str(payout.id)
        assert item["net_amount_cents"] == 4072
        assert item["status"] == "pending"

    def test_other_performer_forbidden(self, api_client, performer, other_user):
        api_client.force_authenticate(other_user)

        response = api_client.get(self.url, {"user_id": performer.pk})

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# Payout accounts
# =============================================================================


@pytest.mark.django_db
class TestPayoutAccountViews:
    onboarding_url = reverse_lazy("payouts:payout-account")
    status_url = reverse_lazy("payouts:payout-account-status")

    def test_onboarding_creates_account(self, api_client, stripe_adapter, performer):
        api_client.force_authenticate(performer)

        response = api_client.post(self.onboarding_url, {"country": "US"}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["created"] is True
        assert response.data["account"]["external_account_id"] == "acct_test_new"
        assert response.data["onboarding_url"].startswith("https://")

    def test_onboarding_again_returns_200(self, api_client, stripe_adapter, performer):
        PayoutAccountFactory(user=performer, incomplete=True)
        api_client.force_authenticate(performer)

        response = api_client.post(self.onboarding_url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["created"] is False
        stripe_adapter.create_express_account.assert_not_called()

    def test_invalid_country(self, api_client, stripe_adapter, performer):
        api_client.force_authenticate(performer)

        response = api_client.post(
            self.onboarding_url, {"country": "USA"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_status(self, api_client, stripe_adapter, performer):
        PayoutAccountFactory(
            user=performer, external_account_id="acct_test_new", incomplete=True
        )
        api_client.force_authenticate(performer)

        response = api_client.get(self.status_url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["onboarding_complete"] is True
        assert response.data["onboarding_url"] is None
        assert response.data["account"]["payouts_enabled"] is True

    def test_status_without_account(self, api_client, stripe_adapter, performer):
        api_client.force_authenticate(performer)

        response = api_client.get(self.status_url)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "PAYOUT_ACCOUNT_NOT_FOUND"


# =============================================================================
# Instant payouts & payout settings
# =============================================================================


@pytest.mark.django_db
class TestInstantPayoutView:
    url = reverse_lazy("payouts:instant-payout")

    def test_creates_payout(self, api_client, stripe_adapter, payout_account, performer):
        api_client.force_authenticate(performer)

        response = api_client.post(
            self.url,
            {"amount_cents": 2500, "external_account_id": "card_test_visa"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["external_id"] == "po_test_new"
        assert response.data["status"] == "pending"
        assert response.data["user"] == performer.pk
        kwargs = stripe_adapter.create_payout.call_args.kwargs
        assert kwargs["destination"] == "card_test_visa"
        assert kwargs["account_id"] == "acct_test_000001"

    @override_settings(PAYOUTS_INSTANT_MINIMUM_CENTS=100)
    def test_below_minimum(self, api_client, stripe_adapter, payout_account, performer):
        api_client.force_authenticate(performer)

        response = api_client.post(self.url, {"amount_cents": 50}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "AMOUNT_TOO_SMALL"
        stripe_adapter.create_payout.assert_not_called()

    def test_other_users_account_forbidden(
        self, api_client, stripe_adapter, payout_account, performer, other_user
    ):
        api_client.force_authenticate(other_user)

        response = api_client.post(
            self.url, {"user_id": performer.pk, "amount_cents": 2500}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        stripe_adapter.create_payout.assert_not_called()

    def test_without_account(self, api_client, stripe_adapter, performer):
        api_client.force_authenticate(performer)

        response = api_client.post(self.url, {"amount_cents": 2500}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "PAYOUT_ACCOUNT_NOT_FOUND"

    def test_insufficient_balance(
        self, api_client, stripe_adapter, payout_account, performer
    ):
        stripe_adapter.create_payout.side_effect = ProcessorInsufficientFundsError(
            "Insufficient funds in Stripe account"
        )
        api_client.force_authenticate(performer)

        response = api_client.post(self.url, {"amount_cents": 2500}, format="json")

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert not InstantPayout.objects.exists()

    def test_requires_authentication(self, api_client):
        response = api_client.post(self.url, {"amount_cents": 2500}, format="json")

        assert response.status_code in (
            status.HTTP_401_UNAUTHORIZED,
            status.HTTP_403_FORBIDDEN,
        )


@pytest.mark.django_db
class TestInstantPayoutHistoryView:
    url = reverse_lazy("payouts:instant-payout-history")

    def test_in_flight_payouts_are_refreshed(
        self, api_client, stripe_adapter, performer
    ):
        pending = InstantPayoutFactory(user=performer)
        failed = InstantPayoutFactory(user=performer, status=InstantPayoutStatus.FAILED)
        InstantPayoutFactory()
        api_client.force_authenticate(performer)

        response = api_client.get(self.url, {"user_id": performer.pk})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total"] == 2
        statuses = {item["id"]: item["status"] for item in response.data["items"]}
        assert statuses == {str(pending.id): "paid", str(failed.id): "failed"}
        stripe_adapter.retrieve_payout.assert_called_once_with(
            pending.account_id, pending.external_id
        )

    def test_processor_outage_serves_stored_rows(
        self, api_client, stripe_adapter, performer
    ):
        InstantPayoutFactory(user=performer)
        stripe_adapter.retrieve_payout.side_effect = ProcessorUnavailableError(
            "timeout"
        )
        api_client.force_authenticate(performer)

        response = api_client.get(self.url, {"user_id": performer.pk})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["items"][0]["status"] == "pending"

    def test_other_users_history_forbidden(
        self, api_client, stripe_adapter, performer, other_user
    ):
        api_client.force_authenticate(other_user)

        response = api_client.get(self.url, {"user_id": performer.pk})

        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestPayoutSettingsViews:
    schedule_url = reverse_lazy("payouts:payout-schedule")
    methods_url = reverse_lazy("payouts:payout-methods")
    balance_url = reverse_lazy("payouts:payout-balance")

    def test_update_schedule(self, api_client, stripe_adapter, payout_account, performer):
        api_client.force_authenticate(performer)

        response = api_client.put(
            self.schedule_url, {"interval": "weekly", "delay_days": 7}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["account_id"] == "acct_test_000001"
        assert response.data["payout_schedule"] == {"interval": "weekly", "delay_days": 7}
        stripe_adapter.update_payout_schedule.assert_called_once_with(
            "acct_test_000001", interval="weekly", delay_days=7
        )

    def test_unknown_interval(
        self, api_client, stripe_adapter, payout_account, performer
    ):
        api_client.force_authenticate(performer)

        response = api_client.put(
            self.schedule_url, {"interval": "hourly"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        stripe_adapter.update_payout_schedule.assert_not_called()

    def test_methods(self, api_client, stripe_adapter, payout_account, performer):
        api_client.force_authenticate(performer)

        response = api_client.get(self.methods_url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["account_id"] == "acct_test_000001"
        assert response.data["instant_payout_available"] is True
        assert response.data["can_add_debit_card"] is True
        [card] = response.data["external_accounts"]
        assert card["id"] == "card_test_visa"
        assert card["type"] == "debit_card"

    def test_methods_for_other_user_forbidden(
        self, api_client, stripe_adapter, payout_account, performer, other_user
    ):
        api_client.force_authenticate(other_user)

        response = api_client.get(self.methods_url, {"user_id": performer.pk})

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_reads_balance_for_user(
        self, api_client, stripe_adapter, payout_account, performer, staff_user
    ):
        InstantPayoutFactory(user=performer, status=InstantPayoutStatus.PAID)
        api_client.force_authenticate(staff_user)

        response = api_client.get(self.balance_url, {"user_id": performer.pk})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["available"] == [
            {"amount_cents": 4072, "currency": "usd"}
        ]
        assert response.data["can_instant_payout"] is True
        assert len(response.data["recent_payouts"]) == 1

    def test_balance_without_account(self, api_client, stripe_adapter, performer):
        api_client.force_authenticate(performer)

        response = api_client.get(self.balance_url)

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Error mapping
# =============================================================================


class TestStatusForError:
    def test_unavailable_before_generic_processor_error(self):
        assert status_for_error(ProcessorUnavailableError("down")) == 503
        assert status_for_error(ProcessorCardDeclinedError("declined")) == 402

    def test_every_mapped_class_resolves_to_its_status(self):
        for error_class, http_status in ERROR_STATUS_MAP:
            assert status_for_error(error_class("x")) == http_status
