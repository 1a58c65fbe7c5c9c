"""
Tests for CleanupRequestService.

Covers the narrow interface payments relies on: lookup of unknown and
malformed ids, settlement marking, and the atomic contributed-total
counters including the zero clamp.
"""

import uuid
from decimal import Decimal

import pytest

from cleanups.models import CleanupRequestStatus
from cleanups.services import CleanupRequestService
from cleanups.tests.factories import CleanupRequestFactory, UserFactory


@pytest.mark.django_db
class TestGetRequest:
    """Tests for CleanupRequestService.get_request."""

    def test_returns_existing_request(self, cleanup_request):
        """Should return the request with its owner."""
        found = CleanupRequestService.get_request(cleanup_request.id)

        assert found == cleanup_request
        assert found.created_by == cleanup_request.created_by

    def test_returns_none_for_unknown_id(self):
        """Should return None when no request has the id."""
        assert CleanupRequestService.get_request(uuid.uuid4()) is None

    def test_returns_none_for_malformed_id(self):
        """Should treat a non-UUID id as unknown."""
        assert CleanupRequestService.get_request("not-a-uuid") is None


@pytest.mark.django_db
class TestMarkSettled:
    """Tests for CleanupRequestService.mark_settled."""

    def test_sets_status_and_performer(self, cleanup_request):
        """Should mark the request settled and record the performer."""
        performer = UserFactory()

        updated = CleanupRequestService.mark_settled(cleanup_request.id, performer.id)

        cleanup_request.refresh_from_db()
        assert updated == 1
        assert cleanup_request.status == CleanupRequestStatus.SETTLED
        assert cleanup_request.performer == performer

    def test_unknown_request_updates_nothing(self, user):
        """Should report zero rows for an unknown request."""
        assert CleanupRequestService.mark_settled(uuid.uuid4(), user.id) == 0


@pytest.mark.django_db
class TestContributedCounters:
    """Tests for the atomic contributed-total counters."""

    def test_increment_adds_delta(self):
        """Should add the delta to the running total."""
        cleanup = CleanupRequestFactory(total_contributed=Decimal("5.00"))

        CleanupRequestService.increment_contributed(cleanup.id, Decimal("10.50"))

        cleanup.refresh_from_db()
        assert cleanup.total_contributed == Decimal("15.50")

    def test_decrement_subtracts_delta(self):
        """Should subtract the delta from the running total."""
        cleanup = CleanupRequestFactory(total_contributed=Decimal("30.00"))

        CleanupRequestService.decrement_contributed(cleanup.id, Decimal("10.00"))

        cleanup.refresh_from_db()
        assert cleanup.total_contributed == Decimal("20.00")

    def test_decrement_clamps_at_zero(self):
        """Should never take the total below zero."""
        cleanup = CleanupRequestFactory(total_contributed=Decimal("4.00"))

        CleanupRequestService.decrement_contributed(cleanup.id, Decimal("10.00"))

        cleanup.refresh_from_db()
        assert cleanup.total_contributed == Decimal("0.00")

    def test_decrement_to_exactly_zero(self):
        """Should reach zero when the delta equals the total."""
        cleanup = CleanupRequestFactory(total_contributed=Decimal("10.00"))

        CleanupRequestService.decrement_contributed(cleanup.id, Decimal("10.00"))

        cleanup.refresh_from_db()
        assert cleanup.total_contributed == Decimal("0.00")
