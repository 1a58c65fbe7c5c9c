"""
State enums for payment models.

These are Django TextChoices used for database storage, admin filters and
the django-fsm transition graphs on the models.

State Machines Overview:

Hold States:
    created → requires_capture → succeeded
    created/requires_capture → canceled
    created/requires_capture → failed

Payout States:
    pending → paid
    pending → failed

WebhookEvent States:
    pending → processing → processed
    pending → processing → failed (can retry)
"""

from django.db import models


class HoldStatus(models.TextChoices):
    """
    Lifecycle of a local hold (mirror of a manual-capture PaymentIntent).

    Terminal states: SUCCEEDED, CANCELED, FAILED

    Transitions are monotonic. Re-applying the current status is a no-op,
    and nothing leaves a terminal state.
    """

    CREATED = "created", "Created"
    REQUIRES_CAPTURE = "requires_capture", "Requires Capture"
    SUCCEEDED = "succeeded", "Succeeded"
    CANCELED = "canceled", "Canceled"
    FAILED = "failed", "Failed"

    @classmethod
    def terminal(cls) -> frozenset[str]:
        """Statuses a hold never leaves."""
        return frozenset({cls.SUCCEEDED, cls.CANCELED, cls.FAILED})

    @classmethod
    def settleable(cls) -> frozenset[str]:
        """Statuses whose funds count towards a settlement."""
        return frozenset({cls.REQUIRES_CAPTURE, cls.SUCCEEDED})


class HoldKind(models.TextChoices):
    """What a hold pays for."""

    DONATION = "donation", "Donation"
    REQUEST_COST = "request_cost", "Request Cost"


class PayoutStatus(models.TextChoices):
    """
    Lifecycle of a payout transfer to a performer.

    Terminal states: PAID, FAILED
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"

    @classmethod
    def terminal(cls) -> frozenset[str]:
        return frozenset({cls.PAID, cls.FAILED})


class InstantPayoutStatus(models.TextChoices):
    """
    Lifecycle of a payout from a connected account to its bank or card.

    Mirrors the processor's payout status. Terminal states: PAID, FAILED,
    CANCELED
    """

    PENDING = "pending", "Pending"
    IN_TRANSIT = "in_transit", "In transit"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    CANCELED = "canceled", "Canceled"

    @classmethod
    def terminal(cls) -> frozenset[str]:
        return frozenset({cls.PAID, cls.FAILED, cls.CANCELED})

    @classmethod
    def active(cls) -> frozenset[str]:
        return frozenset({cls.PENDING, cls.IN_TRANSIT})


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
