"""
Hold creation: the entry point for money coming in.

A payer asks to put funds on hold for a cleanup request, either as a
donation or to pay the request's own cost. The processor opens a
manual-capture authorization; the local Hold mirrors it and, for
donations, a Donation row is written right away and counted toward the
request's contributed total. If the authorization later fails or is
canceled, compensation undoes the Donation.

Usage:
    from payments.services import HoldService

    result = HoldService(processor=adapter).create_hold(
        caller=request.user,
        payer_id=request.user.pk,
        request_id=cleanup.id,
        amount_cents=5000,
        kind=HoldKind.DONATION,
    )
    result.client_handle  # hand to the payer's device
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.utils import timezone

from cleanups.services import CleanupRequestService
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from core.services import BaseService

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import AmountTooSmallError, RequestNotFoundError
from payments.models import Donation, Hold
from payments.models.hold import OPEN_HOLD_STATUSES
from payments.state_machines import HoldKind, HoldStatus

if TYPE_CHECKING:
    from typing import Any

# Local writes after money has moved are retried this many times in place
LOCAL_WRITE_ATTEMPTS = 3


@dataclass
class HoldCreationResult:
    """
    Outcome of create_hold.

    Attributes:
        hold: The local Hold
        client_handle: Processor client secret for the payer's device
        donation: Linked Donation for donation holds, else None
    """

    hold: Hold
    client_handle: str | None
    donation: Donation | None = None


class HoldService(BaseService):
    """
    Creates authorization holds and their local mirrors.

    Validation happens before any processor call, in this order: amount,
    kind, request existence, payer authorization.
    """

    def __init__(self, processor: StripeAdapter | None = None):
        self.processor = processor or StripeAdapter()

    def create_hold(
        self,
        caller: Any,
        payer_id: Any,
        request_id: uuid.UUID | str,
        amount_cents: int,
        kind: str,
    ) -> HoldCreationResult:
        """
        Open a manual-capture hold for a cleanup request.

        Args:
            caller: Authenticated user making the request
            payer_id: User whose card is authorized
            request_id: Cleanup request the funds are for
            amount_cents: Amount in minor units
            kind: HoldKind value

        Raises:
            AmountTooSmallError: Below PAYMENTS_MINIMUM_CHARGE_CENTS
            ValidationError: Unknown kind
            RequestNotFoundError: Unknown request
            PermissionDeniedError: Caller is neither the payer nor an admin
            ProcessorError: Processor rejected the authorization
            ProcessorUnavailableError: Processor unreachable after retries
        """
        logger = self.get_logger()
        minimum = settings.PAYMENTS_MINIMUM_CHARGE_CENTS

        if amount_cents < minimum:
            raise AmountTooSmallError(
                f"Amount must be at least {minimum} minor units",
                details={"amount_cents": amount_cents, "minimum_cents": minimum},
            )
        if kind not in HoldKind.values:
            raise ValidationError(
                f"Unknown hold kind '{kind}'",
                details={"kind": kind, "allowed": list(HoldKind.values)},
            )

        cleanup = CleanupRequestService.get_request(request_id)
        if cleanup is None:
            raise RequestNotFoundError(
                "Cleanup request not found",
                details={"request_id": str(request_id)},
            )

        if str(payer_id) != str(caller.pk) and not caller.is_staff:
            raise PermissionDeniedError(
                "You can only create holds for yourself",
                details={"payer_id": str(payer_id)},
            )
        if not get_user_model().objects.filter(pk=payer_id).exists():
            raise NotFoundError(
                "Payer not found",
                error_code="USER_NOT_FOUND",
                details={"payer_id": str(payer_id)},
            )

        currency = settings.STRIPE_CURRENCY
        metadata = {
            "request_id": str(cleanup.id),
            "user_id": str(payer_id),
            "request_category": cleanup.category,
            "type": kind,
        }
        intent = self.processor.create_hold(
            amount_cents=amount_cents,
            currency=currency,
            metadata=metadata,
            idempotency_key=IdempotencyKeyGenerator.generate("create_hold", uuid.uuid4()),
        )

        with self.atomic():
            # A succeeded/failed event may already have created the row.
            hold, created = Hold.objects.get_or_create(
                external_id=intent.id,
                defaults={
                    "payer_id": payer_id,
                    "request": cleanup,
                    "amount_cents": amount_cents,
                    "currency": currency,
                    "kind": kind,
                    "metadata": metadata,
                },
            )

            donation = None
            if kind == HoldKind.DONATION and hold.status not in (
                HoldStatus.FAILED,
                HoldStatus.CANCELED,
            ):
                donation, donation_created = Donation.objects.get_or_create(
                    hold=hold,
                    defaults={
                        "request": cleanup,
                        "donor_id": payer_id,
                        "amount": hold.amount_major,
                    },
                )
                if donation_created:
                    CleanupRequestService.increment_contributed(
                        cleanup.id, donation.amount
                    )

        logger.info(
            "Created hold",
            extra={
                "hold_id": str(hold.id),
                "external_id": hold.external_id,
                "request_id": str(cleanup.id),
                "amount_cents": amount_cents,
                "kind": kind,
                "event_first": not created,
            },
        )
        return HoldCreationResult(
            hold=hold,
            client_handle=intent.client_secret,
            donation=donation,
        )

    # =========================================================================
    # Status updates
    # =========================================================================

    @classmethod
    def advance_status(
        cls,
        external_id: str,
        allowed_from: list[str] | frozenset[str],
        target: str,
    ) -> int:
        """
        Compare-and-set a hold's status by external id.

        Returns:
            1 if the hold moved to target, 0 if it was missing or not in
            an allowed source status (including already at target)
        """
        return Hold.objects.filter(
            external_id=external_id,
            status__in=list(allowed_from),
        ).update(status=target, updated_at=timezone.now())

    @classmethod
    def record_capture(cls, hold: Hold) -> bool:
        """
        Mark a hold SUCCEEDED after the processor captured it.

        The money has already moved, so a failed write is retried in place
        and then handed to converge_hold_capture.

        Returns:
            True if recorded now, False if queued for convergence
        """
        logger = cls.get_logger()
        for attempt in range(LOCAL_WRITE_ATTEMPTS):
            try:
                cls.advance_status(
                    hold.external_id, OPEN_HOLD_STATUSES, HoldStatus.SUCCEEDED
                )
                return True
            except DatabaseError:
                logger.warning(
                    "Failed to record capture",
                    extra={"hold_id": str(hold.id), "attempt": attempt + 1},
                    exc_info=True,
                )

        from payments.tasks import converge_hold_capture

        logger.error(
            "Capture not recorded locally, queued convergence",
            extra={"hold_id": str(hold.id), "external_id": hold.external_id},
        )
        converge_hold_capture.delay(str(hold.id))
        return False
