"""
Capture and settlement of a completed cleanup request.

Settlement captures every open hold on the request, sums what was actually
captured, splits it into platform fee, processor fee and net payout, and
transfers the net to the performer's payout account.

Flow:
    1. Authorize: request creator or admin
    2. Return the existing Payout if the request was already settled
    3. Under a per-request Redis lock:
       a. Require a payout-enabled account for the performer
       b. Capture REQUIRES_CAPTURE holds one by one; SUCCEEDED holds
          (auto-captured by webhook) are included as-is; failures are
          collected, not raised
       c. Compute fees on the captured total
       d. Create the Payout (PENDING) in its own transaction
       e. Request the transfer outside any transaction
       f. Store the transfer id and mark the request settled

Money-moved-but-not-recorded cases (capture or transfer succeeded at the
processor but the local write failed) are retried in place and then handed
to convergence tasks; they are never dropped.

Usage:
    from payments.services import SettlementService

    result = SettlementService(processor=adapter).settle_request(
        request_id=cleanup.id,
        performer_user_id=performer.id,
        caller=request.user,
    )
    result.failed_captures  # holds that could not be captured this time
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.db import DatabaseError, IntegrityError
from django.utils import timezone

from cleanups.models import CleanupRequestStatus
from cleanups.services import CleanupRequestService
from core.exceptions import PermissionDeniedError
from core.services import BaseService

from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import (
    InsufficientSettlementAmountError,
    ProcessorError,
    RequestNotFoundError,
)
from payments.locks import settlement_lock
from payments.models import Hold, Payout
from payments.services.fee_calculator import calculate_fees
from payments.services.hold_service import LOCAL_WRITE_ATTEMPTS, HoldService
from payments.services.payout_account_service import PayoutAccountService
from payments.state_machines import HoldStatus

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class CaptureFailure:
    hold_id: str
    external_id: str
    error_code: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {
            "hold_id": self.hold_id,
            "external_id": self.external_id,
            "error_code": self.error_code,
            "error": self.error,
        }


@dataclass
class SettlementResult:
    """
    Outcome of settle_request.

    Attributes:
        payout: The request's Payout (new or pre-existing)
        captured_hold_ids: Holds whose funds make up the payout
        failed_captures: Holds that could not be captured this time
        created: False when an existing Payout was returned
    """

    payout: Payout
    captured_hold_ids: list[str] = field(default_factory=list)
    failed_captures: list[CaptureFailure] = field(default_factory=list)
    created: bool = True

    @property
    def net_amount_cents(self) -> int:
        return self.payout.net_amount_cents

    @property
    def platform_fee_cents(self) -> int:
        return self.payout.platform_fee_cents

    @property
    def processor_fee_cents(self) -> int:
        return self.payout.processor_fee_cents


# =============================================================================
# Settlement Service
# =============================================================================


class SettlementService(BaseService):
    """
    Settles cleanup requests: capture, split, transfer.

    Idempotent per request: a request has at most one Payout, and the
    capture and transfer idempotency keys are derived from the hold and
    request ids, so re-invoking after a crash never moves money twice.
    """

    def __init__(self, processor: StripeAdapter | None = None):
        self.processor = processor or StripeAdapter()

    def settle_request(
        self,
        request_id: uuid.UUID | str,
        performer_user_id: Any,
        caller: Any,
    ) -> SettlementResult:
        """
        Capture the request's holds and pay the performer.

        Raises:
            RequestNotFoundError: Unknown request
            PermissionDeniedError: Caller is neither creator nor admin
            SettlementInProgressError: Another worker holds the lock
            PayoutAccountNotFoundError: Performer cannot receive payouts
            InsufficientSettlementAmountError: Fees exceed captured total
            ProcessorError: Transfer rejected (the pending Payout is removed)
            ProcessorUnavailableError: Transfer failed after retries
        """
        logger = self.get_logger()

        cleanup = CleanupRequestService.get_request(request_id)
        if cleanup is None:
            raise RequestNotFoundError(
                "Cleanup request not found",
                details={"request_id": str(request_id)},
            )
        if cleanup.created_by_id != caller.pk and not caller.is_staff:
            raise PermissionDeniedError(
                "Only the request creator or an admin can settle a request",
                details={"request_id": str(cleanup.id)},
            )

        existing = self._existing_result(cleanup.id)
        if existing is not None:
            return existing

        with settlement_lock(cleanup.id):
            # Re-check under the lock; a concurrent settlement may have won.
            existing = self._existing_result(cleanup.id)
            if existing is not None:
                return existing

            account = PayoutAccountService.get_payout_ready_account(performer_user_id)

            captured, failures = self._capture_holds(cleanup.id)
            total_cents = sum(hold.amount_cents for hold in captured)
            fees = calculate_fees(total_cents)

            if not fees.is_payable:
                logger.warning(
                    "Captured total does not cover fees",
                    extra={
                        "request_id": str(cleanup.id),
                        "total_cents": total_cents,
                        "net_cents": fees.net_cents,
                    },
                )
                raise InsufficientSettlementAmountError(
                    "Captured total does not cover fees",
                    details={
                        "total_cents": total_cents,
                        "platform_fee_cents": fees.platform_fee_cents,
                        "processor_fee_cents": fees.processor_fee_cents,
                        "failed_captures": [f.to_dict() for f in failures],
                    },
                )

            captured_ids = [str(hold.id) for hold in captured]
            source_hold = captured[0]
            currency = source_hold.currency

            try:
                with self.atomic():
                    payout = Payout.objects.create(
                        request=cleanup,
                        performer_id=performer_user_id,
                        source_hold=source_hold,
                        net_amount_cents=fees.net_cents,
                        platform_fee_cents=fees.platform_fee_cents,
                        processor_fee_cents=fees.processor_fee_cents,
                        currency=currency,
                        metadata={"captured_hold_ids": captured_ids},
                    )
            except IntegrityError:
                # The lock expired and another settlement created the payout.
                existing = self._existing_result(cleanup.id)
                if existing is None:
                    raise
                return existing

            transfer_metadata = {
                "request_id": str(cleanup.id),
                "performer_user_id": str(performer_user_id),
                "platform_fee_cents": str(fees.platform_fee_cents),
                "processor_fee_cents": str(fees.processor_fee_cents),
                "source_hold_id": str(source_hold.id),
            }
            try:
                transfer = self.processor.create_transfer(
                    amount_cents=fees.net_cents,
                    destination_account=account.external_account_id,
                    currency=currency,
                    metadata=transfer_metadata,
                    source_transaction=source_hold.external_id,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "create_transfer", cleanup.id
                    ),
                )
            except ProcessorError:
                # No money moved; drop the pending row so settlement can be retried.
                Payout.objects.filter(pk=payout.pk, external_id__isnull=True).delete()
                logger.error(
                    "Transfer request failed",
                    extra={"request_id": str(cleanup.id), "payout_id": str(payout.id)},
                    exc_info=True,
                )
                raise

            self._record_transfer(payout, transfer.id)
            CleanupRequestService.mark_settled(cleanup.id, performer_user_id)

        payout = Payout.objects.get(pk=payout.pk)
        logger.info(
            "Settled cleanup request",
            extra={
                "request_id": str(cleanup.id),
                "payout_id": str(payout.id),
                "transfer_id": transfer.id,
                "total_cents": total_cents,
                "net_cents": fees.net_cents,
                "captured": len(captured),
                "failed": len(failures),
            },
        )
        return SettlementResult(
            payout=payout,
            captured_hold_ids=captured_ids,
            failed_captures=failures,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _existing_result(self, request_id: Any) -> SettlementResult | None:
        payout = Payout.objects.filter(request_id=request_id).first()
        if payout is None:
            return None

        captured_ids = payout.get_meta("captured_hold_ids")
        if captured_ids is None:
            captured_ids = [
                str(pk)
                for pk in Hold.objects.filter(
                    request_id=request_id, status=HoldStatus.SUCCEEDED
                ).values_list("id", flat=True)
            ]
        # The payout may have been rebuilt from a transfer event, or the
        # process stopped before the request was marked.
        cleanup = CleanupRequestService.get_request(request_id)
        if cleanup is not None and (
            cleanup.status != CleanupRequestStatus.SETTLED
            or cleanup.performer_id != payout.performer_id
        ):
            CleanupRequestService.mark_settled(request_id, payout.performer_id)

        self.get_logger().info(
            "Request already settled, returning existing payout",
            extra={"request_id": str(request_id), "payout_id": str(payout.id)},
        )
        return SettlementResult(
            payout=payout,
            captured_hold_ids=list(captured_ids),
            created=False,
        )

    def _capture_holds(self, request_id: Any) -> tuple[list[Hold], list[CaptureFailure]]:
        """Capture open holds; returns (captured holds, failures)."""
        logger = self.get_logger()
        captured: list[Hold] = []
        failures: list[CaptureFailure] = []

        holds = Hold.objects.filter(
            request_id=request_id,
            status__in=HoldStatus.settleable(),
        ).order_by("created_at")

        for hold in holds:
            if hold.status == HoldStatus.SUCCEEDED:
                captured.append(hold)
                continue

            try:
                self.processor.capture_hold(
                    hold.external_id,
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "capture_hold", hold.id
                    ),
                )
            except ProcessorError as e:
                # The webhook path may have captured it in the meantime.
                current = Hold.objects.get(pk=hold.pk)
                if current.status == HoldStatus.SUCCEEDED:
                    captured.append(current)
                    continue
                logger.warning(
                    "Hold capture failed",
                    extra={
                        "hold_id": str(hold.id),
                        "external_id": hold.external_id,
                        "error_code": e.error_code,
                    },
                )
                failures.append(
                    CaptureFailure(
                        hold_id=str(hold.id),
                        external_id=hold.external_id,
                        error_code=e.error_code,
                        error=e.message,
                    )
                )
                continue

            HoldService.record_capture(hold)
            captured.append(hold)

        return captured, failures

    def _record_transfer(self, payout: Payout, transfer_id: str) -> None:
        """Store the transfer id, converging later if the write fails."""
        for attempt in range(LOCAL_WRITE_ATTEMPTS):
            try:
                Payout.objects.filter(pk=payout.pk, external_id__isnull=True).update(
                    external_id=transfer_id,
                    updated_at=timezone.now(),
                )
                return
            except DatabaseError:
                self.get_logger().warning(
                    "Failed to record transfer id",
                    extra={"payout_id": str(payout.id), "attempt": attempt + 1},
                    exc_info=True,
                )

        from payments.tasks import converge_payout_transfer

        self.get_logger().error(
            "Transfer id not stored, queued convergence",
            extra={"payout_id": str(payout.id), "transfer_id": transfer_id},
        )
        converge_payout_transfer.delay(str(payout.id), transfer_id)
