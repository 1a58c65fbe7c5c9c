"""
Instant payouts from a performer's connected account.

Once settlement has transferred funds into a performer's connected
account, the performer can pay that balance out to a debit card or
bank account without waiting for the account's payout schedule. The
processor reports the payout's progress with payout.created,
payout.paid and payout.failed events; those are applied here.

Usage:
    from payments.services import InstantPayoutService

    payout = InstantPayoutService(processor=adapter).create_instant_payout(
        caller=request.user,
        user_id=request.user.pk,
        amount_cents=2500,
    )
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone as dt_timezone
from typing import TYPE_CHECKING, Iterable

from django.conf import settings
from django.db import DatabaseError, IntegrityError
from django.utils import timezone

from core.services import BaseService

from payments.adapters import IdempotencyKeyGenerator, PayoutResult, StripeAdapter
from payments.exceptions import AmountTooSmallError, ProcessorError
from payments.models import InstantPayout, PayoutAccount
from payments.services.payout_account_service import (
    PayoutAccountService,
    authorize_account_owner,
)
from payments.state_machines import InstantPayoutStatus

if TYPE_CHECKING:
    from typing import Any


def from_timestamp(value: Any) -> datetime | None:
    """Unix seconds from a processor payload, as an aware datetime."""
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class InstantPayoutService(BaseService):
    """
    Requests instant payouts and mirrors their processor status.

    Status writes are conditioned on the row still being PENDING or
    IN_TRANSIT, so a replayed or late event never moves a payout out of
    a terminal status.
    """

    def __init__(self, processor: StripeAdapter | None = None):
        self.processor = processor or StripeAdapter()

    def create_instant_payout(
        self,
        caller: Any,
        user_id: Any,
        amount_cents: int,
        destination: str | None = None,
    ) -> InstantPayout:
        """
        Pay part of the connected account's balance out immediately.

        Args:
            caller: Authenticated user making the request
            user_id: Owner of the connected account
            amount_cents: Amount in minor units
            destination: External account (card_xxx / ba_xxx); the
                account's default for the currency when omitted

        Raises:
            AmountTooSmallError: Below PAYOUTS_INSTANT_MINIMUM_CENTS
            PermissionDeniedError: Caller is neither the user nor an admin
            PayoutAccountNotFoundError: No payout-enabled account
            ProcessorInsufficientFundsError: Balance does not cover the amount
            ProcessorError: Processor rejected the payout
            ProcessorUnavailableError: Processor unreachable after retries
        """
        logger = self.get_logger()
        minimum = settings.PAYOUTS_INSTANT_MINIMUM_CENTS

        if amount_cents < minimum:
            raise AmountTooSmallError(
                f"Instant payouts must be at least {minimum} minor units",
                details={"amount_cents": amount_cents, "minimum_cents": minimum},
            )
        authorize_account_owner(caller, user_id)
        account = PayoutAccountService.get_payout_ready_account(user_id)

        result = self.processor.create_payout(
            account_id=account.external_account_id,
            amount_cents=amount_cents,
            currency=settings.STRIPE_CURRENCY,
            metadata={"user_id": str(user_id)},
            idempotency_key=IdempotencyKeyGenerator.generate(
                "create_payout", uuid.uuid4()
            ),
            method="instant",
            destination=destination,
        )

        try:
            payout = self.record_payout(account, result)
        except DatabaseError:
            # The payout.created event carries user_id and rebuilds the row.
            logger.error(
                "Instant payout not recorded locally",
                extra={"user_id": str(user_id), "payout_id": result.id},
                exc_info=True,
            )
            raise

        logger.info(
            "Created instant payout",
            extra={
                "user_id": str(user_id),
                "payout_id": result.id,
                "amount_cents": amount_cents,
                "status": result.status,
            },
        )
        return payout

    def refresh(self, payouts: Iterable[InstantPayout]) -> list[InstantPayout]:
        """
        Re-read payouts still in flight from the processor.

        A payout the processor cannot return right now is left as stored.
        """
        refreshed = []
        for payout in payouts:
            if payout.status in InstantPayoutStatus.active():
                try:
                    remote = self.processor.retrieve_payout(
                        payout.account_id, payout.external_id
                    )
                except ProcessorError as e:
                    self.get_logger().warning(
                        "Could not refresh instant payout",
                        extra={
                            "payout_id": payout.external_id,
                            "error_code": e.error_code,
                        },
                    )
                else:
                    if self.apply_status(
                        payout.external_id,
                        remote.status,
                        arrival_date=from_timestamp(remote.arrival_date),
                        failure_code=remote.failure_code or "",
                        failure_message=remote.failure_message or "",
                    ):
                        payout = InstantPayout.objects.get(pk=payout.pk)
            refreshed.append(payout)
        return refreshed

    # =========================================================================
    # Local operations
    # =========================================================================

    @classmethod
    def record_payout(
        cls,
        account: PayoutAccount,
        result: PayoutResult,
    ) -> InstantPayout:
        """Store a processor payout, or return the row an event already wrote."""
        status = (
            result.status
            if result.status in InstantPayoutStatus.values
            else InstantPayoutStatus.PENDING
        )
        try:
            with cls.atomic():
                payout, _ = InstantPayout.objects.get_or_create(
                    external_id=result.id,
                    defaults={
                        "user_id": account.user_id,
                        "account_id": account.external_account_id,
                        "amount_cents": result.amount_cents,
                        "currency": result.currency,
                        "method": result.method,
                        "destination": result.destination or "",
                        "status": status,
                        "arrival_date": from_timestamp(result.arrival_date),
                        "failure_code": result.failure_code or "",
                        "failure_message": result.failure_message or "",
                    },
                )
        except IntegrityError:
            payout = InstantPayout.objects.get(external_id=result.id)
        return payout

    @classmethod
    def apply_status(
        cls,
        external_id: str,
        status: str,
        arrival_date: datetime | None = None,
        failure_code: str = "",
        failure_message: str = "",
    ) -> int:
        """
        Move an in-flight payout to the reported status.

        Returns:
            Rows updated; 0 when the payout is unknown, already terminal,
            or already in that status
        """
        if status not in InstantPayoutStatus.values:
            return 0

        changes: dict[str, Any] = {"status": status, "updated_at": timezone.now()}
        if arrival_date is not None:
            changes["arrival_date"] = arrival_date
        if status == InstantPayoutStatus.FAILED:
            changes["failure_code"] = failure_code
            changes["failure_message"] = failure_message

        updated = (
            InstantPayout.objects.filter(
                external_id=external_id,
                status__in=InstantPayoutStatus.active(),
            )
            .exclude(status=status)
            .update(**changes)
        )
        cls.get_logger().info(
            "Applied instant payout status",
            extra={"payout_id": external_id, "status": status, "updated": updated},
        )
        return updated
