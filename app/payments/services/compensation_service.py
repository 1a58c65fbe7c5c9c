"""
Compensation for donation holds that never turned into money.

When a donation's hold ends failed or canceled, the Donation row that was
written optimistically at hold creation is deleted and its amount is taken
back off the request's contributed total (clamped at zero).

A failure here is a ledger discrepancy: the request shows money it will
never receive. Callers must log it loudly and queue retry_compensation;
compensate() itself reports failure through ServiceResult instead of
raising so that webhook processing can continue.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import DatabaseError

from cleanups.services import CleanupRequestService
from core.services import BaseService, ServiceResult

from payments.models import Donation, Hold

ZERO = Decimal("0.00")


class CompensationService(BaseService):
    """
    Reverse the local effects of a failed donation hold.

    Idempotent: once the Donation is gone, compensating again is a no-op
    returning 0.00.
    """

    @classmethod
    def compensate(cls, hold: Hold) -> ServiceResult[Decimal]:
        """
        Delete the hold's Donation and decrement the contributed total.

        Returns:
            ServiceResult with the amount taken off the request, or a
            failure carrying the database error
        """
        logger = cls.get_logger()

        try:
            with cls.atomic():
                donation = (
                    Donation.objects.select_for_update().filter(hold_id=hold.id).first()
                )
                if donation is None:
                    logger.debug(
                        "No donation to compensate",
                        extra={"hold_id": str(hold.id)},
                    )
                    return ServiceResult.success(ZERO)

                amount = donation.amount
                request_id = donation.request_id
                donation.delete()
                CleanupRequestService.decrement_contributed(request_id, amount)
        except DatabaseError as e:
            return ServiceResult.from_exception(e, error_code="COMPENSATION_FAILED")

        logger.info(
            "Compensated donation hold",
            extra={
                "hold_id": str(hold.id),
                "request_id": str(request_id),
                "amount": str(amount),
            },
        )
        return ServiceResult.success(amount)
