"""
Payment services.

This module provides:
- calculate_fees: Fee split of a captured total
- HoldService: Opens authorization holds (processor-backed)
- SettlementService: Captures holds and pays the performer (processor-backed)
- PayoutAccountService: Payout account onboarding, readiness, schedule and balance
- CompensationService: Reverses donations whose hold failed or was canceled
- InstantPayoutService: Instant payouts out of a connected account (processor-backed)

Processor-backed services take the adapter they should use:

    from payments.adapters import StripeAdapter
    from payments.services import SettlementService

    result = SettlementService(processor=StripeAdapter()).settle_request(
        request_id=cleanup.id,
        performer_user_id=performer.id,
        caller=request.user,
    )
"""

from payments.services.compensation_service import CompensationService
from payments.services.fee_calculator import FeeBreakdown, calculate_fees
from payments.services.hold_service import HoldCreationResult, HoldService
from payments.services.instant_payout_service import InstantPayoutService
from payments.services.payout_account_service import (
    AccountBalance,
    AccountStatus,
    OnboardingResult,
    PayoutAccountService,
    PayoutMethods,
)
from payments.services.settlement_service import (
    CaptureFailure,
    SettlementResult,
    SettlementService,
)

__all__ = [
    "AccountBalance",
    "AccountStatus",
    "CaptureFailure",
    "CompensationService",
    "FeeBreakdown",
    "HoldCreationResult",
    "HoldService",
    "InstantPayoutService",
    "OnboardingResult",
    "PayoutAccountService",
    "PayoutMethods",
    "SettlementResult",
    "SettlementService",
    "calculate_fees",
]
