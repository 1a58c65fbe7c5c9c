"""
Payment-specific exceptions.

Each class is one variant of the payments error taxonomy; callers match on
the class (or on error_code, its string tag) and never on message text.

Exception Hierarchy:
    ValidationError (core)
    └── AmountTooSmallError - Below the minimum charge
    NotFoundError (core)
    ├── RequestNotFoundError - Unknown cleanup request
    ├── PayoutAccountNotFoundError - Missing or not payout-enabled account
    └── HoldNotFoundError - Unknown hold
    PermissionDeniedError (core) - Ownership/role violations (FORBIDDEN)
    ConflictError (core)
    ├── SettlementInProgressError - Another settlement holds the request lock
    └── LockAcquisitionError - Distributed lock timeout
    PaymentError
    ├── InsufficientSettlementAmountError - Fees exceed the captured total
    └── SignatureVerificationFailedError - Webhook rejected outright
    ExternalServiceError (core)
    └── ProcessorError - Processor rejected the operation (not retried)
        ├── ProcessorCardDeclinedError
        ├── ProcessorInsufficientFundsError
        ├── ProcessorInvalidAccountError
        └── ProcessorUnavailableError - Transient failure, retries exhausted

Usage:
    from payments.exceptions import ProcessorError, ProcessorUnavailableError

    try:
        processor.capture_hold(hold.external_id, idempotency_key=key)
    except ProcessorUnavailableError:
        # Retries exhausted; local state untouched
        raise
    except ProcessorError as e:
        failures.append({"hold_id": str(hold.id), "error_code": e.error_code})
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for payment domain failures that are not lookups."""

    default_error_code: str = "PAYMENT_ERROR"


class AmountTooSmallError(ValidationError):
    """
    Amount is below the minimum charge the processor accepts.

    Example:
        raise AmountTooSmallError(
            "Amount must be at least 50 minor units",
            details={"amount_cents": 20, "minimum_cents": 50},
        )
    """

    default_error_code: str = "AMOUNT_TOO_SMALL"


class RequestNotFoundError(NotFoundError):
    """Cleanup request referenced by a payment does not exist."""

    default_error_code: str = "REQUEST_NOT_FOUND"


class PayoutAccountNotFoundError(NotFoundError):
    """
    Performer has no payout account, or it cannot receive payouts yet.

    Both cases block settlement the same way: there is nowhere to send
    the money.
    """

    default_error_code: str = "PAYOUT_ACCOUNT_NOT_FOUND"


class HoldNotFoundError(NotFoundError):
    """Hold lookup failed."""

    default_error_code: str = "HOLD_NOT_FOUND"


class InsufficientSettlementAmountError(PaymentError):
    """
    Fees exceed the captured total, so the net payout would be negative.

    No Payout is created.
    """

    default_error_code: str = "INSUFFICIENT_SETTLEMENT_AMOUNT"


class SignatureVerificationFailedError(PaymentError):
    """Webhook body failed signature verification or could not be parsed."""

    default_error_code: str = "SIGNATURE_VERIFICATION_FAILED"


# =============================================================================
# Concurrency Exceptions
# =============================================================================


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Example:
        raise LockAcquisitionError(
            "Lock 'lock:settlement:123' is already held",
            details={"key": "lock:settlement:123"},
        )
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


class SettlementInProgressError(ConflictError):
    """Another worker is settling the same request right now."""

    default_error_code: str = "SETTLEMENT_IN_PROGRESS"


# =============================================================================
# Processor Exceptions
# =============================================================================


class ProcessorError(ExternalServiceError):
    """
    The payment processor rejected an operation.

    Surfaced verbatim to the caller and never retried automatically.

    Attributes:
        processor_code: Processor's own error code (e.g. 'card_declined')
        decline_code: Card decline reason, if any
        is_retryable: False for rejections, True for ProcessorUnavailableError
    """

    default_error_code: str = "PROCESSOR_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        processor_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if processor_code:
            details["processor_code"] = processor_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.processor_code = processor_code
        self.decline_code = decline_code


class ProcessorCardDeclinedError(ProcessorError):
    """Card was declined by the issuer; decline_code has the reason."""

    default_error_code: str = "CARD_DECLINED"


class ProcessorInsufficientFundsError(ProcessorError):
    """Payment method or platform balance has insufficient funds."""

    default_error_code: str = "INSUFFICIENT_FUNDS"


class ProcessorInvalidAccountError(ProcessorError):
    """Destination connected account is missing, restricted or disabled."""

    default_error_code: str = "INVALID_PAYOUT_ACCOUNT"


class ProcessorUnavailableError(ProcessorError):
    """
    Transient processor failure (network, timeout, 5xx, rate limit).

    Raised by the adapter only after its retry policy is exhausted.
    """

    default_error_code: str = "PROCESSOR_UNAVAILABLE"
    is_retryable: bool = True
