"""
Payment adapters for external services.

All processor calls made by the payments app go through an adapter
instance so that timeouts, retries, idempotency and error translation
are applied consistently.

Usage:
    from payments.adapters import IdempotencyKeyGenerator, StripeAdapter

    adapter = StripeAdapter()
    result = adapter.capture_hold(
        hold.external_id,
        idempotency_key=IdempotencyKeyGenerator.generate("capture_hold", hold.id),
    )
"""

from payments.adapters.stripe_adapter import (
    AccountResult,
    BalanceAmount,
    BalanceResult,
    ExternalAccountResult,
    IdempotencyKeyGenerator,
    PaymentIntentResult,
    PayoutResult,
    RetryPolicy,
    StripeAdapter,
    TransferResult,
    backoff_delay,
)

__all__ = [
    "AccountResult",
    "BalanceAmount",
    "BalanceResult",
    "ExternalAccountResult",
    "IdempotencyKeyGenerator",
    "PaymentIntentResult",
    "PayoutResult",
    "RetryPolicy",
    "StripeAdapter",
    "TransferResult",
    "backoff_delay",
]
