"""
State machine enums and helpers for payment models.
"""

from payments.state_machines.states import (
    HoldKind,
    HoldStatus,
    InstantPayoutStatus,
    PayoutStatus,
    WebhookEventStatus,
)

__all__ = [
    "HoldKind",
    "HoldStatus",
    "InstantPayoutStatus",
    "PayoutStatus",
    "WebhookEventStatus",
]
