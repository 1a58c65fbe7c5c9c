"""
Payment domain models.

- Hold: Local mirror of a manual-capture authorization
- Donation: Business record of a contribution (compensated on hold failure)
- Payout: Transfer of settled funds to a performer
- PayoutAccount: Performer's connected payout account and onboarding flags
- InstantPayout: Payout from a connected account to its bank or card
- WebhookEvent: Inbox of processor events for idempotent processing
"""

from payments.models.donation import Donation
from payments.models.hold import Hold
from payments.models.instant_payout import InstantPayout
from payments.models.payout import Payout
from payments.models.payout_account import PayoutAccount
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Donation",
    "Hold",
    "InstantPayout",
    "Payout",
    "PayoutAccount",
    "WebhookEvent",
]
