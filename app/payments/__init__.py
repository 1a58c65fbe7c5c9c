"""
Payments app - funds custody and settlement for cleanup requests.

This app handles:
- Authorization holds opened by donors and request creators
- Donation compensation when a hold fails or is canceled
- Capture, fee split and payout to the performer
- Stripe webhook reconciliation (holds, transfers, accounts)
- Payout account onboarding

Related apps:
    - cleanups: request lookup, settlement marking, contributed totals
    - notifications: payout paid/failed notifications

Usage:
    from payments.adapters import StripeAdapter
    from payments.services import HoldService, SettlementService

    processor = StripeAdapter()
    HoldService(processor=processor).create_hold(...)
    SettlementService(processor=processor).settle_request(...)
"""
