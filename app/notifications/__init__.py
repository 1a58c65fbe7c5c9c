"""
Notifications app - the notification collaborator of the payments engine.

Payments calls NotificationService.notify(user_id, kind, payload) when a
payout completes or fails. Notifications are fire-and-forget from the
caller's point of view: a failure here is logged and never blocks
settlement or webhook processing.

Usage:
    from notifications.services import NotificationService

    NotificationService.notify(
        user_id=payout.performer_id,
        kind=NotificationKind.PAYOUT_PAID,
        payload={"payout_id": str(payout.id), "amount_cents": 4072},
        idempotency_key=f"payout_paid:{payout.id}",
    )
"""
