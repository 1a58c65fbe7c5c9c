"""
Webhook endpoint view for Stripe.

The view:
1. Verifies the webhook signature over the raw body
2. Stores the event in the WebhookEvent inbox (idempotent by event id)
3. Queues the event for async processing
4. Answers 200 immediately

Once the signature and body check out the answer is always 200, whatever
happens to the event later, so Stripe does not redeliver indefinitely.
Per-event failures are recorded on the inbox row and retried by
retry_failed_webhooks.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("payments/webhooks/", stripe_webhook, name="stripe-webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import SignatureVerificationFailedError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus


logger = logging.getLogger(__name__)


def _bad_request(message: str, error_code: str) -> JsonResponse:
    return JsonResponse({"error": message, "error_code": error_code}, status=400)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and queue Stripe webhook events.

    Returns:
        JsonResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Missing/invalid signature or unparseable event

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return _bad_request("Missing signature", "SIGNATURE_VERIFICATION_FAILED")

    try:
        event_data = StripeAdapter().verify_webhook_signature(payload, signature)
    except SignatureVerificationFailedError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": e.message},
        )
        return _bad_request(e.message, e.error_code)

    event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return _bad_request("Invalid event", "INVALID_WEBHOOK_PAYLOAD")

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={"event_id": event_id, "event_type": event_type},
    )

    webhook_event, created = WebhookEvent.objects.get_or_create(
        event_id=event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.status in (
        WebhookEventStatus.PROCESSED,
        WebhookEventStatus.PROCESSING,
    ):
        logger.info(
            "Duplicate webhook, not reprocessing",
            extra={"event_id": event_id, "status": webhook_event.status},
        )
        return JsonResponse({"received": True, "duplicate": True})

    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
        logger.info(
            "Webhook queued for processing",
            extra={"event_id": event_id, "webhook_event_id": str(webhook_event.id)},
        )
    except Exception:
        # The inbox row exists; retry_failed_webhooks picks it up.
        logger.error(
            "Failed to queue webhook",
            extra={"event_id": event_id},
            exc_info=True,
        )

    return JsonResponse({"received": True})
