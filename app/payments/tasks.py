"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing webhook events from the inbox
- Retrying failed webhook events
- Resetting webhook events stuck in processing
- Converging local state after money moved at the processor
- Retrying donation compensation

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event_id)

    # Retry failed webhooks (typically via celery beat)
    from payments.tasks import retry_failed_webhooks
    retry_failed_webhooks.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from payments.adapters import backoff_delay
from payments.models import Hold, Payout, WebhookEvent
from payments.models.hold import OPEN_HOLD_STATUSES
from payments.state_machines import HoldStatus, WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_WEBHOOK_RETRIES = getattr(settings, "PAYMENTS_WEBHOOK_MAX_RETRIES", 5)
STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RETRY_BATCH_SIZE = 100

WEBHOOK_UPDATE_FIELDS = [
    "status",
    "processed_at",
    "error_message",
    "retry_count",
    "updated_at",
]


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored webhook event.

    This task:
    1. Loads the WebhookEvent by ID
    2. Skips events already processed (idempotency)
    3. Marks as processing
    4. Dispatches to the registered handler
    5. Marks as processed or failed

    A handler that returns a failure leaves the event FAILED for
    retry_failed_webhooks; an unexpected exception is re-raised so Celery
    retries the task with backoff.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.status == WebhookEventStatus.PROCESSED:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "event_id": webhook_event.event_id,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    webhook_event.mark_processing()
    webhook_event.save(update_fields=WEBHOOK_UPDATE_FIELDS)

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "event_id": webhook_event.event_id,
            "event_type": webhook_event.event_type,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save(update_fields=WEBHOOK_UPDATE_FIELDS)
        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "event_id": webhook_event.event_id,
                "error": error_msg,
            },
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save(update_fields=WEBHOOK_UPDATE_FIELDS)
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "event_id": webhook_event.event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
            "error_code": result.error_code,
        }

    webhook_event.mark_processed()
    webhook_event.save(update_fields=WEBHOOK_UPDATE_FIELDS)
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "event_id": webhook_event.event_id,
        },
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "event_id": webhook_event.event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Finds failed webhooks that haven't exceeded max retries and
    re-queues them for processing, oldest first.

    Returns:
        Dict with count of webhooks queued for retry
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in failed_webhooks:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception as e:
            logger.error(
                f"Failed to queue webhook for retry: {e}",
                extra={"webhook_event_id": str(webhook.id)},
            )
            continue
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "event_id": webhook.event_id,
                "retry_count": webhook.retry_count,
            },
        )

    if queued_count:
        logger.info(
            f"Queued {queued_count} failed webhooks for retry",
            extra={"queued_count": queued_count},
        )
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Webhooks left in PROCESSING for too long (worker crashed mid-way) are
    marked FAILED so retry_failed_webhooks picks them up.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save(update_fields=WEBHOOK_UPDATE_FIELDS)
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "event_id": webhook.event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    return {"reset_count": reset_count}


# =============================================================================
# Convergence Tasks
# =============================================================================
# Money has already moved at the processor when these run. They retry
# until the local write lands.


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=None,
    acks_late=True,
)
def converge_hold_capture(self, hold_id: str) -> dict:
    """
    Record SUCCEEDED for a hold the processor already captured.

    Args:
        hold_id: UUID of the captured Hold
    """
    from payments.services import HoldService

    try:
        hold = Hold.objects.get(pk=hold_id)
    except Hold.DoesNotExist:
        logger.error("Hold not found for capture convergence", extra={"hold_id": hold_id})
        return {"status": "not_found", "hold_id": hold_id}

    if hold.status == HoldStatus.SUCCEEDED:
        return {"status": "already_converged", "hold_id": hold_id}

    updated = HoldService.advance_status(
        hold.external_id, OPEN_HOLD_STATUSES, HoldStatus.SUCCEEDED
    )
    if not updated:
        logger.critical(
            "Captured hold is in a terminal status locally",
            extra={
                "hold_id": hold_id,
                "external_id": hold.external_id,
                "status": hold.status,
            },
        )
        return {"status": "conflict", "hold_id": hold_id}

    logger.info("Converged hold capture", extra={"hold_id": hold_id})
    return {"status": "converged", "hold_id": hold_id}


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_backoff_max=600,
    max_retries=None,
    acks_late=True,
)
def converge_payout_transfer(self, payout_id: str, transfer_id: str) -> dict:
    """
    Store a transfer id the processor accepted but we failed to record.

    Args:
        payout_id: UUID of the Payout
        transfer_id: Processor transfer id (tr_xxx)
    """
    updated = Payout.objects.filter(pk=payout_id, external_id__isnull=True).update(
        external_id=transfer_id,
        updated_at=timezone.now(),
    )
    if updated:
        logger.info(
            "Converged payout transfer id",
            extra={"payout_id": payout_id, "transfer_id": transfer_id},
        )
        return {"status": "converged", "payout_id": payout_id}

    current = Payout.objects.filter(pk=payout_id).values_list("external_id", flat=True).first()
    if current != transfer_id:
        logger.critical(
            "Payout transfer id mismatch",
            extra={
                "payout_id": payout_id,
                "transfer_id": transfer_id,
                "stored_transfer_id": current,
            },
        )
        return {"status": "conflict", "payout_id": payout_id}
    return {"status": "already_converged", "payout_id": payout_id}


@shared_task(bind=True, acks_late=True, max_retries=None)
def retry_compensation(self, hold_id: str) -> dict:
    """
    Re-run donation compensation for a failed or canceled hold.

    Retries with backoff and no ceiling; a compensation left undone is a
    ledger discrepancy.

    Args:
        hold_id: UUID of the failed/canceled Hold
    """
    from payments.services import CompensationService

    try:
        hold = Hold.objects.get(pk=hold_id)
    except Hold.DoesNotExist:
        logger.error("Hold not found for compensation", extra={"hold_id": hold_id})
        return {"status": "not_found", "hold_id": hold_id}

    result = CompensationService.compensate(hold)
    if not result.success:
        logger.critical(
            "Compensation retry failed",
            extra={
                "hold_id": hold_id,
                "error": result.error,
                "attempt": self.request.retries + 1,
            },
        )
        raise self.retry(
            countdown=backoff_delay(self.request.retries, base=5.0, max_delay=600.0),
        )

    logger.info(
        "Compensation retry succeeded",
        extra={"hold_id": hold_id, "amount": str(result.data)},
    )
    return {"status": "compensated", "hold_id": hold_id, "amount": str(result.data)}
