"""
WebhookEvent model: inbox of processor events.

Every verified event is stored once, keyed by the processor's event id.
A redelivered event hits the unique constraint and is acknowledged
without being processed again; a failed one keeps its payload so the
retry task can re-dispatch it.

Usage:
    webhook_event, created = WebhookEvent.objects.get_or_create(
        event_id=event["id"],
        defaults={"event_type": event["type"], "payload": event},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from payments.state_machines import WebhookEventStatus

if TYPE_CHECKING:
    from typing import Any


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    A processor event received on the webhook endpoint.

    Processing Flow:
        1. Signature verified and body parsed by the view
        2. Row inserted (or found) by event_id
        3. Duplicate -> acknowledged, nothing else
        4. New -> process_webhook_event task marks PROCESSING, dispatches
           to the handler registry, then PROCESSED or FAILED

    Fields:
        event_id: Processor event id (evt_xxx), unique
        event_type: Processor event type (e.g. 'transfer.paid')
        payload: Full verified event body
        status: WebhookEventStatus
        processed_at: When processing succeeded
        error_message: Last processing error
        retry_count: Processing attempts so far
    """

    event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Processor event id (evt_xxx)",
    )
    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Processor event type (e.g. 'transfer.paid')",
    )
    payload = models.JSONField(
        help_text="Verified event body",
    )
    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )
    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the event was successfully processed",
    )
    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )
    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(
                fields=["status", "retry_count"],
                name="payments_webhook_status_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        max_retries = getattr(settings, "PAYMENTS_WEBHOOK_MAX_RETRIES", 5)
        return self.status == WebhookEventStatus.FAILED and self.retry_count < max_retries

    # Mutators do not save; the caller saves with update_fields.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    # Payload accessors

    def get_object(self) -> dict[str, Any]:
        """Return payload.data.object, or {} for malformed payloads."""
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}

    def get_object_id(self) -> str | None:
        return self.get_object().get("id")

    def get_object_metadata(self) -> dict[str, Any]:
        metadata = self.get_object().get("metadata")
        return metadata if isinstance(metadata, dict) else {}
