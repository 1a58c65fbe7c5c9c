"""
Notification models.

Design Decisions:
    - Notification inherits from BaseModel (timestamps, ordering)
    - Title and body are rendered once at creation and never re-rendered
    - idempotency_key is unique so replayed webhook events cannot notify
      a performer twice about the same payout
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.models import BaseModel


class NotificationKind(models.TextChoices):
    """Notification kinds produced by the payments engine."""

    PAYOUT_PAID = "payout_paid", "Payout Paid"
    PAYOUT_FAILED = "payout_failed", "Payout Failed"


# Title/body templates per kind, rendered with str.format(**payload)
NOTIFICATION_TEMPLATES: dict[str, tuple[str, str]] = {
    NotificationKind.PAYOUT_PAID: (
        "Payout completed",
        "Your payout of {amount_display} has been sent to your account.",
    ),
    NotificationKind.PAYOUT_FAILED: (
        "Payout failed",
        "We could not complete your payout. Please check your payout account.",
    ),
}


class Notification(BaseModel):
    """
    Individual notification record for a user.

    Fields:
        recipient: User receiving the notification
        kind: NotificationKind value
        title: Rendered title
        body: Rendered body
        payload: JSON context passed by the producer (ids, amounts)
        idempotency_key: Optional producer-supplied de-duplication key
        read_at: When the recipient read it (null while unread)
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        help_text="User receiving this notification",
    )
    kind = models.CharField(
        max_length=50,
        choices=NotificationKind.choices,
        db_index=True,
        help_text="Kind of notification",
    )
    title = models.CharField(
        max_length=255,
        help_text="Rendered notification title",
    )
    body = models.TextField(
        blank=True,
        default="",
        help_text="Rendered notification body",
    )
    payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Producer context (ids, amounts)",
    )
    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="De-duplication key supplied by the producer",
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the recipient read this notification",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "-created_at"],
                name="notification_recipient_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Notification({self.kind}) for {self.recipient_id}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
