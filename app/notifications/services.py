"""
Notification service layer.

Services:
    NotificationService: Create notifications for users

Design Principles:
    - Expected failures (unknown user, duplicate key) return
      ServiceResult.failure() so producers can log and move on
    - Templates come from NOTIFICATION_TEMPLATES; explicit title/body win
    - Push/e-mail delivery is outside this service; it only records the
      notification a client will fetch

Usage:
    from notifications.models import NotificationKind
    from notifications.services import NotificationService

    result = NotificationService.notify(
        user_id=performer.id,
        kind=NotificationKind.PAYOUT_FAILED,
        payload={"payout_id": str(payout.id)},
    )
    if not result:
        logger.warning("Notification not created: %s", result.error)
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from notifications.models import NOTIFICATION_TEMPLATES, Notification

if TYPE_CHECKING:
    from typing import Any


def format_amount(amount_cents: int, currency: str = "usd") -> str:
    """Format minor units for display, e.g. 4072 -> '$40.72'."""
    amount = (Decimal(amount_cents) / 100).quantize(Decimal("0.01"))
    if currency.lower() == "usd":
        return f"${amount}"
    return f"{amount} {currency.upper()}"


class NotificationService(BaseService):
    """
    Service for notification creation.

    Methods:
        notify: Create a notification for a user id
    """

    @classmethod
    def notify(
        cls,
        user_id,
        kind: str,
        payload: dict[str, Any] | None = None,
        title: str | None = None,
        body: str | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a notification for a user.

        Args:
            user_id: Recipient user id
            kind: NotificationKind value
            payload: Template context and client data
            title: Explicit title (overrides template)
            body: Explicit body (overrides template)
            idempotency_key: Optional key; a second call with the same key
                is reported as DUPLICATE and creates nothing

        Returns:
            ServiceResult with the created Notification

        Error codes:
            USER_NOT_FOUND: No user with user_id
            DUPLICATE: Notification with this idempotency_key exists
        """
        payload = dict(payload or {})
        logger = cls.get_logger()

        recipient = get_user_model().objects.filter(pk=user_id).first()
        if recipient is None:
            logger.warning(
                "Notification recipient not found",
                extra={"user_id": str(user_id), "kind": kind},
            )
            return ServiceResult.failure(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
            )

        if idempotency_key and Notification.objects.filter(
            idempotency_key=idempotency_key
        ).exists():
            logger.info(
                "Duplicate notification prevented",
                extra={"idempotency_key": idempotency_key},
            )
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        context = dict(payload)
        if "amount_cents" in context:
            context.setdefault(
                "amount_display",
                format_amount(int(context["amount_cents"]), context.get("currency", "usd")),
            )
        title_template, body_template = NOTIFICATION_TEMPLATES.get(kind, ("", ""))
        rendered_title = title or title_template.format(**context) or kind
        rendered_body = body or body_template.format(**context)

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    kind=kind,
                    title=rendered_title,
                    body=rendered_body,
                    payload=payload,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Lost a race with a concurrent call using the same key
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        logger.info(
            "Notification created",
            extra={
                "notification_id": notification.id,
                "user_id": str(user_id),
                "kind": kind,
            },
        )
        return ServiceResult.success(notification)
