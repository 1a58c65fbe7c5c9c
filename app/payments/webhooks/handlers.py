"""
Webhook event handlers for Stripe events.

This module provides a handler registry and the handlers that reconcile
local Hold, Payout, InstantPayout and PayoutAccount state with processor
events.

Events may arrive duplicated, out of order, or before the local row they
refer to exists. Every status change is a compare-and-set conditioned on
the current status and keyed by the processor id, so replaying an event
is a no-op, and a missing row is created from the event payload where the
payload carries enough to do so.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event, processor) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from cleanups.models import CleanupRequest
from core.services import ServiceResult
from notifications.models import NotificationKind
from notifications.services import NotificationService

from payments.adapters import IdempotencyKeyGenerator, PayoutResult, StripeAdapter
from payments.exceptions import ProcessorError
from payments.models import Hold, InstantPayout, Payout, PayoutAccount, WebhookEvent
from payments.models.hold import OPEN_HOLD_STATUSES
from payments.services import (
    CompensationService,
    HoldService,
    InstantPayoutService,
    PayoutAccountService,
)
from payments.services.instant_payout_service import from_timestamp
from payments.state_machines import (
    HoldKind,
    HoldStatus,
    InstantPayoutStatus,
    PayoutStatus,
)

if TYPE_CHECKING:
    from typing import Any

    Handler = Callable[[WebhookEvent, StripeAdapter | None], ServiceResult]


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator registering a handler for one or more event types.

    Usage:
        @register_handler("payment_intent.succeeded")
        def handle_succeeded(webhook_event, processor) -> ServiceResult:
            ...
    """

    def decorator(func: Handler) -> Handler:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unknown event types are acknowledged with a successful empty result.

    Args:
        webhook_event: The stored event
        processor: Adapter for handlers that call the processor (auto-capture);
            built from settings when omitted
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_id": webhook_event.event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_id": webhook_event.event_id},
    )
    return handler(webhook_event, processor)


def _missing_object_id(webhook_event: WebhookEvent) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: could not extract object id",
        extra={"event_id": webhook_event.event_id},
    )
    return ServiceResult.failure(
        "Could not extract object id from webhook",
        error_code="INVALID_WEBHOOK_PAYLOAD",
    )


def _parse_uuid(value: Any) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _user_exists(user_id: Any) -> bool:
    if user_id in (None, ""):
        return False
    try:
        return get_user_model().objects.filter(pk=user_id).exists()
    except (TypeError, ValueError, DjangoValidationError):
        return False


def _parse_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# =============================================================================
# Hold Handlers
# =============================================================================

HOLD_ADVANCE_ATTEMPTS = 3


def _advance_hold(
    external_id: str,
    allowed_from: list[str] | frozenset[str],
    target: str,
) -> tuple[Hold | None, bool]:
    """
    Compare-and-set a hold's status and read it back.

    A row read in an allowed source status after an update that changed
    nothing was committed between the two queries, so the update is
    applied again.

    Returns:
        (hold or None, whether this call moved it to target)
    """
    hold = None
    for _ in range(HOLD_ADVANCE_ATTEMPTS):
        moved = HoldService.advance_status(external_id, allowed_from, target)
        hold = Hold.objects.filter(external_id=external_id).first()
        if moved or hold is None or hold.status not in allowed_from:
            return hold, bool(moved)
    return hold, False


def _hold_not_settled(webhook_event: WebhookEvent, hold: Hold) -> ServiceResult:
    # The inbox retry re-dispatches the event.
    logger.warning(
        "Hold still open after status update, retrying event later",
        extra={
            "event_id": webhook_event.event_id,
            "hold_id": str(hold.id),
            "status": hold.status,
        },
    )
    return ServiceResult.failure(
        f"Hold {hold.external_id} did not leave {hold.status}",
        error_code="HOLD_STATUS_CONFLICT",
    )


def _hold_from_event(webhook_event: WebhookEvent, status: str) -> Hold | None:
    """
    Create a Hold from a payment_intent payload that beat local creation.

    Returns None when the metadata does not identify a known request and
    payer.
    """
    intent = webhook_event.get_object()
    metadata = webhook_event.get_object_metadata()

    request_id = _parse_uuid(metadata.get("request_id"))
    amount_cents = _parse_int(intent.get("amount"))
    payer_id = metadata.get("user_id")
    kind = metadata.get("type", HoldKind.DONATION)

    if (
        request_id is None
        or amount_cents <= 0
        or kind not in HoldKind.values
        or not CleanupRequest.objects.filter(id=request_id).exists()
        or not _user_exists(payer_id)
    ):
        logger.warning(
            "Cannot build hold from event metadata",
            extra={"event_id": webhook_event.event_id, "metadata": metadata},
        )
        return None

    hold, created = Hold.objects.get_or_create(
        external_id=intent["id"],
        defaults={
            "payer_id": payer_id,
            "request_id": request_id,
            "amount_cents": amount_cents,
            "currency": intent.get("currency") or "usd",
            "kind": kind,
            "status": status,
            "metadata": metadata,
        },
    )
    if created:
        logger.info(
            "Created hold from event",
            extra={
                "event_id": webhook_event.event_id,
                "hold_id": str(hold.id),
                "status": status,
            },
        )
    return hold


@register_handler(
    "payment_intent.amount_capturable_updated",
    "payment_intent.requires_capture",
)
def handle_requires_capture(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """
    Payer confirmed; funds are capturable.

    Moves the hold CREATED -> REQUIRES_CAPTURE, then captures immediately
    so the authorization cannot expire. A failed capture leaves the hold
    in REQUIRES_CAPTURE for settlement to retry.
    """
    external_id = webhook_event.get_object_id()
    if not external_id:
        return _missing_object_id(webhook_event)

    hold, _ = _advance_hold(
        external_id, [HoldStatus.CREATED], HoldStatus.REQUIRES_CAPTURE
    )
    if hold is None:
        # Local creation has not committed yet; the retry task re-dispatches.
        logger.info(
            "Hold not found for capturable event",
            extra={"event_id": webhook_event.event_id, "external_id": external_id},
        )
        return ServiceResult.failure(
            f"Hold not found for {external_id}",
            error_code="HOLD_NOT_FOUND",
        )

    if hold.status == HoldStatus.CREATED:
        return _hold_not_settled(webhook_event, hold)
    if hold.status != HoldStatus.REQUIRES_CAPTURE:
        return ServiceResult.success(hold)

    processor = processor or StripeAdapter()
    try:
        processor.capture_hold(
            external_id,
            idempotency_key=IdempotencyKeyGenerator.generate("capture_hold", hold.id),
        )
    except ProcessorError as e:
        logger.warning(
            "Auto-capture failed, leaving hold for settlement",
            extra={
                "event_id": webhook_event.event_id,
                "hold_id": str(hold.id),
                "error_code": e.error_code,
            },
        )
        return ServiceResult.success(hold)

    HoldService.record_capture(hold)
    logger.info(
        "Auto-captured hold",
        extra={"event_id": webhook_event.event_id, "hold_id": str(hold.id)},
    )
    return ServiceResult.success(Hold.objects.get(pk=hold.pk))


@register_handler("payment_intent.succeeded")
def handle_hold_succeeded(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Funds captured. Creates the hold from the payload if it is not known yet."""
    external_id = webhook_event.get_object_id()
    if not external_id:
        return _missing_object_id(webhook_event)

    hold, moved = _advance_hold(external_id, OPEN_HOLD_STATUSES, HoldStatus.SUCCEEDED)
    if moved:
        logger.info(
            "Hold succeeded",
            extra={"event_id": webhook_event.event_id, "external_id": external_id},
        )
        return ServiceResult.success(hold)

    if hold is None:
        hold = _hold_from_event(webhook_event, HoldStatus.SUCCEEDED)
        if hold is None:
            return ServiceResult.failure(
                f"Unknown hold {external_id} with unusable metadata",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )
        if hold.status in OPEN_HOLD_STATUSES:
            # Local creation committed first.
            hold, _ = _advance_hold(
                external_id, OPEN_HOLD_STATUSES, HoldStatus.SUCCEEDED
            )

    if hold.status in OPEN_HOLD_STATUSES:
        return _hold_not_settled(webhook_event, hold)
    # Succeeded (possibly a replay) or another terminal status.
    return ServiceResult.success(hold)


def _handle_hold_terminal(webhook_event: WebhookEvent, target: str) -> ServiceResult:
    external_id = webhook_event.get_object_id()
    if not external_id:
        return _missing_object_id(webhook_event)

    hold, moved = _advance_hold(external_id, OPEN_HOLD_STATUSES, target)

    if hold is None:
        # Record the outcome so a late local creation skips the donation.
        hold = _hold_from_event(webhook_event, target)
        if hold is None or hold.status not in OPEN_HOLD_STATUSES:
            return ServiceResult.success(hold)
        # Local creation committed first; its donation needs compensating.
        hold, moved = _advance_hold(external_id, OPEN_HOLD_STATUSES, target)

    if hold.status in OPEN_HOLD_STATUSES:
        return _hold_not_settled(webhook_event, hold)

    if hold.status not in (HoldStatus.FAILED, HoldStatus.CANCELED):
        logger.info(
            "Ignoring terminal event for hold in another final state",
            extra={
                "event_id": webhook_event.event_id,
                "hold_id": str(hold.id),
                "status": hold.status,
            },
        )
        return ServiceResult.success(hold)

    if moved:
        logger.info(
            f"Hold {target}",
            extra={"event_id": webhook_event.event_id, "hold_id": str(hold.id)},
        )

    if hold.kind == HoldKind.DONATION:
        compensation = CompensationService.compensate(hold)
        if not compensation:
            from payments.tasks import retry_compensation

            logger.critical(
                "Donation compensation failed, ledger out of balance",
                extra={
                    "event_id": webhook_event.event_id,
                    "hold_id": str(hold.id),
                    "request_id": str(hold.request_id),
                    "error": compensation.error,
                },
            )
            retry_compensation.delay(str(hold.id))

    return ServiceResult.success(hold)


@register_handler("payment_intent.payment_failed")
def handle_hold_failed(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Authorization failed; compensates the linked donation."""
    return _handle_hold_terminal(webhook_event, HoldStatus.FAILED)


@register_handler("payment_intent.canceled")
def handle_hold_canceled(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Authorization canceled or expired; compensates the linked donation."""
    return _handle_hold_terminal(webhook_event, HoldStatus.CANCELED)


# =============================================================================
# Transfer Handlers (Payout lifecycle)
# =============================================================================


def _payout_from_transfer(
    webhook_event: WebhookEvent,
    status: str,
) -> Payout | None:
    """
    Create a Payout from a transfer payload that beat the local row.

    Fees come from the transfer metadata written at settlement.
    """
    transfer = webhook_event.get_object()
    metadata = webhook_event.get_object_metadata()

    request_id = _parse_uuid(metadata.get("request_id"))
    performer_id = metadata.get("performer_user_id")
    if (
        request_id is None
        or not CleanupRequest.objects.filter(id=request_id).exists()
        or not _user_exists(performer_id)
    ):
        logger.warning(
            "Cannot build payout from transfer metadata",
            extra={"event_id": webhook_event.event_id, "metadata": metadata},
        )
        return None

    source_hold_id = _parse_uuid(metadata.get("source_hold_id"))
    if source_hold_id and not Hold.objects.filter(id=source_hold_id).exists():
        source_hold_id = None

    now = timezone.now()
    try:
        with transaction.atomic():
            payout = Payout.objects.create(
                external_id=transfer["id"],
                request_id=request_id,
                performer_id=performer_id,
                source_hold_id=source_hold_id,
                net_amount_cents=_parse_int(transfer.get("amount")),
                platform_fee_cents=_parse_int(metadata.get("platform_fee_cents")),
                processor_fee_cents=_parse_int(metadata.get("processor_fee_cents")),
                currency=transfer.get("currency") or "usd",
                status=status,
                paid_at=now if status == PayoutStatus.PAID else None,
                failure_reason=(
                    _failure_reason(transfer) if status == PayoutStatus.FAILED else ""
                ),
            )
    except IntegrityError:
        # A payout for this request or transfer appeared concurrently.
        return (
            Payout.objects.filter(external_id=transfer["id"]).first()
            or Payout.objects.filter(request_id=request_id).first()
        )

    logger.info(
        "Created payout from transfer event",
        extra={
            "event_id": webhook_event.event_id,
            "payout_id": str(payout.id),
            "status": status,
        },
    )
    return payout


def _failure_reason(transfer: dict[str, Any]) -> str:
    return transfer.get("failure_message") or "Transfer failed"


def _find_payout(webhook_event: WebhookEvent, transfer_id: str) -> Payout | None:
    """
    Find the payout for a transfer: by transfer id, else the request's
    payout still waiting for its transfer id (which is then attached).
    """
    payout = Payout.objects.filter(external_id=transfer_id).first()
    if payout is not None:
        return payout

    request_id = _parse_uuid(webhook_event.get_object_metadata().get("request_id"))
    if request_id is None:
        return None

    attached = Payout.objects.filter(
        request_id=request_id, external_id__isnull=True
    ).update(external_id=transfer_id, updated_at=timezone.now())
    if attached:
        logger.info(
            "Attached transfer id to pending payout",
            extra={"event_id": webhook_event.event_id, "transfer_id": transfer_id},
        )
    return Payout.objects.filter(external_id=transfer_id).first()


def _notify(user_id: Any, kind: str, payload: dict[str, Any]) -> None:
    """Fire-and-forget; a failed notification never fails the event."""
    try:
        result = NotificationService.notify(
            user_id=user_id,
            kind=kind,
            payload=payload,
            idempotency_key=f"{kind}:{payload['payout_id']}",
        )
    except Exception:
        logger.exception(
            "Payout notification raised",
            extra={"payout_id": payload["payout_id"], "kind": kind},
        )
        return

    if not result and result.error_code != "DUPLICATE":
        logger.warning(
            "Payout notification not created",
            extra={
                "payout_id": payload["payout_id"],
                "kind": kind,
                "error_code": result.error_code,
            },
        )


def _notify_performer(payout: Payout, kind: str) -> None:
    _notify(
        payout.performer_id,
        kind,
        {
            "payout_id": str(payout.id),
            "request_id": str(payout.request_id),
            "amount_cents": payout.net_amount_cents,
            "currency": payout.currency,
        },
    )


def _handle_transfer(webhook_event: WebhookEvent, target: str) -> ServiceResult:
    transfer_id = webhook_event.get_object_id()
    if not transfer_id:
        return _missing_object_id(webhook_event)

    payout = _find_payout(webhook_event, transfer_id)

    if payout is None:
        payout = _payout_from_transfer(webhook_event, target)
        if payout is None:
            return ServiceResult.failure(
                f"Unknown transfer {transfer_id} with unusable metadata",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )
        if payout.external_id != transfer_id:
            logger.warning(
                "Request already has a payout for another transfer",
                extra={"event_id": webhook_event.event_id, "transfer_id": transfer_id},
            )
            return ServiceResult.success(payout)
        transitioned = payout.status == target and target != PayoutStatus.PENDING
    elif target == PayoutStatus.PAID:
        transitioned = bool(
            Payout.objects.filter(pk=payout.pk, status=PayoutStatus.PENDING).update(
                status=PayoutStatus.PAID,
                paid_at=timezone.now(),
                updated_at=timezone.now(),
            )
        )
    elif target == PayoutStatus.FAILED:
        transitioned = bool(
            Payout.objects.filter(pk=payout.pk, status=PayoutStatus.PENDING).update(
                status=PayoutStatus.FAILED,
                failure_reason=_failure_reason(webhook_event.get_object()),
                updated_at=timezone.now(),
            )
        )
    else:
        transitioned = False

    payout = Payout.objects.get(pk=payout.pk)

    if transitioned:
        logger.info(
            f"Payout {target}",
            extra={"event_id": webhook_event.event_id, "payout_id": str(payout.id)},
        )
        _notify_performer(
            payout,
            NotificationKind.PAYOUT_PAID
            if target == PayoutStatus.PAID
            else NotificationKind.PAYOUT_FAILED,
        )

    return ServiceResult.success(payout)


@register_handler("transfer.created")
def handle_transfer_created(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Transfer accepted; ensures a PENDING Payout exists for it."""
    return _handle_transfer(webhook_event, PayoutStatus.PENDING)


@register_handler("transfer.paid")
def handle_transfer_paid(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Transfer landed; marks the Payout PAID and tells the performer."""
    return _handle_transfer(webhook_event, PayoutStatus.PAID)


@register_handler("transfer.failed")
def handle_transfer_failed(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Transfer failed; marks the Payout FAILED and tells the performer."""
    return _handle_transfer(webhook_event, PayoutStatus.FAILED)


# =============================================================================
# Instant Payout Handlers
# =============================================================================


def _account_for_payout(webhook_event: WebhookEvent) -> PayoutAccount | None:
    """Connected account a payout event is about, by event account then metadata."""
    account_id = (
        webhook_event.payload.get("account")
        if isinstance(webhook_event.payload, dict)
        else None
    )
    if account_id:
        account = PayoutAccount.objects.filter(external_account_id=account_id).first()
        if account is not None:
            return account

    user_id = webhook_event.get_object_metadata().get("user_id")
    if _user_exists(user_id):
        return PayoutAccount.objects.filter(user_id=user_id).first()
    return None


def _instant_payout_from_event(
    webhook_event: WebhookEvent,
    status: str,
) -> InstantPayout | None:
    """
    Create the InstantPayout for an instant payout requested outside this
    service, or whose local write lost the race with its first event.

    Standard payouts made on the account's schedule are not tracked.
    """
    obj = webhook_event.get_object()
    amount_cents = _parse_int(obj.get("amount"))
    if obj.get("method") != "instant" or amount_cents <= 0:
        return None

    account = _account_for_payout(webhook_event)
    if account is None:
        logger.warning(
            "Payout event for unknown connected account",
            extra={
                "event_id": webhook_event.event_id,
                "payout_id": obj.get("id"),
            },
        )
        return None

    return InstantPayoutService.record_payout(
        account,
        PayoutResult(
            id=obj["id"],
            status=status,
            amount_cents=amount_cents,
            currency=obj.get("currency") or "usd",
            method="instant",
            destination=obj.get("destination")
            if isinstance(obj.get("destination"), str)
            else None,
            arrival_date=obj.get("arrival_date"),
            failure_code=obj.get("failure_code"),
            failure_message=obj.get("failure_message"),
        ),
    )


def _handle_payout(webhook_event: WebhookEvent, target: str) -> ServiceResult:
    payout_id = webhook_event.get_object_id()
    if not payout_id:
        return _missing_object_id(webhook_event)

    obj = webhook_event.get_object()
    payout = InstantPayout.objects.filter(external_id=payout_id).first()
    if payout is None:
        payout = _instant_payout_from_event(webhook_event, target)
        if payout is None:
            logger.info(
                f"{webhook_event.event_type}: payout not tracked",
                extra={"event_id": webhook_event.event_id, "payout_id": payout_id},
            )
            return ServiceResult.success(None)
        transitioned = payout.status == target
    else:
        transitioned = bool(
            InstantPayoutService.apply_status(
                payout_id,
                target,
                arrival_date=from_timestamp(obj.get("arrival_date")),
                failure_code=obj.get("failure_code") or "",
                failure_message=obj.get("failure_message") or "",
            )
        )

    payout = InstantPayout.objects.get(pk=payout.pk)

    if transitioned and target in (
        InstantPayoutStatus.PAID,
        InstantPayoutStatus.FAILED,
    ):
        logger.info(
            f"Instant payout {target}",
            extra={"event_id": webhook_event.event_id, "payout_id": payout_id},
        )
        payload = {
            "payout_id": str(payout.id),
            "amount_cents": payout.amount_cents,
            "currency": payout.currency,
            "method": payout.method,
        }
        if target == InstantPayoutStatus.FAILED:
            payload["failure_code"] = payout.failure_code
            payload["failure_message"] = payout.failure_message
        _notify(
            payout.user_id,
            NotificationKind.PAYOUT_PAID
            if target == InstantPayoutStatus.PAID
            else NotificationKind.PAYOUT_FAILED,
            payload,
        )

    return ServiceResult.success(payout)


@register_handler("payout.created")
def handle_payout_created(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Payout accepted; ensures an InstantPayout row exists for instant payouts."""
    status = webhook_event.get_object().get("status")
    if status not in InstantPayoutStatus.active():
        status = InstantPayoutStatus.PENDING
    return _handle_payout(webhook_event, status)


@register_handler("payout.paid")
def handle_payout_paid(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Payout arrived; marks it PAID and tells the user."""
    return _handle_payout(webhook_event, InstantPayoutStatus.PAID)


@register_handler("payout.failed")
def handle_payout_failed(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Payout bounced; records the failure and tells the user."""
    return _handle_payout(webhook_event, InstantPayoutStatus.FAILED)


# =============================================================================
# Account Handlers
# =============================================================================


@register_handler("account.updated")
def handle_account_updated(
    webhook_event: WebhookEvent,
    processor: StripeAdapter | None = None,
) -> ServiceResult:
    """Mirror onboarding flags; unknown accounts are ignored."""
    account = webhook_event.get_object()
    account_id = account.get("id")
    if not account_id:
        return _missing_object_id(webhook_event)

    updated = PayoutAccountService.apply_account_update(
        account_id,
        charges_enabled=account.get("charges_enabled", False),
        payouts_enabled=account.get("payouts_enabled", False),
        details_submitted=account.get("details_submitted", False),
    )
    if not updated:
        logger.info(
            "account.updated for unknown account",
            extra={"event_id": webhook_event.event_id, "account_id": account_id},
        )
    return ServiceResult.success(updated)
