"""
Payment admin configuration.

Read-mostly registrations for the payment domain models. Status changes
go through the service layer and webhook handlers, not the admin; the
only write action is re-queueing failed webhook events.
"""

from django.contrib import admin

from payments.models import (
    Donation,
    Hold,
    InstantPayout,
    Payout,
    PayoutAccount,
    WebhookEvent,
)
from payments.state_machines import WebhookEventStatus

__all__ = [
    "HoldAdmin",
    "DonationAdmin",
    "PayoutAdmin",
    "PayoutAccountAdmin",
    "InstantPayoutAdmin",
    "WebhookEventAdmin",
]


def _format_cents(amount_cents: int, currency: str) -> str:
    return f"{amount_cents / 100:.2f} {currency.upper()}"


class DonationInline(admin.StackedInline):
    model = Donation
    extra = 0
    can_delete = False
    readonly_fields = ["id", "request", "donor", "amount", "created_at"]

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Hold)
class HoldAdmin(admin.ModelAdmin):
    """
    Admin configuration for Hold.

    Provides visibility into authorization holds and their status.
    """

    list_display = [
        "id",
        "external_id",
        "payer",
        "request",
        "kind",
        "amount_display",
        "status",
        "created_at",
    ]
    list_filter = ["status", "kind", "currency", "created_at"]
    search_fields = ["id", "external_id", "payer__email", "request__id"]
    readonly_fields = [
        "id",
        "external_id",
        "payer",
        "request",
        "amount_cents",
        "currency",
        "kind",
        "status",
        "metadata",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [DonationInline]

    @admin.display(description="Amount")
    def amount_display(self, obj: Hold) -> str:
        return _format_cents(obj.amount_cents, obj.currency)

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ["id", "request", "donor", "amount", "hold", "created_at"]
    search_fields = ["id", "donor__email", "request__id", "hold__external_id"]
    readonly_fields = ["id", "request", "donor", "amount", "hold", "created_at"]
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        """Donations are only removed by compensation."""
        return False

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payout.

    Shows the fee split next to the net amount so settlements can be
    audited against the processor dashboard.
    """

    list_display = [
        "id",
        "external_id",
        "request",
        "performer",
        "net_display",
        "platform_fee_cents",
        "processor_fee_cents",
        "status",
        "paid_at",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = ["id", "external_id", "performer__email", "request__id"]
    readonly_fields = [
        "id",
        "external_id",
        "request",
        "performer",
        "source_hold",
        "net_amount_cents",
        "platform_fee_cents",
        "processor_fee_cents",
        "currency",
        "status",
        "failure_reason",
        "paid_at",
        "metadata",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "external_id", "request", "performer", "source_hold"),
            },
        ),
        (
            "Amounts",
            {
                "fields": (
                    "net_amount_cents",
                    "platform_fee_cents",
                    "processor_fee_cents",
                    "currency",
                ),
            },
        ),
        (
            "Status",
            {
                "fields": ("status", "failure_reason", "paid_at"),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Net")
    def net_display(self, obj: Payout) -> str:
        return _format_cents(obj.net_amount_cents, obj.currency)

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(PayoutAccount)
class PayoutAccountAdmin(admin.ModelAdmin):
    """Connected account status per performer."""

    list_display = [
        "user",
        "external_account_id",
        "country",
        "charges_enabled",
        "payouts_enabled",
        "details_submitted",
        "updated_at",
    ]
    list_filter = ["payouts_enabled", "charges_enabled", "details_submitted", "country"]
    search_fields = ["external_account_id", "user__email", "user__username"]
    readonly_fields = [
        "id",
        "user",
        "external_account_id",
        "country",
        "charges_enabled",
        "payouts_enabled",
        "details_submitted",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(InstantPayout)
class InstantPayoutAdmin(admin.ModelAdmin):
    """Payouts out of connected accounts, as reported by the processor."""

    list_display = [
        "external_id",
        "user",
        "method",
        "amount_display",
        "status",
        "arrival_date",
        "created_at",
    ]
    list_filter = ["status", "method", "currency", "created_at"]
    search_fields = ["external_id", "account_id", "user__email"]
    readonly_fields = [
        "id",
        "user",
        "account_id",
        "external_id",
        "amount_cents",
        "currency",
        "method",
        "destination",
        "status",
        "arrival_date",
        "failure_code",
        "failure_message",
        "metadata",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    @admin.display(description="Amount")
    def amount_display(self, obj: InstantPayout) -> str:
        return _format_cents(obj.amount_cents, obj.currency)

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing status.
    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "event_id", "event_type"]
    readonly_fields = [
        "id",
        "event_id",
        "event_type",
        "status",
        "payload",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["requeue_events"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Re-queue selected failed events")
    def requeue_events(self, request, queryset):
        from payments.tasks import process_webhook_event

        queued = 0
        for event in queryset.filter(status=WebhookEventStatus.FAILED):
            process_webhook_event.delay(str(event.id))
            queued += 1
        self.message_user(request, f"Queued {queued} event(s) for processing.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False
