"""
Notification admin configuration.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-only listing of notifications sent to users."""

    list_display = ["id", "recipient", "kind", "title", "read_at", "created_at"]
    list_filter = ["kind"]
    search_fields = ["recipient__username", "recipient__email", "idempotency_key"]
    readonly_fields = [
        "recipient",
        "kind",
        "title",
        "body",
        "payload",
        "idempotency_key",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
