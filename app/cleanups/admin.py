"""
Cleanup request admin configuration.
"""

from django.contrib import admin

from cleanups.models import CleanupRequest


@admin.register(CleanupRequest)
class CleanupRequestAdmin(admin.ModelAdmin):
    """Admin view of requests with their contributed totals."""

    list_display = [
        "id",
        "name",
        "category",
        "status",
        "cost",
        "total_contributed",
        "created_by",
        "performer",
        "created_at",
    ]
    list_filter = ["status", "category"]
    search_fields = ["id", "name", "created_by__username", "created_by__email"]
    readonly_fields = ["id", "total_contributed", "created_at", "updated_at"]
    ordering = ["-created_at"]
