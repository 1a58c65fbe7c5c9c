"""
Cleanups app configuration.
"""

from django.apps import AppConfig


class CleanupsConfig(AppConfig):
    """Configuration for the cleanups application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "cleanups"
    verbose_name = "Cleanup Requests"
