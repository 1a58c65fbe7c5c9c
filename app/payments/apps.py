"""
Payments app configuration.

This app provides the funds custody engine:
- Authorization holds and donation compensation
- Capture, fee split and payout settlement
- Stripe webhook reconciliation
- Payout account onboarding
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
