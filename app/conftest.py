"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # The test client speaks plain HTTP
    settings.SECURE_SSL_REDIRECT = False

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]

    # Known test keys for the processor adapter
    settings.STRIPE_SECRET_KEY = "sk_test_123"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_test_123"


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full workflows across services)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_fee_calculator.py, test_locks.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_hold_service.py",
        "test_settlement_service.py",
        "test_compensation_service.py",
        "test_payout_account_service.py",
        "test_instant_payout_service.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_exceptions.py",
        "test_fee_calculator.py",
        "test_stripe_adapter.py",
        "test_state_transitions.py",
        "test_locks.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = os.path.basename(str(item.fspath))

        if filename in e2e_patterns:
            item.add_marker(pytest.mark.e2e)
        elif filename in integration_patterns:
            item.add_marker(pytest.mark.integration)
        elif filename in unit_patterns:
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)
