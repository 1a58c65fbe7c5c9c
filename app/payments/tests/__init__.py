"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Hold, Donation, Payout, PayoutAccount, WebhookEvent model tests
- test_state_transitions.py: Hold and Payout state machine tests
- test_locks.py: Settlement lock tests
- test_views.py: API endpoint tests
- test_integration.py: Hold to payout workflows driven by webhook events

Usage:
    pytest payments/tests/
    pytest payments/tests/test_views.py
"""
