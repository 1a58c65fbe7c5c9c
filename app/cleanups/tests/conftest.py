"""
Pytest fixtures for cleanup request tests.
"""

import pytest

from cleanups.tests.factories import CleanupRequestFactory, UserFactory


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def cleanup_request(db, user):
    """Create an open cleanup request owned by user."""
    return CleanupRequestFactory(created_by=user)
