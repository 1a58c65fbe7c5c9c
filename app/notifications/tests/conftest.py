"""
Pytest fixtures for notification tests.
"""

import pytest

from cleanups.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """Create a notification recipient."""
    return UserFactory()
