"""
Fixtures for authentication tests.
"""

import pytest

from authentication.tests.factories import AdminUserFactory, UserFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return AdminUserFactory()
