"""
Fixtures for notification tests.
"""

import pytest

from authentication.tests.factories import UserFactory
from notifications.tests.factories import NotificationFactory


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def authenticated_client(authenticated_client_factory, user):
    return authenticated_client_factory(user)


@pytest.fixture
def notification(user):
    return NotificationFactory(recipient=user)


@pytest.fixture
def read_notification(user):
    return NotificationFactory(recipient=user, is_read=True)


@pytest.fixture
def other_user_notifications(other_user):
    return NotificationFactory.create_batch(3, recipient=other_user)
