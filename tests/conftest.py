import pytest

from tests.fakes import (
    FakeContactDirectory,
    FakeDrawRepository,
    FakeNotificationRepository,
    FrozenClock,
)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def notification_repo():
    return FakeNotificationRepository()


@pytest.fixture
def draw_repo(notification_repo):
    return FakeDrawRepository(notification_repo)


@pytest.fixture
def contacts():
    return FakeContactDirectory()
