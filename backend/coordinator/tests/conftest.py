import pytest

from coordinator.messaging.router import MessageRouter
from coordinator.session.directory import RoomDirectory
from coordinator.session.manager import SessionManager


@pytest.fixture
def directory():
    return RoomDirectory()


@pytest.fixture
def manager(directory):
    return SessionManager(directory=directory)


@pytest.fixture
def router(manager):
    return MessageRouter(manager)
