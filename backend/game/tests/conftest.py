import pytest

from game.messaging.router import MessageRouter
from game.server.app import create_app
from game.server.settings import GameServerSettings
from game.session.manager import SessionManager
from game.session.registry import RoomRegistry
from game.tests.helpers.dice import ScriptedDie
from game.tests.mocks import MockConnection


@pytest.fixture
def die():
    return ScriptedDie(4)


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def session_manager(registry, die):
    return SessionManager(registry, die=die)


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def settings():
    return GameServerSettings()


@pytest.fixture
def app(settings, session_manager, message_router):
    return create_app(
        settings=settings,
        session_manager=session_manager,
        message_router=message_router,
    )
