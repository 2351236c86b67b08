import pytest

from game.session.manager import SessionManager
from game.session.registry import RoomRegistry
from game.tests.helpers.dice import ScriptedDie


@pytest.fixture
def manager():
    return SessionManager(RoomRegistry(), die=ScriptedDie(5))
