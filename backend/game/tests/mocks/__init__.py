from game.tests.mocks.connection import MockConnection

__all__ = ["MockConnection"]
