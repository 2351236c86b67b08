"""Recoverable rejections raised by the registry and the turn engine."""

from game.messaging.types import SessionErrorCode


class RoomError(Exception):
    """A rejected room or game action.

    Raised before any state is touched, so catching it never needs a rollback.
    The session manager reports it to the acting connection only.
    """

    def __init__(self, code: SessionErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def invalid_player_count(value: int) -> RoomError:
    return RoomError(SessionErrorCode.INVALID_PLAYER_COUNT, f"Max players must be 2, 3 or 4, got {value}")


def room_not_found() -> RoomError:
    return RoomError(SessionErrorCode.ROOM_NOT_FOUND, "Room not found")
