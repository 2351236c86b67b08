"""Room registry: the table of live rooms and every membership transition on it."""

from __future__ import annotations

import asyncio
import secrets
import string
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from game.messaging.types import RoomDestroyedReason, SessionErrorCode
from game.session.errors import RoomError, invalid_player_count, room_not_found
from game.session.models import (
    DEFAULT_PLAYER_NAME,
    DEFAULT_ROOM_NAME,
    VALID_MAX_PLAYERS,
    BoardConfig,
    Player,
    Room,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from game.session.types import RoomSummary

logger = structlog.get_logger()

ROOM_ID_ALPHABET = string.ascii_uppercase + string.digits
_MAX_ROOM_ID_ATTEMPTS = 100


@dataclass(frozen=True)
class DestroyedRoom:
    """Snapshot of a room taken at the moment it was torn down."""

    room_id: str
    reason: RoomDestroyedReason
    member_ids: tuple[str, ...]


@dataclass(frozen=True)
class RemovalResult:
    removed: bool
    destroyed: DestroyedRoom | None = None


def generate_room_id(length: int) -> str:
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(length))


def _clean(value: str | None, default: str) -> str:
    if value is None or not value.strip():
        return default
    return value.strip()


class RoomRegistry:
    """Own the room table, the connection -> rooms index, and one lock per room.

    Every method is synchronous and finishes without yielding, so a single
    call is atomic on the event loop. Callers that interleave I/O with a
    read-modify-write sequence hold the room's lock (see ``lock_for``).
    Validation always completes before the first mutation.
    """

    def __init__(
        self,
        *,
        room_id_length: int = 6,
        max_rooms: int = 1000,
        min_players_to_start: int = 2,
        room_id_factory: Callable[[int], str] = generate_room_id,
    ) -> None:
        self._room_id_length = room_id_length
        self._max_rooms = max_rooms
        self._min_players_to_start = min_players_to_start
        self._room_id_factory = room_id_factory
        self._rooms: dict[str, Room] = {}
        self._connection_rooms: dict[str, set[str]] = {}  # connection_id -> room_ids
        self._room_locks: dict[str, asyncio.Lock] = {}

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def min_players_to_start(self) -> int:
        return self._min_players_to_start

    def get_room(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def lock_for(self, room_id: str) -> asyncio.Lock | None:
        """Return the room's lock, or None if the room does not exist."""
        return self._room_locks.get(room_id)

    def rooms_of(self, connection_id: str) -> list[str]:
        return sorted(self._connection_rooms.get(connection_id, ()))

    def create_room(
        self,
        *,
        max_players: int,
        creator_id: str,
        room_name: str | None = None,
        password: str | None = None,
        creator_name: str | None = None,
        board: BoardConfig | None = None,
    ) -> Room:
        """Create a room with the creator seated at index 0."""
        if max_players not in VALID_MAX_PLAYERS:
            raise invalid_player_count(max_players)
        if len(self._rooms) >= self._max_rooms:
            raise RoomError(SessionErrorCode.SERVER_FULL, "Server is at room capacity")

        room = Room(
            room_id=self._new_room_id(),
            creator_id=creator_id,
            max_players=max_players,
            room_name=_clean(room_name, DEFAULT_ROOM_NAME),
            password=password or None,
            board=board or BoardConfig(),
        )
        room.players.append(Player(connection_id=creator_id, name=_clean(creator_name, DEFAULT_PLAYER_NAME)))
        self._rooms[room.room_id] = room
        self._room_locks[room.room_id] = asyncio.Lock()
        self._index(creator_id, room.room_id)
        logger.info(
            "room created",
            room_id=room.room_id,
            max_players=max_players,
            has_password=room.has_password,
        )
        return room

    def join_room(
        self,
        room_id: str,
        joiner_id: str,
        *,
        password: str | None = None,
        joiner_name: str | None = None,
    ) -> int:
        """Append a player to the room and return their index in turn order.

        A started room with a free seat still accepts joiners; they enter at
        the end of the turn order at the start square.
        """
        room = self._rooms.get(room_id)
        if room is None:
            raise room_not_found()
        if joiner_id == room.creator_id:
            raise RoomError(SessionErrorCode.IS_CREATOR, "You cannot join your own room")
        if room.has_player(joiner_id):
            raise RoomError(SessionErrorCode.ALREADY_IN_ROOM, "You are already in this room")
        # a full room reports room_full whatever password was supplied
        if room.is_full:
            raise RoomError(SessionErrorCode.ROOM_FULL, "Room is full")
        if room.has_password and password != room.password:
            raise RoomError(SessionErrorCode.WRONG_PASSWORD, "Wrong password")

        room.players.append(Player(connection_id=joiner_id, name=_clean(joiner_name, DEFAULT_PLAYER_NAME)))
        self._index(joiner_id, room_id)
        logger.info("player joined room", room_id=room_id, player_count=room.player_count)
        return room.player_count - 1

    def start_game(self, room_id: str, requester_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise room_not_found()
        if requester_id != room.creator_id:
            raise RoomError(SessionErrorCode.NOT_CREATOR, "Only the room creator can start the game")
        if room.started:
            raise RoomError(SessionErrorCode.GAME_ALREADY_STARTED, "Game already started")
        if room.player_count < self._min_players_to_start:
            raise RoomError(
                SessionErrorCode.TOO_FEW_PLAYERS,
                f"At least {self._min_players_to_start} players are needed to start",
            )

        room.started = True
        room.turn_index = 0
        logger.info("game started", room_id=room_id, player_count=room.player_count)
        return room

    def leave_as_creator(self, room_id: str, requester_id: str) -> DestroyedRoom | None:
        """Destroy the room if the requester created it, whatever the game phase."""
        room = self._rooms.get(room_id)
        if room is None or room.creator_id != requester_id:
            return None
        return self.destroy_room(room_id, RoomDestroyedReason.CREATOR_LEFT)

    def remove_player(self, room_id: str, player_id: str) -> RemovalResult:
        """Remove a member. The room goes with its creator or its last player."""
        room = self._rooms.get(room_id)
        if room is None or not room.has_player(player_id):
            return RemovalResult(removed=False)
        if player_id == room.creator_id:
            return RemovalResult(removed=True, destroyed=self.destroy_room(room_id, RoomDestroyedReason.CREATOR_LEFT))

        room.remove_player(player_id)
        self._unindex(player_id, room_id)
        logger.info("player left room", room_id=room_id, player_count=room.player_count)
        if room.is_empty:
            return RemovalResult(removed=True, destroyed=self.destroy_room(room_id, RoomDestroyedReason.EMPTY))
        return RemovalResult(removed=True)

    def destroy_room(self, room_id: str, reason: RoomDestroyedReason) -> DestroyedRoom | None:
        """Tear a room down: drop it, its lock, and every member's index entry."""
        room = self._rooms.pop(room_id, None)
        if room is None:
            return None
        self._room_locks.pop(room_id, None)
        member_ids = tuple(room.member_ids)
        for connection_id in member_ids:
            self._unindex(connection_id, room_id)
        logger.info("room destroyed", room_id=room_id, reason=reason.value)
        return DestroyedRoom(room_id=room_id, reason=reason, member_ids=member_ids)

    def list_visible_rooms(self, viewer_id: str) -> list[RoomSummary]:
        """Summaries of every room the viewer did not create, in creation order."""
        return [room.to_summary() for room in list(self._rooms.values()) if room.creator_id != viewer_id]

    # --- Internal helpers ---

    def _new_room_id(self) -> str:
        for _ in range(_MAX_ROOM_ID_ATTEMPTS):
            room_id = self._room_id_factory(self._room_id_length)
            if room_id not in self._rooms:
                return room_id
        logger.error("room id space exhausted", attempts=_MAX_ROOM_ID_ATTEMPTS, room_count=len(self._rooms))
        raise RoomError(SessionErrorCode.SERVER_FULL, "No free room id available")

    def _index(self, connection_id: str, room_id: str) -> None:
        self._connection_rooms.setdefault(connection_id, set()).add(room_id)

    def _unindex(self, connection_id: str, room_id: str) -> None:
        room_ids = self._connection_rooms.get(connection_id)
        if room_ids is None:
            return
        room_ids.discard(room_id)
        if not room_ids:
            del self._connection_rooms[connection_id]
