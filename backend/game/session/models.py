"""Room and player state for the board-game lobby."""

import time
from dataclasses import dataclass, field

from game.session.types import PlayerInfo, RoomSummary

BOARD_START = 0
WIN_POSITION = 100
VALID_MAX_PLAYERS = frozenset({2, 3, 4})

DEFAULT_ROOM_NAME = "Room"
DEFAULT_PLAYER_NAME = "Player"


@dataclass
class Player:
    """A connection seated in a room.

    List order within the room is join order, which is also turn order.
    """

    connection_id: str
    name: str = DEFAULT_PLAYER_NAME
    pos: int = BOARD_START

    def to_info(self) -> PlayerInfo:
        return PlayerInfo(id=self.connection_id, name=self.name, pos=self.pos)


@dataclass
class BoardConfig:
    """Board metadata chosen by the creator and echoed to every joiner."""

    level: str | None = None
    board_index: int | None = None


@dataclass
class Room:
    """One lobby room and, once started, its game.

    ``turn_index`` is only meaningful while ``started`` is True. The creator
    is always ``players[0]`` for as long as the room exists; the room is
    destroyed when the creator leaves.
    """

    room_id: str
    creator_id: str
    max_players: int
    room_name: str = DEFAULT_ROOM_NAME
    password: str | None = None
    board: BoardConfig = field(default_factory=BoardConfig)
    started: bool = False
    turn_index: int = 0
    players: list[Player] = field(default_factory=list)
    created_at: float = field(default_factory=time.monotonic)

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.max_players

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def has_password(self) -> bool:
        return self.password is not None

    @property
    def member_ids(self) -> list[str]:
        return [p.connection_id for p in self.players]

    @property
    def current_player(self) -> Player | None:
        """Player whose turn it is, or None before the game starts."""
        if not self.started or not self.players:
            return None
        return self.players[self.turn_index % self.player_count]

    def index_of(self, connection_id: str) -> int | None:
        for i, player in enumerate(self.players):
            if player.connection_id == connection_id:
                return i
        return None

    def has_player(self, connection_id: str) -> bool:
        return self.index_of(connection_id) is not None

    def remove_player(self, connection_id: str) -> Player | None:
        """Remove a player and keep the turn anchored on the same person where possible.

        Removing someone seated before the current player shifts the index
        down with them. Removing the current player passes the turn to
        whoever slides into that slot. The index is always reduced modulo
        the new player count.
        """
        index = self.index_of(connection_id)
        if index is None:
            return None
        removed = self.players.pop(index)
        if self.started and index < self.turn_index:
            self.turn_index -= 1
        self.turn_index = self.turn_index % self.player_count if self.players else 0
        return removed

    def advance_turn(self) -> int:
        self.turn_index = (self.turn_index + 1) % self.player_count
        return self.turn_index

    def get_player_info(self) -> list[PlayerInfo]:
        """Return player info in turn order."""
        return [p.to_info() for p in self.players]

    def to_summary(self) -> RoomSummary:
        return RoomSummary(
            room_id=self.room_id,
            room_name=self.room_name,
            current_players=self.player_count,
            max_players=self.max_players,
            has_password=self.has_password,
            started=self.started,
        )
