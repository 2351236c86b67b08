"""
Turn sequencing for the 100-square race.

Pure functions over a ``Room``: they validate, mutate the room in place, and
report the outcome. Broadcasting and room teardown belong to the session
manager, which calls these while holding the room's lock.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from game.messaging.types import SessionErrorCode
from game.session.errors import RoomError
from game.session.models import WIN_POSITION

if TYPE_CHECKING:
    from collections.abc import Callable

    from game.session.models import Room
    from game.session.types import PlayerInfo

DIE_FACES = 6


class GamePhase(StrEnum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    # never stored: reaching it destroys the room
    FINISHED = "finished"


def game_phase(room: Room) -> GamePhase:
    if not room.started:
        return GamePhase.NOT_STARTED
    if any(p.pos == WIN_POSITION for p in room.players):
        return GamePhase.FINISHED
    return GamePhase.STARTED


def roll_die() -> int:
    """Draw uniformly from 1..6."""
    return secrets.randbelow(DIE_FACES) + 1


@dataclass(frozen=True)
class DiceRoll:
    player_index: int
    player_id: str
    value: int


@dataclass(frozen=True)
class MoveAdvanced:
    turn_index: int
    player_id: str
    players: list[PlayerInfo]


@dataclass(frozen=True)
class MoveWon:
    winner_index: int
    winner: PlayerInfo
    ranking: list[PlayerInfo]


def roll_dice(room: Room, requester_id: str, die: Callable[[], int] = roll_die) -> DiceRoll:
    """Roll for the player whose turn it is.

    The roll is advisory: it does not move anyone. The client computes the
    landing square and reports it back with ``apply_move``.
    """
    current = room.current_player
    if current is None:
        raise RoomError(SessionErrorCode.GAME_NOT_STARTED, "Game has not started")
    if current.connection_id != requester_id:
        raise RoomError(SessionErrorCode.NOT_YOUR_TURN, "It is not your turn")
    value = die()
    if not 1 <= value <= DIE_FACES:
        raise ValueError(f"die returned {value}, expected 1-{DIE_FACES}")
    return DiceRoll(player_index=room.turn_index, player_id=current.connection_id, value=value)


def apply_move(room: Room, requester_id: str, player_index: int, new_pos: int) -> MoveAdvanced | MoveWon | None:
    """Apply the current player's move and advance the turn.

    Returns None (and changes nothing) for submissions that are stale, out
    of turn, off the board, or behind the player's current square, so
    duplicate and late client messages are harmless.
    """
    current = room.current_player
    if current is None or player_index != room.turn_index or current.connection_id != requester_id:
        return None
    if not current.pos <= new_pos <= WIN_POSITION:
        return None

    current.pos = new_pos
    if new_pos == WIN_POSITION:
        # sorted() is stable, so ties keep turn order
        ranking = sorted(room.players, key=lambda p: p.pos, reverse=True)
        return MoveWon(
            winner_index=player_index,
            winner=current.to_info(),
            ranking=[p.to_info() for p in ranking],
        )

    turn_index = room.advance_turn()
    return MoveAdvanced(
        turn_index=turn_index,
        player_id=room.players[turn_index].connection_id,
        players=room.get_player_info(),
    )
