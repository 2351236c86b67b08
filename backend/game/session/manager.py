from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog

from game.logic.turn import MoveWon, apply_move, roll_dice, roll_die
from game.messaging.types import (
    DiceResultMessage,
    ErrorMessage,
    GameFinishedMessage,
    GameStartedMessage,
    JoinFailedMessage,
    JoinSuccessMessage,
    PlayerJoinedMessage,
    PlayerListUpdateMessage,
    PongMessage,
    RoomCreatedMessage,
    RoomDestroyedMessage,
    RoomDestroyedReason,
    RoomListMessage,
    SyncPositionsMessage,
    TurnChangedMessage,
    YourIndexMessage,
)
from game.session.errors import RoomError, room_not_found
from game.session.hub import ConnectionHub
from game.session.models import BoardConfig
from game.session.registry import RoomRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from game.messaging.protocol import ConnectionProtocol
    from game.session.models import Room
    from game.session.registry import DestroyedRoom

logger = structlog.get_logger()


class SessionManager:
    """Handle every inbound lobby and game event.

    Room-scoped work (validation, mutation, and the broadcasts it triggers)
    runs under that room's lock so two events on the same room never
    interleave and members see broadcasts in mutation order. Lobby list
    refreshes read a snapshot of the table after the lock is released.
    """

    def __init__(
        self,
        registry: RoomRegistry | None = None,
        hub: ConnectionHub | None = None,
        die: Callable[[], int] = roll_die,
    ) -> None:
        self._registry = registry or RoomRegistry()
        self._hub = hub or ConnectionHub()
        self._die = die

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    @property
    def hub(self) -> ConnectionHub:
        return self._hub

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._hub.register(connection)

    # --- Lobby ---

    async def create_room(  # noqa: PLR0913
        self,
        connection: ConnectionProtocol,
        *,
        max_players: int,
        room_name: str | None = None,
        password: str | None = None,
        player_name: str | None = None,
        level: str | None = None,
        board_index: int | None = None,
    ) -> None:
        connection_id = connection.connection_id
        try:
            room = self._registry.create_room(
                max_players=max_players,
                creator_id=connection_id,
                room_name=room_name,
                password=password,
                creator_name=player_name,
                board=BoardConfig(level=level, board_index=board_index),
            )
        except RoomError as e:
            await self._send_error(connection, e)
            return

        async with self._room_scope(room.room_id) as locked:
            if locked is None:
                # destroyed before we got the lock (creator already gone)
                return
            self._hub.add_to_group(connection_id, room.room_id)
            await connection.send_message(
                RoomCreatedMessage(
                    room_id=room.room_id,
                    room_name=room.room_name,
                    max_players=room.max_players,
                    has_password=room.has_password,
                    level=room.board.level,
                    board_index=room.board.board_index,
                ).model_dump(),
            )
            await self._broadcast_player_list(room)
            await connection.send_message(YourIndexMessage(room_id=room.room_id, index=0).model_dump())

        await self.refresh_lobby()

    async def join_room(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        *,
        password: str | None = None,
        player_name: str | None = None,
    ) -> None:
        connection_id = connection.connection_id
        async with self._room_scope(room_id) as room:
            try:
                if room is None:
                    raise room_not_found()
                index = self._registry.join_room(
                    room_id,
                    connection_id,
                    password=password,
                    joiner_name=player_name,
                )
            except RoomError as e:
                logger.warning("join rejected", room_id=room_id, error_code=e.code.value)
                await connection.send_message(
                    JoinFailedMessage(room_id=room_id, code=e.code, message=e.message).model_dump(),
                )
                return

            self._hub.add_to_group(connection_id, room_id)
            players = room.get_player_info()
            await connection.send_message(
                JoinSuccessMessage(
                    room_id=room_id,
                    room_name=room.room_name,
                    player_index=index,
                    max_players=room.max_players,
                    level=room.board.level,
                    board_index=room.board.board_index,
                    players=players,
                ).model_dump(),
            )
            await self._hub.broadcast(
                room_id,
                PlayerJoinedMessage(room_id=room_id, player=players[index], player_index=index).model_dump(),
            )
            await self._broadcast_player_list(room)
            await connection.send_message(YourIndexMessage(room_id=room_id, index=index).model_dump())
            current = room.current_player
            if current is not None:
                # joined mid-game: catch up on whose turn it is and where everyone stands
                await connection.send_message(
                    TurnChangedMessage(
                        room_id=room_id,
                        turn_index=room.turn_index,
                        player_id=current.connection_id,
                    ).model_dump(),
                )
                await self._hub.broadcast(
                    room_id,
                    SyncPositionsMessage(room_id=room_id, players=room.get_player_info()).model_dump(),
                )

        await self.refresh_lobby()

    async def send_room_list(self, connection: ConnectionProtocol) -> None:
        rooms = self._registry.list_visible_rooms(connection.connection_id)
        await connection.send_message(RoomListMessage(rooms=rooms).model_dump())

    async def send_player_list(self, connection: ConnectionProtocol, room_id: str) -> None:
        room = self._registry.get_room(room_id)
        if room is None:
            await self._send_error(connection, room_not_found())
            return
        await connection.send_message(self._player_list_message(room))

    async def refresh_lobby(self) -> None:
        """Push each connected viewer its own filtered room list.

        All lists are computed from one pass over the table before any send,
        so no room lock is held during the fan-out.
        """
        outgoing = [
            (connection_id, RoomListMessage(rooms=self._registry.list_visible_rooms(connection_id)).model_dump())
            for connection_id in self._hub.connection_ids
        ]
        for connection_id, message in outgoing:
            await self._hub.send_to(connection_id, message)

    # --- Game ---

    async def start_game(self, connection: ConnectionProtocol, room_id: str) -> None:
        async with self._room_scope(room_id) as room:
            try:
                if room is None:
                    raise room_not_found()
                self._registry.start_game(room_id, connection.connection_id)
            except RoomError as e:
                await self._send_error(connection, e)
                return

            await self._hub.broadcast(
                room_id,
                GameStartedMessage(
                    room_id=room_id,
                    turn_index=room.turn_index,
                    level=room.board.level,
                    board_index=room.board.board_index,
                    players=room.get_player_info(),
                ).model_dump(),
            )

        await self.refresh_lobby()

    async def roll_dice(self, connection: ConnectionProtocol, room_id: str) -> None:
        async with self._room_scope(room_id) as room:
            try:
                if room is None:
                    raise room_not_found()
                roll = roll_dice(room, connection.connection_id, self._die)
            except RoomError as e:
                await self._send_error(connection, e)
                return

            logger.debug("dice rolled", room_id=room_id, player_index=roll.player_index, value=roll.value)
            await self._hub.broadcast(
                room_id,
                DiceResultMessage(
                    room_id=room_id,
                    player_index=roll.player_index,
                    player_id=roll.player_id,
                    value=roll.value,
                ).model_dump(),
            )

    async def move_complete(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        *,
        player_index: int,
        new_pos: int,
    ) -> None:
        finished = False
        async with self._room_scope(room_id) as room:
            if room is None:
                logger.debug("move for unknown room dropped", room_id=room_id)
                return
            outcome = apply_move(room, connection.connection_id, player_index, new_pos)
            if outcome is None:
                logger.debug("stale move ignored", room_id=room_id, player_index=player_index)
                return

            if isinstance(outcome, MoveWon):
                logger.info("game finished", room_id=room_id, winner_index=outcome.winner_index)
                await self._hub.broadcast(
                    room_id,
                    GameFinishedMessage(
                        room_id=room_id,
                        winner_index=outcome.winner_index,
                        winner=outcome.winner,
                        ranking=outcome.ranking,
                    ).model_dump(),
                )
                await self._teardown(self._registry.destroy_room(room_id, RoomDestroyedReason.GAME_FINISHED))
                finished = True
            else:
                await self._hub.broadcast(
                    room_id,
                    TurnChangedMessage(
                        room_id=room_id,
                        turn_index=outcome.turn_index,
                        player_id=outcome.player_id,
                    ).model_dump(),
                )
                await self._hub.broadcast(
                    room_id,
                    SyncPositionsMessage(room_id=room_id, players=outcome.players).model_dump(),
                )

        if finished:
            await self.refresh_lobby()

    # --- Leaving ---

    async def leave_room(self, connection: ConnectionProtocol, room_id: str) -> None:
        """Creator leaving destroys the room; any other member just leaves it."""
        async with self._room_scope(room_id) as room:
            if room is None or not room.has_player(connection.connection_id):
                await self._send_error(connection, room_not_found())
                return
            await self._remove_member(room, connection.connection_id)

        await self.refresh_lobby()

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Treat a dropped connection as leaving every room it occupies."""
        connection_id = connection.connection_id
        self._hub.unregister(connection_id)
        room_ids = self._registry.rooms_of(connection_id)
        for room_id in room_ids:
            async with self._room_scope(room_id) as room:
                if room is None or not room.has_player(connection_id):
                    continue
                await self._remove_member(room, connection_id)

        if room_ids:
            await self.refresh_lobby()

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(PongMessage().model_dump())

    # --- Internal helpers ---

    @contextlib.asynccontextmanager
    async def _room_scope(self, room_id: str) -> AsyncIterator[Room | None]:
        """Hold the room's lock and yield the room, re-read after acquiring.

        Yields None without locking if the room does not exist, and None
        under the lock if it was destroyed while we waited.
        """
        lock = self._registry.lock_for(room_id)
        if lock is None:
            yield None
            return
        async with lock:
            with structlog.contextvars.bound_contextvars(room_id=room_id):
                yield self._registry.get_room(room_id)

    async def _remove_member(self, room: Room, connection_id: str) -> None:
        """Remove one member (caller holds the room lock) and tell whoever is left."""
        if connection_id == room.creator_id:
            await self._teardown(self._registry.leave_as_creator(room.room_id, connection_id))
            return

        result = self._registry.remove_player(room.room_id, connection_id)
        self._hub.remove_from_group(connection_id, room.room_id)
        if result.destroyed is not None:
            await self._teardown(result.destroyed)
            return

        await self._broadcast_player_list(room)
        for index, member_id in enumerate(room.member_ids):
            await self._hub.send_to(member_id, YourIndexMessage(room_id=room.room_id, index=index).model_dump())
        current = room.current_player
        if current is not None:
            await self._hub.broadcast(
                room.room_id,
                TurnChangedMessage(
                    room_id=room.room_id,
                    turn_index=room.turn_index,
                    player_id=current.connection_id,
                ).model_dump(),
            )
            await self._hub.broadcast(
                room.room_id,
                SyncPositionsMessage(room_id=room.room_id, players=room.get_player_info()).model_dump(),
            )

    async def _teardown(self, destroyed: DestroyedRoom | None) -> None:
        """Notify former members of a destroyed room and dissolve its group."""
        if destroyed is None:
            return
        message = RoomDestroyedMessage(room_id=destroyed.room_id, reason=destroyed.reason).model_dump()
        await self._hub.broadcast(destroyed.room_id, message)
        self._hub.discard_group(destroyed.room_id)

    async def _broadcast_player_list(self, room: Room) -> None:
        await self._hub.broadcast(room.room_id, self._player_list_message(room))

    @staticmethod
    def _player_list_message(room: Room) -> dict[str, Any]:
        return PlayerListUpdateMessage(
            room_id=room.room_id,
            creator_id=room.creator_id,
            max_players=room.max_players,
            players=room.get_player_info(),
        ).model_dump()

    @staticmethod
    async def _send_error(connection: ConnectionProtocol, error: RoomError) -> None:
        logger.warning("session error sent to client", error_code=error.code.value, error_message=error.message)
        await connection.send_message(ErrorMessage(code=error.code, message=error.message).model_dump())
