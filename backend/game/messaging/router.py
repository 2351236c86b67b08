from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from game.messaging.types import (
    CreateRoomMessage,
    ErrorMessage,
    GetRoomsMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    MoveCompleteMessage,
    PingMessage,
    RequestPlayerListMessage,
    RollDiceMessage,
    SessionErrorCode,
    StartGameMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from game.messaging.protocol import ConnectionProtocol
    from game.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes incoming messages to appropriate handlers.

    This class contains pure business logic and can be tested
    without real WebSocket connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await connection.send_message(
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
            )
            return

        try:
            await self._dispatch(connection, message)
        except ConnectionError:
            # the acting connection went away mid-reply; disconnect handling cleans up
            raise
        except Exception:
            logger.exception("unhandled error while handling message", message_type=message.type.value)

    async def _dispatch(self, connection: ConnectionProtocol, message: Any) -> None:  # noqa: ANN401
        manager = self._session_manager
        if isinstance(message, CreateRoomMessage):
            await manager.create_room(
                connection,
                max_players=message.max_players,
                room_name=message.room_name,
                password=message.password,
                player_name=message.player_name,
                level=message.level,
                board_index=message.board_index,
            )
        elif isinstance(message, JoinRoomMessage):
            await manager.join_room(
                connection,
                message.room_id,
                password=message.password,
                player_name=message.player_name,
            )
        elif isinstance(message, GetRoomsMessage):
            await manager.send_room_list(connection)
        elif isinstance(message, RequestPlayerListMessage):
            await manager.send_player_list(connection, message.room_id)
        elif isinstance(message, StartGameMessage):
            await manager.start_game(connection, message.room_id)
        elif isinstance(message, RollDiceMessage):
            await manager.roll_dice(connection, message.room_id)
        elif isinstance(message, MoveCompleteMessage):
            await manager.move_complete(
                connection,
                message.room_id,
                player_index=message.player_index,
                new_pos=message.new_pos,
            )
        elif isinstance(message, LeaveRoomMessage):
            await manager.leave_room(connection, message.room_id)
        elif isinstance(message, PingMessage):
            await manager.handle_ping(connection)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.handle_disconnect(connection)
