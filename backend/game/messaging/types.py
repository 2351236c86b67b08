from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, Field, TypeAdapter

from game.session.types import PlayerInfo, RoomSummary

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

_MAX_NAME_LENGTH = 50
_MAX_PASSWORD_LENGTH = 100
_ROOM_ID_FIELD = Field(min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9_-]+$")


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    GET_ROOMS = "get_rooms"
    REQUEST_PLAYER_LIST = "request_player_list"
    START_GAME = "start_game"
    ROLL_DICE = "roll_dice"
    MOVE_COMPLETE = "move_complete"
    LEAVE_ROOM = "leave_room"
    PING = "ping"


class SessionMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    JOIN_SUCCESS = "join_success"
    JOIN_FAILED = "join_failed"
    ERROR = "error_message"
    PLAYER_JOINED = "player_joined"
    PLAYER_LIST_UPDATE = "player_list_update"
    YOUR_INDEX = "your_index"
    ROOM_LIST = "room_list"
    GAME_STARTED = "game_started"
    DICE_RESULT = "dice_result"
    TURN_CHANGED = "turn_changed"
    SYNC_POSITIONS = "sync_positions"
    GAME_FINISHED = "game_finished"
    ROOM_DESTROYED = "room_destroyed"
    PONG = "pong"


class SessionErrorCode(StrEnum):
    INVALID_PLAYER_COUNT = "invalid_player_count"
    ROOM_NOT_FOUND = "room_not_found"
    IS_CREATOR = "is_creator"
    ALREADY_IN_ROOM = "already_in_room"
    WRONG_PASSWORD = "wrong_password"
    ROOM_FULL = "room_full"
    NOT_CREATOR = "not_creator"
    TOO_FEW_PLAYERS = "too_few_players"
    NOT_YOUR_TURN = "not_your_turn"
    GAME_NOT_STARTED = "game_not_started"
    GAME_ALREADY_STARTED = "game_already_started"
    SERVER_FULL = "server_full"
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"


class RoomDestroyedReason(StrEnum):
    CREATOR_LEFT = "creator_left"
    EMPTY = "empty"
    GAME_FINISHED = "game_finished"


def _reject_control_chars(value: str) -> str:
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in value):
        raise ValueError("must not contain control characters")
    return value


_Name = Annotated[str, Field(max_length=_MAX_NAME_LENGTH), AfterValidator(_reject_control_chars)]
_Password = Annotated[str, Field(max_length=_MAX_PASSWORD_LENGTH)]


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    # range is checked by the registry so the client gets invalid_player_count
    max_players: int
    room_name: _Name | None = None
    password: _Password | None = None
    player_name: _Name | None = None
    level: _Name | None = None
    board_index: int | None = Field(default=None, ge=0)


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_id: str = _ROOM_ID_FIELD
    password: _Password | None = None
    player_name: _Name | None = None


class GetRoomsMessage(BaseModel):
    type: Literal[ClientMessageType.GET_ROOMS] = ClientMessageType.GET_ROOMS


class RequestPlayerListMessage(BaseModel):
    type: Literal[ClientMessageType.REQUEST_PLAYER_LIST] = ClientMessageType.REQUEST_PLAYER_LIST
    room_id: str = _ROOM_ID_FIELD


class StartGameMessage(BaseModel):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME
    room_id: str = _ROOM_ID_FIELD


class RollDiceMessage(BaseModel):
    type: Literal[ClientMessageType.ROLL_DICE] = ClientMessageType.ROLL_DICE
    room_id: str = _ROOM_ID_FIELD


class MoveCompleteMessage(BaseModel):
    type: Literal[ClientMessageType.MOVE_COMPLETE] = ClientMessageType.MOVE_COMPLETE
    room_id: str = _ROOM_ID_FIELD
    player_index: int = Field(ge=0)
    new_pos: int = Field(ge=0, le=100)


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM
    room_id: str = _ROOM_ID_FIELD


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = (
    CreateRoomMessage
    | JoinRoomMessage
    | GetRoomsMessage
    | RequestPlayerListMessage
    | StartGameMessage
    | RollDiceMessage
    | MoveCompleteMessage
    | LeaveRoomMessage
    | PingMessage
)


class RoomCreatedMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_CREATED] = SessionMessageType.ROOM_CREATED
    room_id: str
    room_name: str
    max_players: int
    has_password: bool
    level: str | None
    board_index: int | None


class JoinSuccessMessage(BaseModel):
    type: Literal[SessionMessageType.JOIN_SUCCESS] = SessionMessageType.JOIN_SUCCESS
    room_id: str
    room_name: str
    player_index: int
    max_players: int
    level: str | None
    board_index: int | None
    players: list[PlayerInfo]


class JoinFailedMessage(BaseModel):
    type: Literal[SessionMessageType.JOIN_FAILED] = SessionMessageType.JOIN_FAILED
    room_id: str
    code: SessionErrorCode
    message: str


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: SessionErrorCode
    message: str


class PlayerJoinedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_JOINED] = SessionMessageType.PLAYER_JOINED
    room_id: str
    player: PlayerInfo
    player_index: int


class PlayerListUpdateMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_LIST_UPDATE] = SessionMessageType.PLAYER_LIST_UPDATE
    room_id: str
    creator_id: str
    max_players: int
    players: list[PlayerInfo]


class YourIndexMessage(BaseModel):
    type: Literal[SessionMessageType.YOUR_INDEX] = SessionMessageType.YOUR_INDEX
    room_id: str
    index: int


class RoomListMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_LIST] = SessionMessageType.ROOM_LIST
    rooms: list[RoomSummary]


class GameStartedMessage(BaseModel):
    type: Literal[SessionMessageType.GAME_STARTED] = SessionMessageType.GAME_STARTED
    room_id: str
    turn_index: int
    level: str | None
    board_index: int | None
    players: list[PlayerInfo]


class DiceResultMessage(BaseModel):
    type: Literal[SessionMessageType.DICE_RESULT] = SessionMessageType.DICE_RESULT
    room_id: str
    player_index: int
    player_id: str
    value: int


class TurnChangedMessage(BaseModel):
    type: Literal[SessionMessageType.TURN_CHANGED] = SessionMessageType.TURN_CHANGED
    room_id: str
    turn_index: int
    player_id: str


class SyncPositionsMessage(BaseModel):
    type: Literal[SessionMessageType.SYNC_POSITIONS] = SessionMessageType.SYNC_POSITIONS
    room_id: str
    players: list[PlayerInfo]


class GameFinishedMessage(BaseModel):
    type: Literal[SessionMessageType.GAME_FINISHED] = SessionMessageType.GAME_FINISHED
    room_id: str
    winner_index: int
    winner: PlayerInfo
    ranking: list[PlayerInfo]


class RoomDestroyedMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_DESTROYED] = SessionMessageType.ROOM_DESTROYED
    room_id: str
    reason: RoomDestroyedReason


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG


_ClientMessageUnion = Annotated[ClientMessage, Field(discriminator="type")]

_client_message_adapter: TypeAdapter[_ClientMessageUnion] = TypeAdapter(_ClientMessageUnion)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw dict into a typed ClientMessage."""
    return _client_message_adapter.validate_python(data)
