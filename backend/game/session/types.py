"""
Pydantic models for the session layer.
"""

from pydantic import BaseModel


class PlayerInfo(BaseModel):
    """Player info for room state messages."""

    id: str
    name: str
    pos: int


class RoomSummary(BaseModel):
    """Room information for the lobby listing."""

    room_id: str
    room_name: str
    current_players: int
    max_players: int
    has_password: bool
    started: bool
