from __future__ import annotations

from typing import TYPE_CHECKING

from game.tests.mocks import MockConnection

if TYPE_CHECKING:
    from game.session.manager import SessionManager


def connect(manager: SessionManager, connection_id: str | None = None) -> MockConnection:
    conn = MockConnection(connection_id)
    manager.register_connection(conn)
    return conn


async def create_room_with_players(
    manager: SessionManager,
    num_players: int = 2,
    max_players: int = 4,
    *,
    start: bool = False,
    password: str | None = None,
) -> tuple[str, list[MockConnection]]:
    """Create a room through the public handlers and seat ``num_players`` in it.

    connections[0] is the creator. Message history is cleared before
    returning so tests only see what their own actions produce.
    """
    creator = connect(manager, "conn-0")
    await manager.create_room(creator, max_players=max_players, password=password, player_name="P0")
    room_id = creator.messages_of("room_created")[0]["room_id"]

    connections = [creator]
    for i in range(1, num_players):
        conn = connect(manager, f"conn-{i}")
        await manager.join_room(conn, room_id, password=password, player_name=f"P{i}")
        connections.append(conn)

    if start:
        await manager.start_game(creator, room_id)

    for conn in connections:
        conn._outbox.clear()
    return room_id, connections
