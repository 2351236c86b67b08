"""Connection registry with per-room broadcast groups."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from game.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

_SEND_ERRORS = (RuntimeError, OSError, ConnectionError)


class ConnectionHub:
    """Track live connections and the broadcast groups they belong to.

    A group is addressed by room id. Sends to a dead connection are
    swallowed per recipient so one closed socket never aborts a fan-out.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionProtocol] = {}
        self._groups: dict[str, dict[str, None]] = {}  # group_id -> ordered set of connection_ids

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def connection_ids(self) -> list[str]:
        return list(self._connections)

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> None:
        """Forget a connection and drop it from every group."""
        self._connections.pop(connection_id, None)
        for group_id in list(self._groups):
            self.remove_from_group(connection_id, group_id)

    def add_to_group(self, connection_id: str, group_id: str) -> None:
        self._groups.setdefault(group_id, {})[connection_id] = None

    def remove_from_group(self, connection_id: str, group_id: str) -> None:
        members = self._groups.get(group_id)
        if members is None:
            return
        members.pop(connection_id, None)
        if not members:
            del self._groups[group_id]

    def discard_group(self, group_id: str) -> list[str]:
        """Dissolve a group and return its former members."""
        return list(self._groups.pop(group_id, {}))

    def group_members(self, group_id: str) -> list[str]:
        return list(self._groups.get(group_id, {}))

    async def send_to(self, connection_id: str, message: dict[str, Any]) -> bool:
        """Send to one connection. Returns True on success."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            await connection.send_message(message)
        except _SEND_ERRORS:
            logger.debug("send failed", connection_id=connection_id, message_type=message.get("type"))
            return False
        return True

    async def broadcast(
        self,
        group_id: str,
        message: dict[str, Any],
        exclude: str | None = None,
    ) -> None:
        """Send to every member of a group, optionally skipping one connection.

        Members are snapshotted first so a concurrent leave cannot mutate the
        group while we yield on a send.
        """
        for connection_id in self.group_members(group_id):
            if connection_id == exclude:
                continue
            await self.send_to(connection_id, message)
