"""Abstract connection protocol for MessagePack binary communication."""

from abc import ABC, abstractmethod
from typing import Any

from game.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    One client connection as seen by the session layer.

    Session code only needs an opaque id and a way to send and receive
    messages, so it can be driven by an in-memory fake in tests.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Opaque identifier, stable for the lifetime of the connection."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """
        Send a message to the client using MessagePack encoding.
        """
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        raw = await self.receive_bytes()
        return decode(raw)
