"""Abstract client connection used by the session layer."""

from abc import ABC, abstractmethod
from typing import Any

from tabletop.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    One client connection, independent of the transport.

    The session layer only talks to this interface, so it can be driven
    in tests without a real websocket.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Identifier assigned when the connection was accepted."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        """Encode a message as MessagePack and send it."""
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        """Receive one frame and decode it as MessagePack."""
        return decode(await self.receive_bytes())
