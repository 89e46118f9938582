"""Abstract connection protocol for JSON text communication."""

import json
from abc import ABC, abstractmethod
from typing import Any


def encode(data: dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"))


class ConnectionProtocol(ABC):
    """
    Abstract interface for a client connection.

    This abstraction allows message handling logic to be tested
    without real WebSocket connections.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection."""
        ...

    @abstractmethod
    async def send_text(self, data: str) -> None:
        """
        Send an already-serialized frame to the client.

        Raises ConnectionError if the transport is no longer open.
        """
        ...

    @abstractmethod
    async def receive_text(self) -> str:
        """
        Receive one frame from the client.

        Raises ConnectionError once the client has disconnected.
        """
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        """
        Close the connection. Closing twice is a no-op.
        """
        ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_text(encode(data))
