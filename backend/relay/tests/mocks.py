import asyncio
import json
from typing import Any
from uuid import uuid4

from relay.messaging.protocol import ConnectionProtocol


class MockConnection(ConnectionProtocol):
    def __init__(self, connection_id: str | None = None) -> None:
        self._connection_id = connection_id or str(uuid4())
        self._inbox: asyncio.Queue[str] = asyncio.Queue()
        self._outbox: list[dict[str, Any]] = []
        self._closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return self._outbox.copy()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def sent_of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self._outbox if m.get("type") == message_type]

    def clear(self) -> None:
        self._outbox.clear()

    async def send_text(self, data: str) -> None:
        if self._closed:
            raise ConnectionError("Connection is closed")
        # decode and store for test inspection
        self._outbox.append(json.loads(data))

    async def receive_text(self) -> str:
        if self._closed:
            raise ConnectionError("Connection is closed")
        return await self._inbox.get()

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self._closed = True
        self.close_code = code
        self.close_reason = reason

    def simulate_receive(self, data: dict[str, Any] | str) -> None:
        """Queue a frame as if the client had sent it."""
        self._inbox.put_nowait(data if isinstance(data, str) else json.dumps(data))


class FailingConnection(MockConnection):
    """Connection whose sends always fail, like a peer that vanished mid-broadcast."""

    async def send_text(self, data: str) -> None:
        raise ConnectionError("broken pipe")


class StalledConnection(MockConnection):
    """Connection whose sends never complete."""

    async def send_text(self, data: str) -> None:
        await asyncio.Event().wait()
