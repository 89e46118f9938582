"""WebSocket transport adapter and connection acceptor."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from relay.messaging.protocol import ConnectionProtocol
from relay.session.handler import ConnectionHandler
from relay.session.models import ConnectionState, RoomKey

if TYPE_CHECKING:
    from relay.server.settings import RelayServerSettings
    from relay.session.heartbeat import LivenessMonitor
    from relay.session.registry import RoomRegistry

logger = structlog.get_logger()


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())
        self._closed = False

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_text(self, data: str) -> None:
        if self._closed:
            raise ConnectionError("WebSocket already closed")
        try:
            await self._websocket.send_text(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_text(self) -> str:
        """Receive one frame. Binary frames are decoded as UTF-8."""
        if self._closed:
            raise ConnectionError("WebSocket already closed")
        try:
            message = await self._websocket.receive()
        except (WebSocketDisconnect, RuntimeError):
            raise ConnectionError("WebSocket already disconnected") from None

        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket already disconnected")
        text = message.get("text")
        if text is not None:
            return text
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._closed:
            return
        self._closed = True
        with contextlib.suppress(WebSocketDisconnect, RuntimeError, OSError):
            await self._websocket.close(code=code, reason=reason)


class _RelayContext:
    """Bundles the shared state a connection needs, extracted from app.state."""

    __slots__ = ("liveness", "registry", "settings")

    def __init__(self, websocket: WebSocket) -> None:
        self.settings: RelayServerSettings = websocket.app.state.settings
        self.registry: RoomRegistry = websocket.app.state.registry
        self.liveness: LivenessMonitor = websocket.app.state.liveness


async def websocket_endpoint(websocket: WebSocket) -> None:
    """Accept a relay connection and run its receive loop until it closes."""
    ctx = _RelayContext(websocket)
    key = RoomKey.from_params(websocket.query_params.get("game"), websocket.query_params.get("room"))

    await websocket.accept()

    connection = WebSocketConnection(websocket)
    ctx.registry.get_or_create_key(key)
    handler = ConnectionHandler(
        connection,
        key,
        ctx.registry,
        max_players=ctx.settings.max_players,
        send_timeout=ctx.settings.send_timeout,
        max_message_bytes=ctx.settings.max_message_bytes,
        liveness=ctx.liveness,
    )
    structlog.contextvars.bind_contextvars(connection_id=connection.connection_id, room=str(key))
    ctx.liveness.register(connection)
    logger.info("websocket connected")

    try:
        while handler.state is not ConnectionState.CLOSED:
            raw = await connection.receive_text()
            await handler.handle_text(raw)
    except ConnectionError:
        pass
    except Exception:
        logger.exception("unexpected error in relay websocket")
        await connection.close(code=1011, reason="internal_error")
    finally:
        ctx.liveness.unregister(connection.connection_id)
        await handler.handle_disconnect()
        logger.info("websocket disconnected")
        structlog.contextvars.clear_contextvars()
