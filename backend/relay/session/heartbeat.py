"""Monitor client liveness with a periodic ping sweep."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

from relay.messaging.types import ServerPingMessage
from relay.session.broadcast import unicast

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

HEARTBEAT_INTERVAL = 30.0  # seconds between sweeps
HEARTBEAT_CLOSE_CODE = 1001
HEARTBEAT_CLOSE_REASON = "heartbeat_timeout"


class LivenessMonitor:
    """Probe opted-in connections each interval and terminate the silent ones.

    Transport liveness comes from uvicorn's WebSocket ping frames
    (ws_ping_interval / ws_ping_timeout): a peer that stops answering them is
    closed by the server, which ends its receive loop and runs the normal
    disconnect cleanup. Nothing here touches those connections.

    On top of that, a client may opt into an application-level probe by
    sending a ping message. From then on each sweep terminates it if it is
    still pending from the previous round, otherwise marks it pending and
    sends it a ping message. Any inbound frame resets the flag via
    mark_alive(). A client that never opts in is never probed or terminated.
    """

    def __init__(self, interval: float = HEARTBEAT_INTERVAL, send_timeout: float = 5.0) -> None:
        self._interval = interval
        self._send_timeout = send_timeout
        self._connections: dict[str, ConnectionProtocol] = {}
        self._alive: dict[str, bool] = {}
        self._probed: set[str] = set()
        self._task: asyncio.Task[None] | None = None

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection
        self._alive[connection.connection_id] = True

    def unregister(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)
        self._alive.pop(connection_id, None)
        self._probed.discard(connection_id)

    def enable_probes(self, connection_id: str) -> None:
        """Include a tracked connection in the application-level probe from the next sweep."""
        if connection_id in self._connections:
            self._probed.add(connection_id)

    def probes_enabled(self, connection_id: str) -> bool:
        return connection_id in self._probed

    def mark_alive(self, connection_id: str) -> None:
        if connection_id in self._alive:
            self._alive[connection_id] = True

    def is_alive(self, connection_id: str) -> bool:
        return self._alive.get(connection_id, False)

    async def sweep(self) -> int:
        """Run one probe/terminate round. Return the number of terminated connections."""
        tracked = [self._connections[connection_id] for connection_id in self._probed]
        results = await asyncio.gather(*(self._check(connection) for connection in tracked))
        return sum(results)

    async def _check(self, connection: ConnectionProtocol) -> bool:
        connection_id = connection.connection_id
        if connection_id not in self._probed:
            return False
        if not self._alive[connection_id]:
            logger.info("heartbeat timeout, terminating", connection_id=connection_id)
            self.unregister(connection_id)
            try:
                async with asyncio.timeout(self._send_timeout):
                    await connection.close(code=HEARTBEAT_CLOSE_CODE, reason=HEARTBEAT_CLOSE_REASON)
            except (ConnectionError, RuntimeError, OSError, TimeoutError) as e:
                logger.debug("terminate failed", connection_id=connection_id, error=repr(e))
            return True

        self._alive[connection_id] = False
        await unicast(connection, ServerPingMessage().to_wire(), timeout=self._send_timeout)
        return False

    def start(self) -> None:
        """Start the periodic sweep task. Idempotent; an interval of 0 disables it."""
        if self._interval <= 0:
            return
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("liveness sweep failed")
