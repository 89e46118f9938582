"""Best-effort delivery of messages to one session or a whole room."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from relay.messaging.protocol import encode

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol
    from relay.session.models import Room

logger = structlog.get_logger()

DEFAULT_SEND_TIMEOUT = 5.0

_SEND_ERRORS = (ConnectionError, RuntimeError, OSError, TimeoutError)


async def _deliver(connection: ConnectionProtocol, payload: str, timeout: float) -> bool:
    try:
        async with asyncio.timeout(timeout):
            await connection.send_text(payload)
    except _SEND_ERRORS as e:
        logger.debug("delivery failed", connection_id=connection.connection_id, error=repr(e))
        return False
    return True


async def unicast(
    connection: ConnectionProtocol,
    message: dict[str, Any],
    timeout: float = DEFAULT_SEND_TIMEOUT,
) -> bool:
    """Send a message to a single connection. Return True if it was delivered."""
    return await _deliver(connection, encode(message), timeout)


async def broadcast(
    room: Room,
    message: dict[str, Any],
    exclude_player_id: str | None = None,
    timeout: float = DEFAULT_SEND_TIMEOUT,
) -> int:
    """Send a message to every session in the room except exclude_player_id.

    The message is serialized once and sent to all recipients concurrently,
    so a stalled peer costs the whole broadcast at most one timeout.
    Membership is snapshotted via list() so sessions joining or leaving
    while we yield on a send are not visited. A failed send never stops
    delivery to the remaining recipients.
    Return the number of successful deliveries.
    """
    payload = encode(message)
    recipients = [session for session in list(room.sessions.values()) if session.player_id != exclude_player_id]
    results = await asyncio.gather(*(_deliver(session.connection, payload, timeout) for session in recipients))
    return sum(results)
