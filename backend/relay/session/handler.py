"""Per-connection protocol handler: dispatch inbound messages and drive room state."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from relay.messaging.types import (
    DEFAULT_MAX_MESSAGE_BYTES,
    CustomBroadcast,
    CustomMessage,
    ErrorMessage,
    JoinMessage,
    PingMessage,
    PlayerInfo,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    PongMessage,
    RejectReason,
    RoomStateMessage,
    ServerPongMessage,
    StateUpdateBroadcast,
    StateUpdateMessage,
    parse_client_message,
)
from relay.session.broadcast import DEFAULT_SEND_TIMEOUT, broadcast, unicast
from relay.session.models import DEFAULT_USERNAME, ConnectionState, Outcome, Session

if TYPE_CHECKING:
    from typing import Any

    from relay.messaging.protocol import ConnectionProtocol
    from relay.session.heartbeat import LivenessMonitor
    from relay.session.models import Room, RoomKey
    from relay.session.registry import RoomRegistry

logger = structlog.get_logger()

DEFAULT_MAX_PLAYERS = 50

ROOM_FULL_CLOSE_CODE = 1008
ROOM_FULL_CLOSE_REASON = "room_full"


class ConnectionHandler:
    """Interpret one connection's messages against the room it is routed to.

    The connection moves connected -> joined -> closed. Every public handler
    returns an Outcome; IGNORED means nothing was sent back to the client.
    Messages of one connection are handled sequentially by the caller, and
    every room mutation and broadcast happens under the room lock, so a
    sender's messages reach each peer in the order they were processed.
    """

    def __init__(
        self,
        connection: ConnectionProtocol,
        key: RoomKey,
        registry: RoomRegistry,
        *,
        max_players: int = DEFAULT_MAX_PLAYERS,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
        liveness: LivenessMonitor | None = None,
    ) -> None:
        self._connection = connection
        self._key = key
        self._registry = registry
        self._max_players = max_players
        self._send_timeout = send_timeout
        self._max_message_bytes = max_message_bytes
        self._liveness = liveness
        self._state = ConnectionState.CONNECTED
        self._room: Room | None = None
        self._session: Session | None = None
        self._log = logger.bind(room=str(key), connection_id=connection.connection_id)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def key(self) -> RoomKey:
        return self._key

    @property
    def session(self) -> Session | None:
        return self._session

    async def handle_text(self, raw: str) -> Outcome:
        """Parse one inbound frame and dispatch it by type.

        Unparsable, oversized or invalid frames are dropped without a reply.
        """
        if self._liveness is not None:
            self._liveness.mark_alive(self._connection.connection_id)

        if self._state is ConnectionState.CLOSED:
            return Outcome.IGNORED

        try:
            message = parse_client_message(raw, self._max_message_bytes)
        except (ValueError, RecursionError) as e:
            self._log.debug("ignored malformed message", error=str(e))
            return Outcome.IGNORED

        if isinstance(message, JoinMessage):
            return await self.handle_join(message)
        if isinstance(message, StateUpdateMessage):
            return await self.handle_state_update(message)
        if isinstance(message, CustomMessage):
            return await self.handle_custom(message)
        if isinstance(message, PingMessage):
            # A client that pings us speaks the application heartbeat.
            if self._liveness is not None:
                self._liveness.enable_probes(self._connection.connection_id)
            await self._send(ServerPongMessage().to_wire())
            return Outcome.OK
        if isinstance(message, PongMessage):
            return Outcome.OK
        return Outcome.IGNORED  # pragma: no cover

    async def handle_join(self, message: JoinMessage) -> Outcome:
        if self._state is ConnectionState.CLOSED:
            return Outcome.IGNORED
        if self._state is ConnectionState.JOINED:
            await self._send_error(RejectReason.ALREADY_JOINED)
            return Outcome.REJECTED

        player_id = message.player_id
        username = message.username or DEFAULT_USERNAME

        while True:
            room = self._registry.get_or_create_key(self._key)
            async with room.lock:
                # The room may have been swept while we waited for its lock.
                if self._registry.get(self._key) is not room:
                    continue

                if room.is_full(self._max_players):
                    self._log.info("join rejected", reason="room_full", player_id=player_id)
                    self._state = ConnectionState.CLOSED
                    await self._send_error(RejectReason.ROOM_FULL)
                    await self._connection.close(code=ROOM_FULL_CLOSE_CODE, reason=ROOM_FULL_CLOSE_REASON)
                    return Outcome.REJECTED

                if room.has_player(player_id):
                    self._log.info("join rejected", reason="player_id_taken", player_id=player_id)
                    await self._send_error(RejectReason.PLAYER_ID_TAKEN)
                    return Outcome.REJECTED

                # Snapshot before inserting so the joiner never sees itself.
                players = [PlayerInfo(**info) for info in room.get_player_info()]
                session = Session(connection=self._connection, player_id=player_id, username=username)
                room.sessions[player_id] = session
                self._room = room
                self._session = session
                self._state = ConnectionState.JOINED

                await self._send(RoomStateMessage(players=players).to_wire())
                await broadcast(
                    room,
                    PlayerJoinedMessage(player_id=player_id, username=username).to_wire(),
                    exclude_player_id=player_id,
                    timeout=self._send_timeout,
                )
                player_count = room.player_count

            self._log.info("player joined", player_id=player_id, username=username, player_count=player_count)
            return Outcome.OK

    async def handle_state_update(self, message: StateUpdateMessage) -> Outcome:
        room, session = self._room, self._session
        if self._state is not ConnectionState.JOINED or room is None or session is None:
            return Outcome.IGNORED

        async with room.lock:
            session.merge_state(message.data)
            await broadcast(
                room,
                StateUpdateBroadcast(
                    player_id=session.player_id,
                    username=session.username,
                    data=message.data,
                ).to_wire(),
                exclude_player_id=session.player_id,
                timeout=self._send_timeout,
            )
        return Outcome.OK

    async def handle_custom(self, message: CustomMessage) -> Outcome:
        room, session = self._room, self._session
        if self._state is not ConnectionState.JOINED or room is None or session is None:
            return Outcome.IGNORED

        async with room.lock:
            await broadcast(
                room,
                CustomBroadcast(player_id=session.player_id, event=message.event, data=message.data).to_wire(),
                exclude_player_id=session.player_id,
                timeout=self._send_timeout,
            )
        return Outcome.OK

    async def handle_disconnect(self) -> Outcome:
        """Move to closed, leaving the room and notifying peers if the client had joined.

        Safe to call more than once; only the first call after a join
        broadcasts player_left.
        """
        previous = self._state
        self._state = ConnectionState.CLOSED
        room, session = self._room, self._session
        self._room = None
        self._session = None

        if previous is not ConnectionState.JOINED or room is None or session is None:
            self._registry.sweep_empty()
            return Outcome.IGNORED

        async with room.lock:
            removed = room.sessions.get(session.player_id) is session
            if removed:
                del room.sessions[session.player_id]
                await broadcast(
                    room,
                    PlayerLeftMessage(player_id=session.player_id, username=session.username).to_wire(),
                    timeout=self._send_timeout,
                )
            player_count = room.player_count

        self._registry.sweep_empty()
        if not removed:
            return Outcome.IGNORED

        self._log.info(
            "player left",
            player_id=session.player_id,
            username=session.username,
            player_count=player_count,
        )
        return Outcome.OK

    async def _send(self, message: dict[str, Any]) -> bool:
        return await unicast(self._connection, message, timeout=self._send_timeout)

    async def _send_error(self, reason: RejectReason) -> None:
        await self._send(ErrorMessage(message=reason.value).to_wire())
