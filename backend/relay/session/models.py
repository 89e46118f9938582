from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from relay.messaging.protocol import ConnectionProtocol

DEFAULT_GAME_ID = "unknown"
DEFAULT_ROOM_ID = "default"
DEFAULT_USERNAME = "Player"


class Outcome(StrEnum):
    """Result of a protocol operation.

    IGNORED covers inputs that produce no client-visible response.
    """

    OK = "ok"
    REJECTED = "rejected"
    IGNORED = "ignored"


class ConnectionState(StrEnum):
    CONNECTED = "connected"
    JOINED = "joined"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class RoomKey:
    game_id: str
    room_id: str

    @classmethod
    def from_params(cls, game_id: str | None, room_id: str | None) -> RoomKey:
        """Build a key from raw routing parameters, applying defaults for missing values."""
        return cls(game_id=game_id or DEFAULT_GAME_ID, room_id=room_id or DEFAULT_ROOM_ID)

    def __str__(self) -> str:
        return f"{self.game_id}__{self.room_id}"


@dataclass
class Session:
    """A joined client inside a room.

    state holds the accumulated result of every state_update delta.
    """

    connection: ConnectionProtocol
    player_id: str
    username: str = DEFAULT_USERNAME
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    def merge_state(self, delta: dict[str, Any]) -> None:
        self.state = {**self.state, **delta}


@dataclass
class Room:
    """Broadcast domain for one RoomKey.

    sessions is keyed by player_id. Mutations and broadcasts happen while
    holding lock so join/leave/broadcast are linearizable per room.
    """

    key: RoomKey
    sessions: dict[str, Session] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def player_count(self) -> int:
        return len(self.sessions)

    @property
    def is_empty(self) -> bool:
        return self.player_count == 0

    def is_full(self, max_players: int) -> bool:
        return self.player_count >= max_players

    def has_player(self, player_id: str) -> bool:
        return player_id in self.sessions

    def get_player_info(self) -> list[dict[str, Any]]:
        """Return a snapshot of current members for room_state messages."""
        return [
            {"id": session.player_id, "username": session.username, "data": dict(session.state)}
            for session in self.sessions.values()
        ]
