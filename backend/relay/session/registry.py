"""Process-scoped registry of live rooms."""

from __future__ import annotations

import structlog
from pydantic import BaseModel

from relay.session.models import Room, RoomKey

logger = structlog.get_logger()


class RegistrySnapshot(BaseModel):
    """Aggregate counts for status reporting."""

    room_count: int
    player_count: int


class RoomRegistry:
    """Map RoomKey to Room. The single source of truth for which rooms exist.

    Rooms are created lazily on first reference and removed by sweep_empty().
    All methods are synchronous, so on a single event loop each call observes
    and leaves a consistent view without extra locking. Membership changes
    inside a room are guarded by that room's own lock.
    """

    def __init__(self) -> None:
        self._rooms: dict[RoomKey, Room] = {}

    def get_or_create(self, game_id: str | None, room_id: str | None) -> Room:
        """Return the room for (game_id, room_id), creating an empty one if needed."""
        return self.get_or_create_key(RoomKey.from_params(game_id, room_id))

    def get_or_create_key(self, key: RoomKey) -> Room:
        room = self._rooms.get(key)
        if room is None:
            room = Room(key=key)
            self._rooms[key] = room
            logger.debug("room created", room=str(key))
        return room

    def get(self, key: RoomKey) -> Room | None:
        return self._rooms.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._rooms

    def sweep_empty(self) -> int:
        """Remove every room that currently has no sessions. Return how many were removed.

        A room whose lock is held is skipped: a join may be in progress and
        the room will be revisited by the sweep that follows the next removal.
        """
        empty_keys = [key for key, room in self._rooms.items() if room.is_empty and not room.lock.locked()]
        for key in empty_keys:
            del self._rooms[key]
            logger.debug("room removed", room=str(key))
        return len(empty_keys)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def player_count(self) -> int:
        return sum(room.player_count for room in self._rooms.values())

    def snapshot(self) -> RegistrySnapshot:
        rooms = list(self._rooms.values())
        return RegistrySnapshot(
            room_count=len(rooms),
            player_count=sum(room.player_count for room in rooms),
        )
