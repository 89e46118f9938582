"""Shared helpers for relay tests."""

import json

from relay.session.models import RoomKey

LOBBY = RoomKey(game_id="1", room_id="lobby")
ARENA = RoomKey(game_id="1", room_id="arena")


def send_ws(ws, data: dict) -> None:
    """Send a JSON message over a test WebSocket."""
    ws.send_text(json.dumps(data))


def join_ws(ws, player_id: str, username: str | None = None) -> dict:
    """Send a join and return the room_state reply."""
    message = {"type": "join", "playerId": player_id}
    if username is not None:
        message["username"] = username
    send_ws(ws, message)
    reply = ws.receive_json()
    assert reply["type"] == "room_state"
    return reply
