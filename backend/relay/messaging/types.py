import json
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

DEFAULT_MAX_MESSAGE_BYTES = 64 * 1024


class ClientMessageType(StrEnum):
    JOIN = "join"
    STATE_UPDATE = "state_update"
    CUSTOM = "custom"
    PING = "ping"
    PONG = "pong"


class ServerMessageType(StrEnum):
    ROOM_STATE = "room_state"
    PLAYER_JOINED = "player_joined"
    STATE_UPDATE = "state_update"
    CUSTOM = "custom"
    PLAYER_LEFT = "player_left"
    ERROR = "error"
    PING = "ping"
    PONG = "pong"


class RejectReason(StrEnum):
    ROOM_FULL = "Room is full"
    ALREADY_JOINED = "Already joined"
    PLAYER_ID_TAKEN = "Player id already in room"


# --- Client -> server ---


class JoinMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal[ClientMessageType.JOIN] = ClientMessageType.JOIN
    player_id: str = Field(alias="playerId", min_length=1)
    username: str | None = None

    @field_validator("username", mode="before")
    @classmethod
    def coerce_username(cls, v: Any) -> str | None:  # noqa: ANN401
        """Numbers become their text form; any other non-string falls back to the default name."""
        if isinstance(v, str):
            return v
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return None


class StateUpdateMessage(BaseModel):
    type: Literal[ClientMessageType.STATE_UPDATE] = ClientMessageType.STATE_UPDATE
    data: dict[str, Any]


class CustomMessage(BaseModel):
    type: Literal[ClientMessageType.CUSTOM] = ClientMessageType.CUSTOM
    event: str
    data: Any = None


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


class PongMessage(BaseModel):
    type: Literal[ClientMessageType.PONG] = ClientMessageType.PONG


ClientMessage = Annotated[
    JoinMessage | StateUpdateMessage | CustomMessage | PingMessage | PongMessage,
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(
    raw: str,
    max_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
) -> JoinMessage | StateUpdateMessage | CustomMessage | PingMessage | PongMessage:
    """Parse and validate a raw JSON frame into a typed client message.

    Raises ValueError (including pydantic's ValidationError) for oversized,
    unparsable or invalid frames.
    """
    byte_len = len(raw.encode("utf-8"))
    if byte_len > max_bytes:
        raise ValueError(f"Message too large ({byte_len} bytes, max {max_bytes})")
    data = json.loads(raw)
    return _client_message_adapter.validate_python(data)


# --- Server -> client ---


class ServerMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PlayerInfo(BaseModel):
    id: str
    username: str
    data: dict[str, Any]


class RoomStateMessage(ServerMessage):
    type: Literal[ServerMessageType.ROOM_STATE] = ServerMessageType.ROOM_STATE
    players: list[PlayerInfo]


class PlayerJoinedMessage(ServerMessage):
    type: Literal[ServerMessageType.PLAYER_JOINED] = ServerMessageType.PLAYER_JOINED
    player_id: str = Field(alias="playerId")
    username: str


class StateUpdateBroadcast(ServerMessage):
    """Carries only the submitted delta, never the accumulated state."""

    type: Literal[ServerMessageType.STATE_UPDATE] = ServerMessageType.STATE_UPDATE
    player_id: str = Field(alias="playerId")
    username: str
    data: dict[str, Any]


class CustomBroadcast(ServerMessage):
    type: Literal[ServerMessageType.CUSTOM] = ServerMessageType.CUSTOM
    player_id: str = Field(alias="playerId")
    event: str
    data: Any = None


class PlayerLeftMessage(ServerMessage):
    type: Literal[ServerMessageType.PLAYER_LEFT] = ServerMessageType.PLAYER_LEFT
    player_id: str = Field(alias="playerId")
    username: str


class ErrorMessage(ServerMessage):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    message: str


class ServerPingMessage(ServerMessage):
    type: Literal[ServerMessageType.PING] = ServerMessageType.PING


class ServerPongMessage(ServerMessage):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG
