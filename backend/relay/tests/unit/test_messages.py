import json

import pytest
from pydantic import ValidationError

from relay.messaging.types import (
    CustomBroadcast,
    CustomMessage,
    JoinMessage,
    PingMessage,
    PlayerJoinedMessage,
    PongMessage,
    StateUpdateMessage,
    parse_client_message,
)


class TestParseClientMessage:
    def test_join_reads_camel_case_player_id(self):
        message = parse_client_message(json.dumps({"type": "join", "playerId": "p1", "username": "Al"}))
        assert isinstance(message, JoinMessage)
        assert message.player_id == "p1"
        assert message.username == "Al"

    def test_join_username_optional(self):
        message = parse_client_message(json.dumps({"type": "join", "playerId": "p1"}))
        assert message.username is None

    def test_join_numeric_username_is_stringified(self):
        message = parse_client_message(json.dumps({"type": "join", "playerId": "p1", "username": 42}))
        assert message.username == "42"

    @pytest.mark.parametrize("username", [{"nick": "Al"}, ["Al"], True])
    def test_join_unusable_username_falls_back(self, username):
        message = parse_client_message(json.dumps({"type": "join", "playerId": "p1", "username": username}))
        assert isinstance(message, JoinMessage)
        assert message.username is None

    def test_state_update(self):
        message = parse_client_message(json.dumps({"type": "state_update", "data": {"x": 1}}))
        assert isinstance(message, StateUpdateMessage)
        assert message.data == {"x": 1}

    def test_custom_data_defaults_to_none(self):
        message = parse_client_message(json.dumps({"type": "custom", "event": "wave"}))
        assert isinstance(message, CustomMessage)
        assert message.data is None

    def test_ping_and_pong(self):
        assert isinstance(parse_client_message('{"type": "ping"}'), PingMessage)
        assert isinstance(parse_client_message('{"type": "pong"}'), PongMessage)

    def test_invalid_json_raises(self):
        with pytest.raises(ValueError):
            parse_client_message("{not json")

    def test_missing_type_raises(self):
        with pytest.raises(ValidationError):
            parse_client_message('{"playerId": "p1"}')

    def test_unknown_type_raises(self):
        with pytest.raises(ValidationError):
            parse_client_message('{"type": "chat", "text": "hi"}')

    def test_non_object_raises(self):
        with pytest.raises(ValidationError):
            parse_client_message("42")

    def test_oversized_raises(self):
        with pytest.raises(ValueError, match="too large"):
            parse_client_message(json.dumps({"type": "custom", "event": "e", "data": "x" * 200}), max_bytes=100)


class TestServerMessages:
    def test_wire_form_uses_camel_case(self):
        wire = PlayerJoinedMessage(player_id="p2", username="Bo").to_wire()
        assert wire == {"type": "player_joined", "playerId": "p2", "username": "Bo"}

    def test_custom_payload_passes_through(self):
        wire = CustomBroadcast(player_id="p1", event="boom", data={"a": [1, 2]}).to_wire()
        assert wire == {"type": "custom", "playerId": "p1", "event": "boom", "data": {"a": [1, 2]}}
