"""Tests for openHAB websocket envelopes."""

import json

import pytest

from deckbridge.connection import messages
from deckbridge.connection.messages import HeartbeatAck, ItemStateChangedEvent, WebSocketEvent


class TestBuilders:
    def test_heartbeat(self):
        assert messages.heartbeat() == {
            "type": "WebSocketEvent",
            "topic": "openhab/websocket/heartbeat",
            "payload": "PING",
            "source": "ElgatoStreamDeck",
        }

    def test_type_filter_payload_is_json_string(self):
        msg = messages.type_filter()
        assert msg["topic"] == "openhab/websocket/filter/type"
        assert msg["payload"] == '["ItemStateChangedEvent"]'
        assert json.loads(msg["payload"]) == ["ItemStateChangedEvent"]

    def test_item_command(self):
        msg = messages.item_command("Hall_Dimmer", 40)
        assert msg["type"] == "ItemCommandEvent"
        assert msg["topic"] == "openhab/items/Hall_Dimmer/command"
        assert json.loads(msg["payload"]) == {"value": "40"}

    def test_item_state_snapshot(self):
        event = messages.item_state_snapshot("Temp", 21.5)
        assert event.topic == "openhab/items/Temp/statechanged"
        assert messages.parse_state_payload(event.payload) == "21.5"


class TestParseIncoming:
    def test_state_changed(self):
        raw = json.dumps({
            "type": "ItemStateChangedEvent",
            "topic": "openhab/items/Kitchen_Light/statechanged",
            "payload": json.dumps({"type": "OnOff", "value": "ON", "oldType": "OnOff", "oldValue": "OFF"}),
        })
        event = messages.parse_incoming(raw)
        assert isinstance(event, ItemStateChangedEvent)
        assert messages.to_state_change(event) == messages.StateChangeEvent("Kitchen_Light", "ON")

    def test_pong_is_heartbeat_ack(self):
        raw = json.dumps({"type": "WebSocketEvent", "topic": "openhab/websocket/heartbeat", "payload": "PONG"})
        assert messages.parse_incoming(raw) == HeartbeatAck(topic="openhab/websocket/heartbeat")

    def test_other_websocket_event(self):
        raw = json.dumps({"type": "WebSocketEvent", "topic": "openhab/websocket/filter/type", "payload": "[]"})
        assert isinstance(messages.parse_incoming(raw), WebSocketEvent)

    def test_bytes_are_decoded(self):
        raw = json.dumps({"type": "WebSocketEvent", "payload": "PONG"}).encode("utf-8")
        assert messages.parse_incoming(raw) == HeartbeatAck()

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            json.dumps({"type": "ItemAddedEvent", "payload": "{}"}),
            json.dumps({"type": "ItemStateChangedEvent", "topic": "t", "payload": {"value": 1}}),
            b"\xff\xfe",
        ],
    )
    def test_unusable_frames(self, raw):
        assert messages.parse_incoming(raw) is None


class TestTopicsAndPayloads:
    def test_extract_item_name(self):
        assert messages.extract_item_name("openhab/items/Living_Room/statechanged") == "Living_Room"
        assert messages.extract_item_name("openhab/items/Living_Room/state") == "Living_Room"
        assert messages.extract_item_name("openhab/things/x/status") == ""
        assert messages.extract_item_name("") == ""

    def test_parse_state_payload(self):
        assert messages.parse_state_payload('{"value":"42"}') == "42"
        assert messages.parse_state_payload('{"value":null}') == ""
        assert messages.parse_state_payload('{"value":7}') == "7"

    @pytest.mark.parametrize("payload", ["{oops", "[]", '{"type":"Decimal"}'])
    def test_parse_state_payload_errors(self, payload):
        with pytest.raises(ValueError):
            messages.parse_state_payload(payload)
