"""
openHAB websocket message envelopes.

Envelopes share the shape {type, topic?, payload, source}. Payloads of item
events are themselves JSON strings.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union


SOURCE = "ElgatoStreamDeck"

WEBSOCKET_EVENT = "WebSocketEvent"
ITEM_STATE_CHANGED_EVENT = "ItemStateChangedEvent"
ITEM_COMMAND_EVENT = "ItemCommandEvent"

HEARTBEAT_TOPIC = "openhab/websocket/heartbeat"
FILTER_TYPE_TOPIC = "openhab/websocket/filter/type"

PING = "PING"
PONG = "PONG"

_ITEM_TOPIC_RE = re.compile(r"openhab/items/([^/]+)/state")


@dataclass(frozen=True, slots=True)
class ItemStateChangedEvent:
    topic: str
    payload: str


@dataclass(frozen=True, slots=True)
class HeartbeatAck:
    topic: str | None = None


@dataclass(frozen=True, slots=True)
class WebSocketEvent:
    topic: str | None
    payload: Any


@dataclass(frozen=True, slots=True)
class StateChangeEvent:
    item_name: str
    value: str


IncomingMessage = Union[ItemStateChangedEvent, HeartbeatAck, WebSocketEvent]


def heartbeat() -> dict[str, Any]:
    return {
        "type": WEBSOCKET_EVENT,
        "topic": HEARTBEAT_TOPIC,
        "payload": PING,
        "source": SOURCE,
    }


def type_filter(event_types: list[str] | None = None) -> dict[str, Any]:
    types = event_types if event_types is not None else [ITEM_STATE_CHANGED_EVENT]
    return {
        "type": WEBSOCKET_EVENT,
        "topic": FILTER_TYPE_TOPIC,
        "payload": json.dumps(types),
        "source": SOURCE,
    }


def item_command(item_name: str, value: str | int | float) -> dict[str, Any]:
    """ItemCommandEvent envelope. Commands normally go over REST instead."""
    return {
        "type": ITEM_COMMAND_EVENT,
        "topic": f"openhab/items/{item_name}/command",
        "payload": json.dumps({"value": str(value)}),
        "source": SOURCE,
    }


def item_state_snapshot(item_name: str, state: Any) -> ItemStateChangedEvent:
    """Synthetic state-change event built from a REST item read."""
    return ItemStateChangedEvent(
        topic=f"openhab/items/{item_name}/statechanged",
        payload=json.dumps({"value": _as_state(state)}),
    )


def parse_incoming(raw: str | bytes) -> IncomingMessage | None:
    """Classify one inbound frame. Returns None for anything unusable."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    msg_type = data.get("type")
    topic = data.get("topic")
    payload = data.get("payload")

    if msg_type == ITEM_STATE_CHANGED_EVENT:
        if not isinstance(topic, str) or not isinstance(payload, str):
            return None
        return ItemStateChangedEvent(topic=topic, payload=payload)

    if msg_type == WEBSOCKET_EVENT:
        if payload == PONG:
            return HeartbeatAck(topic=topic if isinstance(topic, str) else None)
        return WebSocketEvent(topic=topic if isinstance(topic, str) else None, payload=payload)

    return None


def extract_item_name(topic: str) -> str:
    match = _ITEM_TOPIC_RE.search(topic or "")
    if match:
        return match.group(1)
    return ""


def parse_state_payload(payload: str) -> str:
    """
    Pull the new value out of an item event payload.

    Raises:
        ValueError: If the payload is not a JSON object carrying "value"
    """
    data = json.loads(payload)
    if not isinstance(data, dict) or "value" not in data:
        raise ValueError("item event payload has no value")
    return _as_state(data["value"])


def to_state_change(event: ItemStateChangedEvent) -> StateChangeEvent:
    return StateChangeEvent(
        item_name=extract_item_name(event.topic),
        value=parse_state_payload(event.payload),
    )


def _as_state(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
