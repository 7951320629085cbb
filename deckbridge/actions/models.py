"""
Data models for control bindings.

Settings are persisted on the surface as camelCase JSON; ItemSettings is the
in-process view of that blob.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


ACTION_UUID_PREFIX = "org.openhab.stream-deck-plugin."


class ControllerKind(str, Enum):
    """Closed set of control capabilities."""

    DISPLAY_STATE = "display-state"  # display-only
    SWITCH = "switch"  # ON/OFF toggle
    SEND_VALUE = "send-value"  # fixed value on press
    DIMMER = "dimmer"  # percentage dial
    ROLLER_SHUTTER = "roller-shutter"  # position dial

    @property
    def action_uuid(self) -> str:
        return f"{ACTION_UUID_PREFIX}{self.value}"

    @classmethod
    def from_action_uuid(cls, action_uuid: str) -> Optional["ControllerKind"]:
        if not action_uuid or not action_uuid.startswith(ACTION_UUID_PREFIX):
            return None
        try:
            return cls(action_uuid[len(ACTION_UUID_PREFIX):])
        except ValueError:
            return None


class SettingsNotInitializedError(RuntimeError):
    """Raised when a controller's settings are read before being assigned."""


_KNOWN_KEYS = {
    "title": "title",
    "itemName": "item_name",
    "state": "state",
    "latestCommand": "latest_command",
    "itemType": "item_type",
    "valueToSend": "value_to_send",
    "valueType": "value_type",
    "showTitle": "show_title",
}


@dataclass
class ItemSettings:
    """
    Per-control settings blob, including the last known item state.

    Unknown keys written by the property inspector are kept in `extra` so they
    survive a round trip through set_settings.
    """

    item_name: str = ""
    state: str = ""
    title: str = ""
    latest_command: str = ""
    item_type: str = ""
    value_to_send: str = ""
    value_type: str = ""
    show_title: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "ItemSettings":
        data = data or {}
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            attr = _KNOWN_KEYS.get(key)
            if attr is None:
                extra[key] = value
            elif attr == "show_title":
                values[attr] = bool(value)
            else:
                values[attr] = "" if value is None else str(value)
        return cls(extra=extra, **values)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        for key, attr in _KNOWN_KEYS.items():
            payload[key] = getattr(self, attr)
        return payload

    def numeric_state(self, default: int = 0) -> int:
        """Leading integer of the state ("42", "42.5", "42 %"), else default."""
        text = (self.state or "").strip()
        digits = ""
        for index, ch in enumerate(text):
            if ch.isdigit() or (index == 0 and ch in "+-"):
                digits += ch
            else:
                break
        try:
            return int(digits)
        except ValueError:
            return default
