from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from deckbridge.actions.handlers import ActionHandlers
from deckbridge.actions.models import ControllerKind, ItemSettings
from deckbridge.bridge_logging import get_logger


log = get_logger("DECK.Surface")

GlobalSettingsCallback = Callable[[Dict[str, Any]], None]


@dataclass(eq=False)
class SurfaceControl:
    """Control backed by a surface websocket. Rendering calls are queued."""

    context: str
    controller_type: str
    outbox: "asyncio.Queue[Dict[str, Any]]" = field(repr=False)

    @property
    def id(self) -> str:
        return self.context

    @property
    def is_dial(self) -> bool:
        return self.controller_type == "Encoder"

    def set_title(self, title: str) -> None:
        self._push("setTitle", {"title": title})

    def set_state(self, state: int) -> None:
        self._push("setState", {"state": state})

    def set_feedback(self, feedback: Dict[str, Any]) -> None:
        self._push("setFeedback", dict(feedback))

    def set_settings(self, settings: Dict[str, Any]) -> None:
        self._push("setSettings", dict(settings))

    def show_alert(self) -> None:
        self._push("showAlert", None)

    def _push(self, event: str, payload: Optional[Dict[str, Any]]) -> None:
        message: Dict[str, Any] = {"event": event, "context": self.context}
        if payload is not None:
            message["payload"] = payload
        self.outbox.put_nowait(message)


class SurfaceSession:
    """
    One connected control surface.

    Inbound events are routed to the action handlers by action UUID; outbound
    rendering commands are queued on `outbox` and written by pump().
    """

    def __init__(self, handlers: ActionHandlers, *, on_global_settings: Optional[GlobalSettingsCallback] = None) -> None:
        self.session_id = uuid4().hex
        self.handlers = handlers
        self.outbox: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()
        self._on_global_settings = on_global_settings
        self._controls: Dict[str, SurfaceControl] = {}

    @property
    def control_count(self) -> int:
        return len(self._controls)

    async def handle_text(self, text: str) -> None:
        event = _safe_json(text)
        if event is None:
            log.warning("DECK.Surface.InvalidMessage", extra={"fields": {"session_id": self.session_id}})
            return
        await self.dispatch(event)

    async def dispatch(self, event: Dict[str, Any]) -> None:
        name = event.get("event")
        payload = event.get("payload") if isinstance(event.get("payload"), dict) else {}

        if name == "didReceiveGlobalSettings":
            settings = payload.get("settings") if isinstance(payload.get("settings"), dict) else {}
            log.info("DECK.Surface.GlobalSettings", extra={"fields": {"session_id": self.session_id}})
            if self._on_global_settings is not None:
                self._on_global_settings(settings)
            return

        action_uuid = str(event.get("action") or "")
        kind = ControllerKind.from_action_uuid(action_uuid)
        context = event.get("context")
        if kind is None or not isinstance(context, str) or not context:
            log.debug("DECK.Surface.Ignored", extra={"fields": {"event": name, "action": action_uuid}})
            return

        control = self._control(context, payload.get("controller"))
        settings = ItemSettings.from_payload(payload.get("settings") if isinstance(payload.get("settings"), dict) else None)

        if name == "willAppear":
            self.handlers.will_appear(kind, control, settings)
        elif name == "willDisappear":
            self.handlers.will_disappear(control)
            self._controls.pop(context, None)
        elif name == "didReceiveSettings":
            self.handlers.did_receive_settings(kind, control, settings)
        elif name == "keyDown":
            await self.handlers.key_down(kind, control, settings)
        elif name == "keyUp":
            await self.handlers.key_up(kind, control, settings)
        elif name == "dialDown":
            await self.handlers.dial_down(kind, control, settings)
        elif name == "touchTap":
            await self.handlers.touch_tap(kind, control, settings)
        elif name == "dialRotate":
            self.handlers.dial_rotate(kind, control, _as_int(payload.get("ticks")))
        elif name == "sendToPlugin":
            await self._send_to_plugin(action_uuid, context, payload)
        else:
            log.debug("DECK.Surface.UnhandledEvent", extra={"fields": {"event": name, "context": context}})

    async def pump(self, send: Callable[[str], Awaitable[Any]]) -> None:
        """Write queued outbound messages until cancelled."""
        while True:
            message = await self.outbox.get()
            await send(json.dumps(message))

    def close(self) -> None:
        """Unbind every control this surface had visible."""
        for control in list(self._controls.values()):
            self.handlers.will_disappear(control)
        self._controls.clear()
        log.info("DECK.Surface.Closed", extra={"fields": {"session_id": self.session_id}})

    async def _send_to_plugin(self, action_uuid: str, context: str, payload: Dict[str, Any]) -> None:
        if payload.get("event") != "openhabItems":
            return
        items = await self.handlers.item_options()
        self.outbox.put_nowait(
            {
                "event": "sendToPropertyInspector",
                "action": action_uuid,
                "context": context,
                "payload": {"event": "openhabItems", "items": items},
            }
        )

    def _control(self, context: str, controller_type: Any) -> SurfaceControl:
        control = self._controls.get(context)
        if control is None:
            control = SurfaceControl(
                context=context,
                controller_type=str(controller_type or "Keypad"),
                outbox=self.outbox,
            )
            self._controls[context] = control
        return control


def _safe_json(text: str) -> Dict[str, Any] | None:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None
    return obj


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
