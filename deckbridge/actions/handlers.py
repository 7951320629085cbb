"""
Input handlers for each control kind.

Translate key presses, dial presses and dial rotation into registry calls.
Dial rotation on dimmers and roller shutters goes through the Input Coalescer.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List

from deckbridge.actions.controllers import Controller, percent_feedback
from deckbridge.actions.models import ControllerKind, ItemSettings
from deckbridge.actions.registry import ActionRegistry
from deckbridge.bridge_logging import get_logger
from deckbridge.surface.base import Control


log = get_logger("DECK.Handlers")

DIAL_KINDS = frozenset({ControllerKind.DIMMER, ControllerKind.ROLLER_SHUTTER})


class ActionHandlers:
    def __init__(self, registry: ActionRegistry) -> None:
        self.registry = registry
        self._press_started: Dict[str, float] = {}

    # Visibility

    def will_appear(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> Controller:
        return self.registry.add(kind, control, settings)

    def will_disappear(self, control: Control) -> None:
        self._press_started.pop(control.id, None)
        self.registry.remove(control)

    def did_receive_settings(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> None:
        log.debug(
            "DECK.Handlers.SettingsReceived",
            extra={"fields": {"kind": kind.value, "control": control.id, "item": settings.item_name}},
        )
        self.registry.update(kind, control, settings)

    # Keys

    async def key_down(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> None:
        settings = self._current_settings(control, settings)
        log.debug(
            "DECK.Handlers.KeyDown",
            extra={"fields": {"kind": kind.value, "item": settings.item_name, "state": settings.state}},
        )

        if kind is ControllerKind.DISPLAY_STATE:
            self.registry.refresh_item_state(settings.item_name)
        elif kind is ControllerKind.SWITCH:
            await self._toggle_switch(settings)
        elif kind is ControllerKind.SEND_VALUE:
            settings.item_type = settings.value_type
            await self.registry.send_command(settings, settings.value_to_send)
        elif kind is ControllerKind.DIMMER:
            await self._toggle_dimmer(settings)
        elif kind is ControllerKind.ROLLER_SHUTTER:
            self._press_started[control.id] = time.monotonic()

    async def key_up(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> None:
        started = self._press_started.pop(control.id, None)
        if kind is ControllerKind.ROLLER_SHUTTER and started is not None:
            held_ms = int((time.monotonic() - started) * 1000)
            log.debug("DECK.Handlers.KeyPress", extra={"fields": {"control": control.id, "held_ms": held_ms}})

    # Dials

    async def dial_down(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> None:
        settings = self._current_settings(control, settings)
        if kind is ControllerKind.SWITCH:
            await self._toggle_switch(settings)
        elif kind is ControllerKind.DIMMER:
            await self._toggle_dimmer(settings)
        else:
            log.debug("DECK.Handlers.DialDownIgnored", extra={"fields": {"kind": kind.value, "control": control.id}})

    async def touch_tap(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> None:
        if kind is ControllerKind.DIMMER:
            await self._toggle_dimmer(self._current_settings(control, settings))

    def dial_rotate(self, kind: ControllerKind, control: Control, ticks: int) -> None:
        if kind not in DIAL_KINDS:
            return
        controller = self.registry.get_controller(control.id)
        if controller is None:
            log.warning("DECK.Handlers.UnknownControl", extra={"fields": {"control": control.id}})
            return

        def base_state() -> int:
            return controller.settings.numeric_state()

        def feedback(value: int) -> None:
            control.set_feedback(percent_feedback(value))

        if kind is ControllerKind.DIMMER:
            resolved = self._dimmer_resolver(controller)
        else:
            resolved = self._shutter_resolver(controller)

        self.registry.coalescer.rotate(control.id, ticks, base_state, on_resolved=resolved, on_feedback=feedback)

    # Property inspector

    async def item_options(self) -> List[Dict[str, Any]]:
        items = await self.registry.get_items()
        return [{"value": name, "label": name} for name in sorted(items)]

    # Internals

    def _current_settings(self, control: Control, settings: ItemSettings) -> ItemSettings:
        controller = self.registry.get_controller(control.id)
        return controller.settings if controller is not None else settings

    async def _toggle_switch(self, settings: ItemSettings) -> None:
        await self.registry.send_command(settings, "OFF" if settings.state == "ON" else "ON")

    async def _toggle_dimmer(self, settings: ItemSettings) -> None:
        await self.registry.send_command(settings, "OFF" if settings.numeric_state() > 0 else "ON")

    def _dimmer_resolver(self, controller: Controller):
        async def resolved(total_ticks: int, value: int) -> None:
            settings = controller.settings
            log.debug(
                "DECK.Handlers.DimmerResolved",
                extra={"fields": {"item": settings.item_name, "ticks": total_ticks, "value": value}},
            )
            settings.state = str(value)
            controller.control.set_settings(settings.to_payload())
            await self.registry.send_command(settings, str(value))

        return resolved

    def _shutter_resolver(self, controller: Controller):
        async def resolved(total_ticks: int, value: int) -> None:
            settings = controller.settings
            log.debug(
                "DECK.Handlers.ShutterResolved",
                extra={"fields": {"item": settings.item_name, "ticks": total_ticks, "value": value}},
            )
            self.registry.update_item_state(settings.item_name, str(value))
            await self.registry.send_command(settings, str(value))

        return resolved
