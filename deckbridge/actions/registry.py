"""
Action Registry - live set of control bindings.

Indexes controllers by control id and item name, applies state changes from
the server, and routes commands to the Connection Manager.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from deckbridge.actions.coalescer import InputCoalescer
from deckbridge.actions.controllers import Controller
from deckbridge.actions.models import ControllerKind, ItemSettings
from deckbridge.bridge_logging import get_logger
from deckbridge.connection import messages
from deckbridge.connection.manager import ConnectionManager, ConnectionState
from deckbridge.connection.messages import ItemStateChangedEvent
from deckbridge.services.base import BridgeService
from deckbridge.surface.base import Control

logger = logging.getLogger(__name__)
log = get_logger("DECK.Actions")

AddedListener = Callable[[Controller], None]
RemovedListener = Callable[[int], None]


class ActionRegistry(BridgeService):
    """
    Single source of truth for which controls exist and what they track.

    At most one Controller exists per control id. Several controllers may
    track the same item; state changes fan out to all of them.
    """

    def __init__(
        self,
        name: str = "actions",
        config: Optional[Dict[str, Any]] = None,
        *,
        connection: ConnectionManager,
        coalescer: Optional[InputCoalescer] = None,
    ):
        super().__init__(name, dict(config or {}))
        self.connection = connection
        self.coalescer = coalescer or InputCoalescer()

        self._controllers: Dict[str, Controller] = {}
        self._added_listeners: Dict[Optional[ControllerKind], List[AddedListener]] = defaultdict(list)
        self._removed_listeners: List[RemovedListener] = []

    # Lifecycle

    async def start(self) -> None:
        self.connection.add_state_listener(self.handle_item_state)
        self.connection.add_connectivity_listener(self._on_connectivity)
        self._mark_started()

    async def stop(self) -> None:
        self.connection.remove_state_listener(self.handle_item_state)
        self.connection.remove_connectivity_listener(self._on_connectivity)
        self.coalescer.cancel_all()
        await self.coalescer.drain()
        self._controllers.clear()
        self._mark_stopped()

    def health(self) -> Dict[str, Any]:
        counts = {kind.value: len(self.get_controllers(kind)) for kind in ControllerKind}
        return {
            "status": "healthy",
            "message": f"{len(self._controllers)} controls bound",
            "details": {"controllers": counts},
        }

    # Observers

    def add_added_listener(self, listener: AddedListener, kind: Optional[ControllerKind] = None) -> None:
        """Subscribe to new bindings of one kind, or of every kind when kind is None."""
        self._added_listeners[kind].append(listener)

    def add_removed_listener(self, listener: RemovedListener) -> None:
        self._removed_listeners.append(listener)

    # Bindings

    def add(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> Controller:
        if control.id in self._controllers:
            logger.warning(f"Control {control.id} already bound, replacing")
            self.coalescer.discard(control.id)

        controller = Controller(kind, control, settings)
        self._controllers[control.id] = controller
        log.info(
            "DECK.Actions.Added",
            extra={"fields": {"kind": kind.value, "control": control.id, "item": controller.item_name}},
        )

        self.refresh_item_state(controller.item_name)

        for listener in list(self._added_listeners.get(kind, [])) + list(self._added_listeners.get(None, [])):
            listener(controller)

        logger.debug(f"Amount of actions known: {len(self._controllers)}")
        return controller

    def add_display_state(self, control: Control, settings: ItemSettings) -> Controller:
        return self.add(ControllerKind.DISPLAY_STATE, control, settings)

    def add_switch(self, control: Control, settings: ItemSettings) -> Controller:
        return self.add(ControllerKind.SWITCH, control, settings)

    def add_send_value(self, control: Control, settings: ItemSettings) -> Controller:
        return self.add(ControllerKind.SEND_VALUE, control, settings)

    def add_dimmer(self, control: Control, settings: ItemSettings) -> Controller:
        return self.add(ControllerKind.DIMMER, control, settings)

    def add_roller_shutter(self, control: Control, settings: ItemSettings) -> Controller:
        return self.add(ControllerKind.ROLLER_SHUTTER, control, settings)

    def update(self, kind: ControllerKind, control: Control, settings: ItemSettings) -> Optional[Controller]:
        """
        Replace the settings of an existing binding.

        Unknown controls (or controls bound as another kind) are ignored. When
        the item name changes, state is refreshed for the new item only.
        """
        controller = self._controllers.get(control.id)
        if controller is None or controller.kind is not kind:
            return None

        item_name_changed = controller.item_name != settings.item_name

        controller.item_name = settings.item_name
        controller.settings = settings

        if item_name_changed:
            log.info(
                "DECK.Actions.Rebound",
                extra={"fields": {"control": control.id, "item": settings.item_name}},
            )
            self.refresh_item_state(settings.item_name)
        return controller

    def update_display_state(self, control: Control, settings: ItemSettings) -> Optional[Controller]:
        return self.update(ControllerKind.DISPLAY_STATE, control, settings)

    def update_switch(self, control: Control, settings: ItemSettings) -> Optional[Controller]:
        return self.update(ControllerKind.SWITCH, control, settings)

    def update_send_value(self, control: Control, settings: ItemSettings) -> Optional[Controller]:
        return self.update(ControllerKind.SEND_VALUE, control, settings)

    def update_dimmer(self, control: Control, settings: ItemSettings) -> Optional[Controller]:
        return self.update(ControllerKind.DIMMER, control, settings)

    def update_roller_shutter(self, control: Control, settings: ItemSettings) -> Optional[Controller]:
        return self.update(ControllerKind.ROLLER_SHUTTER, control, settings)

    def remove(self, control: Control) -> None:
        logger.debug(f"Remove action {control.id}")
        self.coalescer.discard(control.id)
        if self._controllers.pop(control.id, None) is None:
            return

        remaining = len(self._controllers)
        for listener in list(self._removed_listeners):
            listener(remaining)
        logger.debug(f"Amount of actions known: {remaining}")

    # State

    def handle_item_state(self, event: ItemStateChangedEvent) -> None:
        try:
            change = messages.to_state_change(event)
        except ValueError as exc:
            log.warning(
                "DECK.Actions.MalformedStatePayload",
                extra={"fields": {"topic": event.topic, "error": repr(exc)}},
            )
            return

        if not change.item_name:
            log.warning("DECK.Actions.UnknownTopic", extra={"fields": {"topic": event.topic}})
            return

        self.update_item_state(change.item_name, change.value)

    def update_item_state(self, item_name: str, state: str) -> None:
        for controller in self.find_by_item_name(item_name):
            logger.debug(f"Updating item state for item {item_name} to value {state}")
            settings = controller.settings
            settings.state = state
            controller.control.set_settings(settings.to_payload())
            controller.refresh()

    def refresh_item_state(self, item_name: str) -> None:
        if item_name:
            logger.debug(f"Refreshing state of item {item_name}")
            self.connection.request_item_state(item_name)

    async def get_items(self) -> List[str]:
        return await self.connection.get_items()

    async def send_command(self, settings: ItemSettings, command: str | int | float) -> bool:
        """Send a command for the settings' item. Range checks belong to the caller."""
        if not settings.item_name:
            log.warning("DECK.Actions.NoItemBound", extra={"fields": {"command": str(command)}})
            return False

        log.info(
            "DECK.Actions.SendCommand",
            extra={"fields": {"item": settings.item_name, "command": str(command), "item_type": settings.item_type}},
        )
        settings.latest_command = str(command)
        return await self.connection.send_command(settings.item_name, command)

    # Lookup

    @property
    def controllers(self) -> List[Controller]:
        return list(self._controllers.values())

    def get_controller(self, control_id: str) -> Optional[Controller]:
        return self._controllers.get(control_id)

    def find_by_item_name(self, item_name: str) -> List[Controller]:
        return [c for c in self._controllers.values() if c.item_name == item_name]

    def get_controllers(self, kind: ControllerKind) -> List[Controller]:
        return [c for c in self._controllers.values() if c.kind is kind]

    def get_display_state_controllers(self) -> List[Controller]:
        return self.get_controllers(ControllerKind.DISPLAY_STATE)

    def get_switch_controllers(self) -> List[Controller]:
        return self.get_controllers(ControllerKind.SWITCH)

    def get_send_value_controllers(self) -> List[Controller]:
        return self.get_controllers(ControllerKind.SEND_VALUE)

    def get_dimmer_controllers(self) -> List[Controller]:
        return self.get_controllers(ControllerKind.DIMMER)

    def get_roller_shutter_controllers(self) -> List[Controller]:
        return self.get_controllers(ControllerKind.ROLLER_SHUTTER)

    # Bulk

    def show_alert_on_all(self) -> None:
        for controller in self._controllers.values():
            controller.control.show_alert()

    def refresh_all(self) -> None:
        for controller in self._controllers.values():
            controller.refresh()

    def _on_connectivity(self, state: ConnectionState) -> None:
        if state is ConnectionState.CONNECTED:
            for item_name in sorted({c.item_name for c in self._controllers.values() if c.item_name}):
                self.refresh_item_state(item_name)
        elif state is ConnectionState.DISCONNECTED:
            log.info("DECK.Actions.ServerUnavailable", extra={"fields": {"controls": len(self._controllers)}})
