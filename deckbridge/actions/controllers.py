"""
Controller: binding of one surface control to one openHAB item.

Kinds form a closed set; rendering is selected from a per-kind table rather
than through subclasses.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from deckbridge.actions.models import ControllerKind, ItemSettings, SettingsNotInitializedError
from deckbridge.surface.base import Control


class Controller:
    """
    Tracks the settings and surface control for one action instance.

    Assigning `settings` re-renders the control. Reading `settings` before
    any assignment raises SettingsNotInitializedError.
    """

    def __init__(self, kind: ControllerKind, control: Control, settings: Optional[ItemSettings] = None):
        self.kind = kind
        self.control = control
        self.item_name = settings.item_name if settings is not None else ""
        self._settings: Optional[ItemSettings] = None
        if settings is not None:
            self.settings = settings

    @property
    def id(self) -> str:
        return self.control.id

    @property
    def settings(self) -> ItemSettings:
        if self._settings is None:
            raise SettingsNotInitializedError(f"Settings not initialized for control {self.control.id}")
        return self._settings

    @settings.setter
    def settings(self, value: ItemSettings) -> None:
        self._settings = value
        self.refresh()

    @property
    def title(self) -> str:
        return self.settings.title

    def refresh(self) -> None:
        """Re-render the control from the current settings."""
        _RENDERERS[self.kind](self)

    def is_switched_on(self) -> bool:
        if self.kind is ControllerKind.SWITCH:
            return self.settings.state == "ON"
        return self.settings.numeric_state() > 0

    def values_match(self) -> bool:
        return self.settings.state == self.settings.value_to_send

    def __repr__(self) -> str:
        return f"Controller(kind={self.kind.value!r}, id={self.control.id!r}, item={self.item_name!r})"


def percent_feedback(value: int) -> Dict[str, object]:
    return {"indicator": value, "value": f"{value}%"}


def _render_display_state(controller: Controller) -> None:
    controller.control.set_title(controller.settings.state)


def _render_switch(controller: Controller) -> None:
    if not controller.control.is_dial:
        controller.control.set_state(int(controller.is_switched_on()))


def _render_send_value(controller: Controller) -> None:
    settings = controller.settings
    title = f"Send\n{settings.value_to_send}"
    if settings.value_type == "Percent":
        title += "%"
    controller.control.set_title(title)

    if not controller.control.is_dial:
        controller.control.set_state(int(controller.values_match()))


def _render_percentage(controller: Controller) -> None:
    if controller.control.is_dial:
        controller.control.set_feedback(percent_feedback(controller.settings.numeric_state()))
    else:
        controller.control.set_state(int(controller.is_switched_on()))


_RENDERERS: Dict[ControllerKind, Callable[[Controller], None]] = {
    ControllerKind.DISPLAY_STATE: _render_display_state,
    ControllerKind.SWITCH: _render_switch,
    ControllerKind.SEND_VALUE: _render_send_value,
    ControllerKind.DIMMER: _render_percentage,
    ControllerKind.ROLLER_SHUTTER: _render_percentage,
}
