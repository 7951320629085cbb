"""
Control bindings: Action Registry, controllers and the rotation coalescer.
"""

from deckbridge.actions.coalescer import InputCoalescer, clamp
from deckbridge.actions.controllers import Controller
from deckbridge.actions.handlers import ActionHandlers
from deckbridge.actions.models import ControllerKind, ItemSettings, SettingsNotInitializedError
from deckbridge.actions.registry import ActionRegistry

__all__ = [
    "ActionHandlers",
    "ActionRegistry",
    "Controller",
    "ControllerKind",
    "InputCoalescer",
    "ItemSettings",
    "SettingsNotInitializedError",
    "clamp",
]
