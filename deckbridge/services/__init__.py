"""
Bridge service lifecycle.

Services are constructed explicitly, registered in dependency order and
started/stopped through the ServiceRegistry.
"""

from deckbridge.services.base import BridgeService
from deckbridge.services.registry import ServiceRegistry

__all__ = [
    "BridgeService",
    "ServiceRegistry",
]
