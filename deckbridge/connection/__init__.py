"""
openHAB connection layer.

Websocket event stream, heartbeat and the REST item directory.
"""

from deckbridge.connection.manager import ConnectionManager, ConnectionState
from deckbridge.connection.rest import Item, ItemDirectory

__all__ = ["ConnectionManager", "ConnectionState", "Item", "ItemDirectory"]
