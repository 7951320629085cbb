"""
Control-surface side of the bridge.
"""

from deckbridge.surface.base import Control

__all__ = ["Control"]
