"""
deckbridge - keeps hardware control-surface keys and dials in sync with
openHAB items.
"""

__version__ = "0.1.0"
