"""Trigger expressions for narrative text and game-state records."""

__version__ = "0.1.0"
