"""Roundtable: turn-based discussions between several generation services."""

__version__ = "0.1.0"
