"""Shared dice table server: rooms, a GM, hidden rolls and roll history."""

__version__ = "0.1.0"
