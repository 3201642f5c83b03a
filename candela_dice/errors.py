"""Soft errors raised by message handlers.

Both are reported back to the single connection that caused them as an
``operationFailed`` frame; neither is a server fault.
"""
from __future__ import annotations


class InputError(ValueError):
    """Malformed input, or an in-session action outside of a session."""


class GMOnlyError(PermissionError):
    """A non-GM participant attempted a GM-only action."""


__all__ = ["InputError", "GMOnlyError"]
