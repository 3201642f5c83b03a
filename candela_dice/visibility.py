"""Who may see which roll.

A roll is visible to a viewer iff the viewer holds the GM identity token or
the roll is not hidden. That single rule drives history snapshots as well as
live roll delivery.
"""
from __future__ import annotations

from typing import List, Optional

from .presence import direct, failure, participants_for, to_room
from .room import Room
from .schemas import Delivery, Roll, ServerEvent, SessionSnapshot, envelope

GM_OFFLINE_MESSAGE = "Hidden roll: GM not currently connected."


def can_see(room: Room, roll: Roll, client_id: Optional[str]) -> bool:
    return not roll.hidden or room.is_gm(client_id)


def build_history_for_client(room: Room, client_id: Optional[str]) -> List[Roll]:
    """Room history in original order, hidden rolls dropped unless *client_id* is the GM."""
    if room.is_gm(client_id):
        return list(room.history)
    return [roll for roll in room.history if can_see(room, roll, client_id)]


def session_snapshot(room: Room, client_id: Optional[str]) -> SessionSnapshot:
    return SessionSnapshot(
        session_id=room.session_id,
        is_gm=room.is_gm(client_id),
        participants=participants_for(room, client_id),
        history=build_history_for_client(room, client_id),
    )


def roll_audience(room: Room, roll: Roll, roller_connection_id: str) -> List[Delivery]:
    """Deliveries for a freshly recorded roll.

    Hidden rolls go to the live GM connection only; with no GM online the
    roller is told so, and the roll waits in history for the GM to return.
    """
    message = envelope(ServerEvent.ROLL_RESULT, roll)
    if not roll.hidden:
        return [to_room(room, message)]
    gm_connection_id = room.gm_connection_id
    if gm_connection_id is None:
        return [failure(roller_connection_id, GM_OFFLINE_MESSAGE)]
    return [direct(gm_connection_id, message)]


__all__ = [
    "GM_OFFLINE_MESSAGE",
    "can_see",
    "build_history_for_client",
    "session_snapshot",
    "roll_audience",
]
