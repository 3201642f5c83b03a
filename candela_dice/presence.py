"""Presence broadcasting.

Every membership change produces two renderings of the participant list:
the public one, and the GM one that also carries identity tokens. These
functions only compute ``Delivery`` tuples; sending them is the hub's job.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .room import Room
from .schemas import (
    Delivery,
    GMParticipantView,
    OperationFailed,
    ParticipantView,
    PresenceChange,
    PresenceUpdate,
    ServerEvent,
    envelope,
)

# -----------------------------
# Delivery helpers
# -----------------------------


def direct(connection_id: str, message: Dict) -> Delivery:
    return Delivery(frozenset((connection_id,)), message)


def to_connections(connection_ids: Iterable[str], message: Dict) -> Delivery:
    return Delivery(frozenset(connection_ids), message)


def to_room(room: Room, message: Dict) -> Delivery:
    return to_connections(room.participants.keys(), message)


def failure(connection_id: str, text: str) -> Delivery:
    """``operationFailed`` for the single connection that caused it."""
    return direct(connection_id, envelope(ServerEvent.OPERATION_FAILED, OperationFailed(message=text)))


# -----------------------------
# Participant views
# -----------------------------


def public_view(room: Room) -> List[ParticipantView]:
    return [
        ParticipantView(
            connection_id=cid,
            display_name=p.name,
            is_gm=room.is_gm(p.client_id),
        )
        for cid, p in room.participants.items()
    ]


def gm_view(room: Room) -> List[GMParticipantView]:
    return [
        GMParticipantView(
            connection_id=cid,
            display_name=p.name,
            is_gm=room.is_gm(p.client_id),
            client_id=p.client_id,
        )
        for cid, p in room.participants.items()
    ]


def participants_for(room: Room, client_id: Optional[str]) -> List[ParticipantView]:
    """The participant list a viewer with *client_id* is allowed to see."""
    if room.is_gm(client_id):
        return list(gm_view(room))
    return public_view(room)


def compute_audiences(
    room: Room,
    change: PresenceChange,
    actor_connection_id: Optional[str] = None,
) -> List[Delivery]:
    """Split a presence update between the GM and everyone else.

    Only the live GM connection (the one hidden rolls go to) gets the view
    with identity tokens. The actor is skipped: a joiner gets its own
    ``joined`` acknowledgement and a leaver is no longer listening.
    """
    gm_connection_id = room.gm_connection_id
    gm_targets = set()
    if gm_connection_id is not None and gm_connection_id != actor_connection_id:
        gm_targets.add(gm_connection_id)
    public_targets = set(room.participants) - {actor_connection_id, gm_connection_id}

    deliveries: List[Delivery] = []
    if public_targets:
        update = PresenceUpdate(session_id=room.session_id, change=change, participants=public_view(room))
        deliveries.append(to_connections(public_targets, envelope(ServerEvent.PRESENCE_CHANGED, update)))
    if gm_targets:
        update = PresenceUpdate(session_id=room.session_id, change=change, participants=gm_view(room))
        deliveries.append(to_connections(gm_targets, envelope(ServerEvent.PRESENCE_CHANGED, update)))
    return deliveries


__all__ = [
    "direct",
    "to_connections",
    "to_room",
    "failure",
    "public_view",
    "gm_view",
    "participants_for",
    "compute_audiences",
]
