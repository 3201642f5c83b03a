"""Inbound message handlers.

Each handler reads or mutates exactly one room and returns the deliveries
the change produces. Handlers never await: the room is updated and the
outbound frames are computed in one uninterrupted step, and only then does
the WebSocket endpoint send anything. That is what keeps room state
consistent without locks.
"""
from __future__ import annotations

import logging
import random
import uuid
from typing import Any, Dict, List, Optional

from .cleanup import cancel_cleanup, schedule_cleanup
from .constants import DEFAULT_NAME, MAX_CLIENT_ID_LENGTH, MAX_NAME_LENGTH
from .dice import make_roll, roll_dice
from .errors import GMOnlyError, InputError
from .presence import compute_audiences, direct, failure, to_room
from .registry import RoomRegistry, normalize_session_id
from .room import Room
from .schemas import (
    ClientEvent,
    Connection,
    Delivery,
    HistoryCleared,
    PresenceChange,
    ServerEvent,
    envelope,
)
from .visibility import roll_audience, session_snapshot

logger = logging.getLogger(__name__)

NOT_IN_SESSION = "Not in a session."
JOIN_FIRST = "You must join a session first."
GM_ONLY_CLEAR = "Only the GM can clear history."
MALFORMED = "Malformed message."

# ---------------------------------------------------------------------------
# Input sanitising
# ---------------------------------------------------------------------------


def sanitize_name(raw: Any) -> str:
    name = str(raw).strip() if raw else ""
    return name[:MAX_NAME_LENGTH] or DEFAULT_NAME


def sanitize_client_id(raw: Any) -> str:
    """Truncate the client's identity token, or mint one if it sent none."""
    client_id = str(raw)[:MAX_CLIENT_ID_LENGTH] if raw else ""
    return client_id or f"c-{uuid.uuid4().hex[:12]}"


def _current_room(registry: RoomRegistry, conn: Connection, missing: str) -> Room:
    room = registry.get(conn.session_id)
    if room is None:
        raise InputError(missing)
    return room


def _detach(registry: RoomRegistry, conn: Connection, change: PresenceChange) -> List[Delivery]:
    room = registry.get(conn.session_id)
    conn.session_id = None
    if room is None:
        return []
    room.remove_participant(conn.connection_id)
    deliveries = compute_audiences(room, change, conn.connection_id)
    if room.is_empty:
        schedule_cleanup(registry, room)
    return deliveries


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def join_session(registry: RoomRegistry, conn: Connection, data: Dict[str, Any]) -> List[Delivery]:
    session_id = normalize_session_id(data.get("sessionId"))
    name = sanitize_name(data.get("name"))
    client_id = sanitize_client_id(data.get("clientId"))

    deliveries: List[Delivery] = []
    if conn.session_id is not None:
        # Switching tables: leave the old one properly first
        deliveries.extend(_detach(registry, conn, PresenceChange.LEAVE))

    room = registry.get_or_create(session_id)
    cancel_cleanup(room)

    conn.session_id = session_id
    conn.name = name
    conn.client_id = client_id
    room.add_participant(conn.connection_id, name, client_id)
    logger.info("%s joined room %s (%d connected)", name, session_id, len(room.participants))

    deliveries.append(direct(conn.connection_id, envelope(ServerEvent.JOINED, session_snapshot(room, client_id))))
    deliveries.extend(compute_audiences(room, PresenceChange.JOIN, conn.connection_id))
    return deliveries


def refresh_session(registry: RoomRegistry, conn: Connection) -> List[Delivery]:
    room = _current_room(registry, conn, NOT_IN_SESSION)
    snapshot = session_snapshot(room, conn.client_id)
    return [direct(conn.connection_id, envelope(ServerEvent.STATE_REFRESHED, snapshot))]


def roll(
    registry: RoomRegistry,
    conn: Connection,
    data: Dict[str, Any],
    rng: Optional[random.Random] = None,
) -> List[Delivery]:
    room = _current_room(registry, conn, JOIN_FIRST)
    dice = roll_dice(data.get("numDice"), data.get("numGilded"), rng=rng)
    result = make_roll(
        by=conn.name or DEFAULT_NAME,
        session_id=room.session_id,
        dice=dice,
        hidden=data.get("hidden"),
        client_id=conn.client_id or "",
    )
    room.record_roll(result)
    return roll_audience(room, result, conn.connection_id)


def clear_history(registry: RoomRegistry, conn: Connection) -> List[Delivery]:
    room = _current_room(registry, conn, JOIN_FIRST)
    if not room.is_gm(conn.client_id):
        raise GMOnlyError(GM_ONLY_CLEAR)
    room.clear_history()
    cleared = HistoryCleared(session_id=room.session_id)
    return [to_room(room, envelope(ServerEvent.HISTORY_CLEARED, cleared))]


def leave_session(registry: RoomRegistry, conn: Connection) -> List[Delivery]:
    if conn.session_id is None:
        return []
    return _detach(registry, conn, PresenceChange.LEAVE)


def disconnect(registry: RoomRegistry, conn: Connection) -> List[Delivery]:
    if conn.session_id is None:
        return []
    return _detach(registry, conn, PresenceChange.DISCONNECT)


def handle_message(
    registry: RoomRegistry,
    conn: Connection,
    data: Any,
    rng: Optional[random.Random] = None,
) -> List[Delivery]:
    """Dispatch one decoded client frame and turn soft errors into ``operationFailed``."""
    if not isinstance(data, dict):
        return [failure(conn.connection_id, MALFORMED)]

    msg_type = data.get("type")
    try:
        if msg_type == ClientEvent.JOIN:
            return join_session(registry, conn, data)
        elif msg_type == ClientEvent.REFRESH:
            return refresh_session(registry, conn)
        elif msg_type == ClientEvent.ROLL:
            return roll(registry, conn, data, rng=rng)
        elif msg_type == ClientEvent.CLEAR_HISTORY:
            return clear_history(registry, conn)
        elif msg_type == ClientEvent.LEAVE:
            return leave_session(registry, conn)
    except (InputError, GMOnlyError) as exc:
        logger.debug("Connection %s: %s", conn.connection_id, exc)
        return [failure(conn.connection_id, str(exc))]

    logger.debug("Connection %s sent unknown message type %r", conn.connection_id, msg_type)
    return []


__all__ = [
    "sanitize_name",
    "sanitize_client_id",
    "join_session",
    "refresh_session",
    "roll",
    "clear_history",
    "leave_session",
    "disconnect",
    "handle_message",
]
