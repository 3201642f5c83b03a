"""Pydantic data schemas used across the server.

Runtime records (participants, connections, rolls) and the payloads sent over
the WebSocket live here so that handlers, the presence broadcaster and the
routers share one definition. Wire payloads use camelCase keys.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny
from pydantic.alias_generators import to_camel

# -----------------------------
# Event names
# -----------------------------


class ClientEvent(str, Enum):
    JOIN = "join"
    REFRESH = "refresh"
    ROLL = "roll"
    CLEAR_HISTORY = "clearHistory"
    LEAVE = "leave"


class ServerEvent(str, Enum):
    JOINED = "joined"
    STATE_REFRESHED = "stateRefreshed"
    ROLL_RESULT = "rollResult"
    HISTORY_CLEARED = "historyCleared"
    PRESENCE_CHANGED = "presenceChanged"
    OPERATION_FAILED = "operationFailed"


class PresenceChange(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    DISCONNECT = "disconnect"


class RoomPhase(str, Enum):
    ACTIVE = "active"  # at least one participant
    DRAINING = "draining"  # empty, cleanup timer armed
    DORMANT = "dormant"  # empty, timer fired but history kept the room alive


class GMStatus(str, Enum):
    UNELECTED = "unelected"
    DETACHED = "detached"  # elected, no live connection
    ATTACHED = "attached"


class WireModel(BaseModel):
    """Base for everything that is serialised onto the socket."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# -----------------------------
# Runtime records
# -----------------------------


class Participant(BaseModel):
    """A connection's membership entry inside a room."""

    model_config = ConfigDict(frozen=True)

    name: str
    client_id: str


class Connection(BaseModel):
    """Per-socket state, the equivalent of the transport's session data."""

    connection_id: str
    session_id: Optional[str] = None
    name: Optional[str] = None
    client_id: Optional[str] = None


class Die(WireModel):
    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=1, le=6)
    gilded: bool = False


class Roll(WireModel):
    """A single roll event. Never mutated once stored in a room's history."""

    model_config = ConfigDict(frozen=True)

    id: str
    by: str
    session_id: str
    dice: Tuple[Die, ...]
    hidden: bool = False
    timestamp: str
    client_id: str


# -----------------------------
# Outbound payloads
# -----------------------------


class ParticipantView(WireModel):
    connection_id: str
    display_name: str
    is_gm: bool = Field(alias="isGM")


class GMParticipantView(ParticipantView):
    """Participant entry as seen by the GM; carries the identity token."""

    client_id: str


class SessionSnapshot(WireModel):
    """Body of ``joined`` and ``stateRefreshed``."""

    session_id: str
    is_gm: bool = Field(alias="isGM")
    participants: List[SerializeAsAny[ParticipantView]]
    history: List[Roll]


class PresenceUpdate(WireModel):
    session_id: str
    change: PresenceChange
    participants: List[SerializeAsAny[ParticipantView]]


class HistoryCleared(WireModel):
    session_id: str


class OperationFailed(WireModel):
    message: str


class RoomSummary(WireModel):
    session_id: str
    participant_count: int
    has_gm: bool = Field(alias="hasGM")
    gm_connected: bool = Field(alias="gmConnected")
    history_size: int
    phase: RoomPhase


class Delivery(NamedTuple):
    """One outbound frame and the connections it must reach."""

    targets: FrozenSet[str]
    message: Dict[str, Any]


def envelope(event: ServerEvent, data: Optional[WireModel] = None) -> Dict[str, Any]:
    """Wrap *data* in the ``{"type", "data"}`` frame every client expects."""
    return {"type": event.value, "data": data.to_wire() if data is not None else {}}


__all__ = [
    "ClientEvent",
    "ServerEvent",
    "PresenceChange",
    "RoomPhase",
    "GMStatus",
    "WireModel",
    "Participant",
    "Connection",
    "Die",
    "Roll",
    "ParticipantView",
    "GMParticipantView",
    "SessionSnapshot",
    "PresenceUpdate",
    "HistoryCleared",
    "OperationFailed",
    "RoomSummary",
    "Delivery",
    "envelope",
]
