"""In-memory room table.

One ``RoomRegistry`` is created per application and handed to every handler
explicitly; nothing imports a module-level room dict.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

from .constants import CLEANUP_GRACE_SECONDS, HISTORY_LIMIT
from .errors import InputError
from .room import Room
from .schemas import RoomSummary

logger = logging.getLogger(__name__)


def normalize_session_id(raw: Any) -> str:
    """Trim and upper-case a session id so ``" abc1"`` and ``"ABC1"`` share a room.

    Raises
    ------
    InputError
        If the id is missing or blank.
    """
    if raw is None:
        raise InputError("Invalid session ID.")
    normalized = str(raw).strip().upper()
    if not normalized:
        raise InputError("Invalid session ID.")
    return normalized


class RoomRegistry:
    def __init__(
        self,
        history_limit: int = HISTORY_LIMIT,
        cleanup_grace_seconds: float = CLEANUP_GRACE_SECONDS,
    ):
        self.history_limit = history_limit
        self.cleanup_grace_seconds = cleanup_grace_seconds
        self._rooms: Dict[str, Room] = {}

    def get(self, session_id: Optional[str]) -> Optional[Room]:
        if not session_id:
            return None
        return self._rooms.get(session_id)

    def get_or_create(self, session_id: str) -> Room:
        room = self._rooms.get(session_id)
        if room is None:
            room = Room(session_id, history_limit=self.history_limit)
            self._rooms[session_id] = room
            logger.info("Room %s created", session_id)
        return room

    def delete(self, session_id: str) -> None:
        if self._rooms.pop(session_id, None) is not None:
            logger.info("Room %s deleted", session_id)

    def summaries(self) -> List[RoomSummary]:
        return [room.summary() for room in self._rooms.values()]

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))


__all__ = ["RoomRegistry", "normalize_session_id"]
