from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Deque, Dict, Optional

from .constants import HISTORY_LIMIT
from .schemas import GMStatus, Participant, Roll, RoomPhase, RoomSummary

logger = logging.getLogger(__name__)

# NOTE: ``Room`` only holds state and enforces its invariants. Deciding who
# hears about a change lives in ``presence`` and ``visibility``; deleting the
# room lives in ``cleanup``.


class Room:
    """Runtime state of one dice table: participants, GM and roll history.

    GM-ness belongs to an identity token (``client_id``), not to a socket.
    ``gm_client_id`` is set once by the first join and only disappears with
    the room; ``gm_connection_id`` tracks whichever live connection currently
    carries that token, if any.
    """

    def __init__(self, session_id: str, history_limit: int = HISTORY_LIMIT):
        self.session_id = session_id
        # connection_id -> participant
        self.participants: Dict[str, Participant] = {}
        self._gm_client_id: Optional[str] = None
        self._gm_connection_id: Optional[str] = None
        # Oldest first; appending past the limit drops the oldest roll
        self.history: Deque[Roll] = deque(maxlen=history_limit)
        # Task created when the room becomes empty; deletes it after a grace period
        self.cleanup_task: Optional[asyncio.Task] = None

    # ---------------------------------------------------------------------
    # GM state
    # ---------------------------------------------------------------------

    @property
    def gm_client_id(self) -> Optional[str]:
        return self._gm_client_id

    @property
    def gm_connection_id(self) -> Optional[str]:
        return self._gm_connection_id

    @property
    def gm_status(self) -> GMStatus:
        if self._gm_client_id is None:
            return GMStatus.UNELECTED
        if self._gm_connection_id is None:
            return GMStatus.DETACHED
        return GMStatus.ATTACHED

    def is_gm(self, client_id: Optional[str]) -> bool:
        """Return *True* if *client_id* is the elected GM identity."""
        return bool(client_id) and client_id == self._gm_client_id

    # -------------------- Membership -------------------- #

    def add_participant(self, connection_id: str, name: str, client_id: str) -> bool:
        """Register a connection and run GM election.

        Returns *True* when this join elected a new GM.
        """
        self.participants[connection_id] = Participant(name=name, client_id=client_id)

        elected = False
        if self._gm_client_id is None:
            self._gm_client_id = client_id
            elected = True
            logger.info("Room %s: %s elected GM", self.session_id, name)
        if client_id == self._gm_client_id:
            # Either the fresh GM or the GM coming back on a new socket
            self._gm_connection_id = connection_id
        return elected

    def remove_participant(self, connection_id: str) -> Optional[Participant]:
        participant = self.participants.pop(connection_id, None)
        if connection_id == self._gm_connection_id:
            # Keep the identity so a reconnect re-attaches without re-election
            self._gm_connection_id = None
        return participant

    @property
    def is_empty(self) -> bool:
        return not self.participants

    @property
    def is_abandoned(self) -> bool:
        """Empty of participants and of history, i.e. safe to delete."""
        return not self.participants and not self.history

    # -------------------- History -------------------- #

    def record_roll(self, roll: Roll) -> None:
        self.history.append(roll)

    def clear_history(self) -> None:
        self.history.clear()

    # -------------------- Lifecycle -------------------- #

    @property
    def cleanup_pending(self) -> bool:
        return self.cleanup_task is not None and not self.cleanup_task.done()

    @property
    def phase(self) -> RoomPhase:
        if self.participants:
            return RoomPhase.ACTIVE
        if self.cleanup_pending:
            return RoomPhase.DRAINING
        return RoomPhase.DORMANT

    def summary(self) -> RoomSummary:
        return RoomSummary(
            session_id=self.session_id,
            participant_count=len(self.participants),
            has_gm=self._gm_client_id is not None,
            gm_connected=self._gm_connection_id is not None,
            history_size=len(self.history),
            phase=self.phase,
        )


__all__ = ["Room"]
