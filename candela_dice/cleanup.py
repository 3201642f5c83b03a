"""Deferred deletion of rooms nobody is connected to.

A room that loses its last participant gets one timer. When it fires the
room is deleted only if it is still empty *and* has no history; a room that
still holds rolls is left alone until someone clears them or rejoins and
leaves again.
"""
from __future__ import annotations

import asyncio
import logging

from .registry import RoomRegistry
from .room import Room

logger = logging.getLogger(__name__)


def schedule_cleanup(registry: RoomRegistry, room: Room) -> bool:
    """Arm the grace timer for *room*. Returns *False* if one is already pending.

    Must be called from inside the running event loop.
    """
    if room.cleanup_pending:
        return False
    loop = asyncio.get_running_loop()
    room.cleanup_task = loop.create_task(
        _prune_after_delay(registry, room, registry.cleanup_grace_seconds)
    )
    logger.debug("Room %s empty, cleanup in %ss", room.session_id, registry.cleanup_grace_seconds)
    return True


def cancel_cleanup(room: Room) -> None:
    task = room.cleanup_task
    room.cleanup_task = None
    if task is not None and not task.done():
        task.cancel()
        logger.debug("Room %s reactivated, cleanup cancelled", room.session_id)


async def _prune_after_delay(registry: RoomRegistry, room: Room, delay: float) -> None:
    try:
        await asyncio.sleep(delay)
    except asyncio.CancelledError:
        return
    room.cleanup_task = None
    if registry.get(room.session_id) is not room:
        return
    if room.is_abandoned:
        registry.delete(room.session_id)
    else:
        logger.info(
            "Room %s kept after grace period (%d participants, %d rolls)",
            room.session_id,
            len(room.participants),
            len(room.history),
        )


__all__ = ["schedule_cleanup", "cancel_cleanup"]
