from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from ..registry import RoomRegistry, normalize_session_id
from ..schemas import RoomSummary

router = APIRouter(prefix="", tags=["rooms"])


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


@router.get("/rooms", response_model=List[RoomSummary])
async def list_rooms(registry: RoomRegistry = Depends(get_registry)):
    return registry.summaries()


@router.get("/rooms/{session_id}", response_model=RoomSummary)
async def get_room(session_id: str, registry: RoomRegistry = Depends(get_registry)):
    room = registry.get(normalize_session_id(session_id))
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return room.summary()


__all__ = ["router", "get_registry"]
