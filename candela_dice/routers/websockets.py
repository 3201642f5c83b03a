from __future__ import annotations

import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..handlers import MALFORMED, disconnect, handle_message
from ..hub import ConnectionHub
from ..presence import failure
from ..registry import RoomRegistry
from ..schemas import Connection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ws"])


@router.websocket("/ws")
async def session_ws_endpoint(ws: WebSocket):
    await ws.accept()
    registry: RoomRegistry = ws.app.state.registry
    hub: ConnectionHub = ws.app.state.hub

    conn = Connection(connection_id=uuid.uuid4().hex)
    hub.connect(conn.connection_id, ws)
    logger.info("Connection %s opened", conn.connection_id)

    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            try:
                if raw is None:
                    # Binary frames are not part of the protocol
                    raise ValueError("binary frame")
                data = json.loads(raw)
            except ValueError:
                await hub.deliver([failure(conn.connection_id, MALFORMED)])
                continue
            await hub.deliver(handle_message(registry, conn, data))
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("Connection %s failed", conn.connection_id)
    finally:
        hub.disconnect(conn.connection_id)
        await hub.deliver(disconnect(registry, conn))
        logger.info("Connection %s closed", conn.connection_id)


__all__ = ["router"]
