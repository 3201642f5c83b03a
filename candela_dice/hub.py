"""Connection registry and the "send payload to target set" primitive."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from starlette.websockets import WebSocket, WebSocketState

from .schemas import Delivery

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Maps connection ids to live WebSockets and sends deliveries to them.

    Knows nothing about rooms; handlers already resolved every target set.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, WebSocket] = {}

    def connect(self, connection_id: str, ws: WebSocket) -> None:
        self._connections[connection_id] = ws

    def disconnect(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    async def send(self, connection_id: str, message: Dict[str, Any]) -> bool:
        ws = self._connections.get(connection_id)
        if ws is None or ws.client_state != WebSocketState.CONNECTED:
            return False
        try:
            await ws.send_json(message)
        except Exception:
            logger.debug("Failed to send to connection %s, dropping it", connection_id)
            self._connections.pop(connection_id, None)
            return False
        return True

    async def deliver(self, deliveries: Iterable[Delivery]) -> None:
        for delivery in deliveries:
            for connection_id in sorted(delivery.targets):
                await self.send(connection_id, delivery.message)


__all__ = ["ConnectionHub"]
