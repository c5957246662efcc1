"""
Helpdesk Broadcast Service

Fan-out of full-collection replacement events to connected WebSocket
clients. Sends run concurrently; a socket that fails or exceeds
send_timeout is dropped.

Message shape: {"event": "tickets:updated", "data": [...]}
"""

import asyncio
from typing import Any, Set

from fastapi import WebSocket

from ..logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_SEND_TIMEOUT = 5.0


class Broadcaster:
    """Tracks live WebSocket connections."""

    def __init__(self, send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self.connections: Set[WebSocket] = set()
        self.send_timeout = send_timeout

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.connections.add(websocket)
        logger.info("client connected (%d live)", len(self.connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self.connections.discard(websocket)
        logger.info("client disconnected (%d live)", len(self.connections))

    async def send(self, websocket: WebSocket, event: str, data: Any) -> None:
        await websocket.send_json({"event": event, "data": data})

    async def _deliver(self, websocket: WebSocket, event: str, data: Any) -> bool:
        try:
            await asyncio.wait_for(self.send(websocket, event, data), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("dropping client, %s send timed out", event)
        except Exception as exc:  # peer went away mid-send
            logger.warning("dropping client after failed %s send: %s", event, exc)
        self.connections.discard(websocket)
        return False

    async def broadcast(self, event: str, data: Any) -> int:
        """
        Send an event to every connection.

        Returns the number of clients reached.
        """
        targets = list(self.connections)
        if not targets:
            return 0
        results = await asyncio.gather(
            *(self._deliver(websocket, event, data) for websocket in targets)
        )
        return sum(results)
