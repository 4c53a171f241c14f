import asyncio
import json
from typing import Dict

from fastapi import WebSocket

from constants import SEND_TIMEOUT_SECONDS
from registry import RoomRegistry, registry
from logging_config import get_logger

logger = get_logger(__name__)


class Broadcaster:
    """Fans events out to the live websockets of a room's members.

    Delivery is at-most-once per recipient: a write that fails or exceeds
    ``send_timeout`` is dropped, nothing is queued or retried.
    """

    def __init__(self, room_registry: RoomRegistry, send_timeout: float = SEND_TIMEOUT_SECONDS):
        self.registry = room_registry
        self.send_timeout = send_timeout
        # Format: {connection_id: websocket}
        self.connections: Dict[str, WebSocket] = {}

    def attach(self, connection_id: str, websocket: WebSocket):
        self.connections[connection_id] = websocket
        logger.debug(f"Attached connection {connection_id} (local connections: {len(self.connections)})")

    def detach(self, connection_id: str):
        if self.connections.pop(connection_id, None) is not None:
            logger.debug(f"Detached connection {connection_id} (local connections: {len(self.connections)})")

    async def _deliver(self, connection_id: str, websocket: WebSocket, text: str) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(text), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out sending to connection {connection_id}, dropping message")
        except Exception as e:
            logger.debug(f"Error sending to connection {connection_id}: {e}")
        return False

    async def broadcast(self, room_id: str, event: str, data: dict) -> int:
        """Send one event to every current member of ``room_id``. Returns the delivery count."""
        members = self.registry.members(room_id)
        if not members:
            logger.debug(f"No members in room {room_id}, nothing to broadcast")
            return 0

        # Serialize once so every member receives the same snapshot
        text = json.dumps({"event": event, "data": data})
        send_tasks = []
        for conn_id in members:
            ws = self.connections.get(conn_id)
            if ws is None:
                logger.debug(f"Connection {conn_id} in room {room_id} has no live websocket")
                continue
            send_tasks.append(self._deliver(conn_id, ws, text))

        results = await asyncio.gather(*send_tasks)
        delivered = sum(1 for ok in results if ok)
        logger.debug(f"Broadcasted {event} to {delivered}/{len(members)} connections in room {room_id}")
        return delivered


broadcaster = Broadcaster(registry)
