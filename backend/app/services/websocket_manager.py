"""
DrowsyVision WebSocket Manager
Keeps track of live detection connections.
"""

import logging
from typing import Dict, Set
from fastapi import WebSocket

logger = logging.getLogger("drowsyvision.websocket")


class ConnectionManager:
    """Registry of accepted WebSocket connections, grouped by channel"""

    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {
            "drowsiness": set(),
        }

    async def connect(self, websocket: WebSocket, channel: str = "drowsiness"):
        await websocket.accept()
        if channel not in self.active_connections:
            self.active_connections[channel] = set()
        self.active_connections[channel].add(websocket)
        logger.info(f"Client connected to channel: {channel} (total: {len(self.active_connections[channel])})")

    def disconnect(self, websocket: WebSocket, channel: str = "drowsiness"):
        if channel in self.active_connections:
            self.active_connections[channel].discard(websocket)
        logger.info(f"Client disconnected from channel: {channel}")

    @property
    def total_connections(self) -> int:
        return sum(len(conns) for conns in self.active_connections.values())


# Global instance
ws_manager = ConnectionManager()
