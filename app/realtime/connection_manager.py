"""
Registry of live WebSocket connections.

Each user has a private channel: every socket that user currently has open.
Events addressed to a user are sent to all of them. State lives in this
process only; a pub/sub backed registry can replace it behind the same
interface.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionRegistry(ABC):
    @abstractmethod
    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        """Subscribe an authenticated socket to the user's channel."""

    @abstractmethod
    async def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        """Remove a socket from the user's channel."""

    @abstractmethod
    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> bool:
        """Publish on a user's channel. False if nothing was delivered."""

    @abstractmethod
    async def broadcast(self, message: dict[str, Any], exclude_websocket: WebSocket | None = None) -> None:
        """Send to every open socket except ``exclude_websocket``."""

    @abstractmethod
    def is_online(self, user_id: str) -> bool:
        ...


class InMemoryConnectionRegistry(ConnectionRegistry):
    """
    WebSocket registry with race condition protection.
    Handles multiple concurrent connections per user (tabs, devices).
    """

    def __init__(self):
        # user_id -> sockets
        self.active_connections: dict[str, list[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self.active_connections.setdefault(user_id, []).append(websocket)
            total = len(self.active_connections[user_id])
        logger.info("User %s connected. Connections for user: %d", user_id, total)

    async def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            connections = self.active_connections.get(user_id)
            if connections is not None:
                if websocket in connections:
                    connections.remove(websocket)
                if not connections:
                    del self.active_connections[user_id]
        logger.info("User %s disconnected", user_id)

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> bool:
        async with self._lock:
            connections = list(self.active_connections.get(user_id, []))

        if not connections:
            return False

        results = await asyncio.gather(
            *(self._safe_send(user_id, connection, message) for connection in connections)
        )
        return any(results)

    async def broadcast(self, message: dict[str, Any], exclude_websocket: WebSocket | None = None) -> None:
        async with self._lock:
            targets = [
                (user_id, connection)
                for user_id, connections in self.active_connections.items()
                for connection in connections
                if connection is not exclude_websocket
            ]

        await asyncio.gather(
            *(self._safe_send(user_id, connection, message) for user_id, connection in targets)
        )

    def is_online(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    def connection_count(self) -> int:
        return sum(len(connections) for connections in self.active_connections.values())

    async def _safe_send(self, user_id: str, websocket: WebSocket, message: dict[str, Any]) -> bool:
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            # Dead socket: drop it so later relays skip it
            logger.warning("Dropping connection for user %s after send failure: %s", user_id, e)
            await self.disconnect(user_id, websocket)
            return False


connection_registry = InMemoryConnectionRegistry()
