"""
In-memory per-user connection hub.

Each authenticated user may hold several sockets (tabs, devices). Events for a
user are delivered to every socket they hold; dead sockets are pruned on send.
"""
import asyncio
import logging
from typing import Any, Dict, Set

logger = logging.getLogger(__name__)


class NotificationHub:
    def __init__(self):
        # user_id -> connected sockets
        self._users: Dict[str, Set[Any]] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, websocket: Any) -> bool:
        """Add a socket; returns True when this is the user's first connection."""
        user_id = str(user_id)
        async with self._lock:
            sockets = self._users.setdefault(user_id, set())
            first = not sockets
            sockets.add(websocket)
            logger.debug(f"[HUB] Registered socket for user {user_id}. Total: {len(sockets)}")
            return first

    async def unregister(self, user_id: str, websocket: Any) -> bool:
        """Remove a socket; returns True when the user has no sockets left."""
        user_id = str(user_id)
        async with self._lock:
            sockets = self._users.get(user_id)
            if sockets is None:
                return True
            sockets.discard(websocket)
            if sockets:
                return False
            del self._users[user_id]
            logger.debug(f"[HUB] User {user_id} has no sockets left")
            return True

    async def send_to_user(self, user_id: str, message: dict) -> int:
        """Deliver to every socket of one user; returns how many sockets received it."""
        user_id = str(user_id)
        async with self._lock:
            sockets = set(self._users.get(user_id, set()))
        return await self._deliver(sockets, message, owner=user_id)

    async def broadcast(self, message: dict) -> int:
        async with self._lock:
            targets = [(uid, set(socks)) for uid, socks in self._users.items()]
        delivered = 0
        for uid, sockets in targets:
            delivered += await self._deliver(sockets, message, owner=uid)
        return delivered

    async def _deliver(self, sockets: Set[Any], message: dict, owner: str) -> int:
        delivered = 0
        dead = []
        for ws in sockets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug(f"[HUB] Failed to send to socket of user {owner}: {e}")
                dead.append(ws)

        if dead:
            async with self._lock:
                remaining = self._users.get(owner)
                if remaining is not None:
                    for ws in dead:
                        remaining.discard(ws)
                    if not remaining:
                        del self._users[owner]
            logger.debug(f"[HUB] Pruned {len(dead)} dead sockets for user {owner}")
        return delivered

    async def is_online(self, user_id: str) -> bool:
        async with self._lock:
            return bool(self._users.get(str(user_id)))

    async def connection_count(self, user_id: str = None) -> int:
        async with self._lock:
            if user_id is not None:
                return len(self._users.get(str(user_id), set()))
            return sum(len(s) for s in self._users.values())


# Global singleton hub instance
hub = NotificationHub()
