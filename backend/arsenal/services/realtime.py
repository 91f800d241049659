"""
Realtime event bus for dashboard clients.

WHAT: Tracks open WebSocket connections grouped by topic and pushes
events to every subscriber of a topic.

WHY: Dashboards need to see new alerts, escalated tickets and SLA changes
without polling. Delivery is best-effort: a socket that fails to receive
is dropped, and a failing socket never affects the others or the caller.

HOW: One in-process ConnectionManager (`realtime_bus`). Each socket always
belongs to its private `user:{id}` topic and may subscribe to the shared
`alerts` and `tickets` topics. Every message has the shape
{"type": event, "data": payload, "timestamp": iso8601}.
"""

import logging
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

from arsenal.models.base import utcnow

logger = logging.getLogger(__name__)

PUBLIC_TOPICS = frozenset({"alerts", "tickets"})


def build_message(event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Wire format of a realtime message."""
    return {"type": event, "data": data, "timestamp": utcnow().isoformat()}


class ConnectionManager:
    """Manages active WebSocket connections grouped by topic."""

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._users: Dict[WebSocket, int] = {}

    async def connect(self, websocket: WebSocket, user_id: int) -> None:
        """Accept a socket and join it to its user's private topic."""
        await websocket.accept()
        self._users[websocket] = user_id
        self._join(f"user:{user_id}", websocket)
        logger.info(
            f"WebSocket connected for user {user_id}",
            extra={"connections": len(self._users)},
        )

    def disconnect(self, websocket: WebSocket) -> None:
        """Forget a socket and remove it from every topic."""
        user_id = self._users.pop(websocket, None)
        for topic in list(self._topics):
            self._leave(topic, websocket)
        if user_id is not None:
            logger.info(f"WebSocket disconnected for user {user_id}")

    def subscribe(self, websocket: WebSocket, topic: str) -> bool:
        """
        Join a shared topic.

        Returns:
            False when the topic isn't one clients may subscribe to
        """
        if topic not in PUBLIC_TOPICS or websocket not in self._users:
            return False
        self._join(topic, websocket)
        return True

    def unsubscribe(self, websocket: WebSocket, topic: str) -> bool:
        if topic not in PUBLIC_TOPICS:
            return False
        self._leave(topic, websocket)
        return True

    async def publish(self, topic: str, event: str, data: Dict[str, Any]) -> int:
        """
        Send an event to every subscriber of `topic`.

        Returns:
            Number of sockets the message was delivered to
        """
        subscribers = list(self._topics.get(topic, ()))
        if not subscribers:
            return 0

        message = build_message(event, data)
        delivered = 0
        for websocket in subscribers:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping WebSocket after failed send on {topic}: {e}")
                self.disconnect(websocket)
        return delivered

    async def send_personal(self, websocket: WebSocket, data: Dict[str, Any]) -> None:
        """Reply to a single socket; a failed send drops it."""
        try:
            await websocket.send_json(data)
        except Exception as e:
            logger.warning(f"Dropping WebSocket after failed reply: {e}")
            self.disconnect(websocket)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    def user_of(self, websocket: WebSocket) -> Optional[int]:
        return self._users.get(websocket)

    def _join(self, topic: str, websocket: WebSocket) -> None:
        self._topics.setdefault(topic, set()).add(websocket)

    def _leave(self, topic: str, websocket: WebSocket) -> None:
        sockets = self._topics.get(topic)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._topics[topic]


# Singleton bus shared by the HTTP routes, the dispatcher and the websocket route
realtime_bus = ConnectionManager()
