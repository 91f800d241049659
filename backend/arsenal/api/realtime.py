"""
WebSocket endpoint for realtime dashboard updates.

WHAT: `/ws?token=<JWT>` streams alert and ticket events to the dashboard.

HOW: The token is checked before anything is streamed; a bad token is
answered with close code 4401. Clients then send
{"action": "subscribe" | "unsubscribe", "topic": "alerts" | "tickets"}
or {"action": "ping"}. Ticket assignments arrive on the private topic
without subscribing.
"""

import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.deps import authenticate_token
from arsenal.core.exceptions import AuthenticationError
from arsenal.db.session import get_db
from arsenal.services.realtime import realtime_bus


logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

WS_UNAUTHORIZED = 4401


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: str = Query(default=""),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        user = await authenticate_token(token, db)
    except AuthenticationError as e:
        logger.info(f"Rejected WebSocket connection: {e.message}")
        await websocket.accept()
        await websocket.close(code=WS_UNAUTHORIZED, reason="Unauthorized")
        return
    user_id = user.id
    # Release the connection; the socket may stay open for hours
    await db.close()

    await realtime_bus.connect(websocket, user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await realtime_bus.send_personal(websocket, {"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                await realtime_bus.send_personal(websocket, {"type": "error", "message": "Expected an object"})
                continue

            action = message.get("action")
            topic = message.get("topic")
            if action == "ping":
                await realtime_bus.send_personal(websocket, {"type": "pong"})
            elif action == "subscribe":
                if realtime_bus.subscribe(websocket, topic):
                    await realtime_bus.send_personal(websocket, {"type": "subscribed", "topic": topic})
                else:
                    await realtime_bus.send_personal(websocket, {"type": "error", "message": f"Unknown topic: {topic}"})
            elif action == "unsubscribe":
                if realtime_bus.unsubscribe(websocket, topic):
                    await realtime_bus.send_personal(websocket, {"type": "unsubscribed", "topic": topic})
                else:
                    await realtime_bus.send_personal(websocket, {"type": "error", "message": f"Unknown topic: {topic}"})
            else:
                await realtime_bus.send_personal(websocket, {"type": "error", "message": f"Unknown action: {action}"})
    except WebSocketDisconnect:
        pass
    finally:
        realtime_bus.disconnect(websocket)
