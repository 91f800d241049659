"""
Integration tests for the realtime WebSocket endpoint.

HOW: Starlette's TestClient drives the socket. Token checks are stubbed
so the socket never touches the test database from another event loop.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from arsenal.api import realtime as realtime_api
from arsenal.core.exceptions import TokenInvalidError
from arsenal.db.session import get_db
from arsenal.main import app


@pytest.fixture
def ws_client(monkeypatch):
    async def fake_db():
        session = MagicMock()
        session.close = AsyncMock()
        yield session

    async def fake_authenticate(token, db):
        if token != "good-token":
            raise TokenInvalidError()
        return SimpleNamespace(id=7)

    monkeypatch.setattr(realtime_api, "authenticate_token", fake_authenticate)
    app.dependency_overrides[get_db] = fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_bad_token_is_closed_with_4401(ws_client):
    with ws_client.websocket_connect("/api/ws?token=nope") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == realtime_api.WS_UNAUTHORIZED


def test_ping_and_subscribe(ws_client):
    with ws_client.websocket_connect("/api/ws?token=good-token") as ws:
        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"action": "subscribe", "topic": "alerts"})
        assert ws.receive_json() == {"type": "subscribed", "topic": "alerts"}

        ws.send_json({"action": "subscribe", "topic": "user:8"})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"action": "unsubscribe", "topic": "alerts"})
        assert ws.receive_json() == {"type": "unsubscribed", "topic": "alerts"}


def test_malformed_messages(ws_client):
    with ws_client.websocket_connect("/api/ws?token=good-token") as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Invalid JSON"}

        ws.send_json(["subscribe"])
        assert ws.receive_json() == {"type": "error", "message": "Expected an object"}

        ws.send_json({"action": "dance"})
        assert ws.receive_json() == {"type": "error", "message": "Unknown action: dance"}
