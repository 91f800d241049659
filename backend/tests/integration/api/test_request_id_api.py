"""
Integration tests for request id propagation.
"""

import pytest


@pytest.mark.asyncio
async def test_incoming_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "upstream-7"})

    assert response.headers["X-Request-ID"] == "upstream-7"


@pytest.mark.asyncio
async def test_request_id_generated_when_missing(client):
    response = await client.get("/health")

    assert len(response.headers["X-Request-ID"]) == 36
