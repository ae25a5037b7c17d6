"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health reports the broker, the relay subscription, and the version."""
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["broker"] == "ok"
    assert data["relay"] == "ok"
    assert data["connections"] == {"connections": 0, "joined": 0, "teams": 0}
    assert "version" in data


@pytest.mark.asyncio
async def test_health_degraded_when_broker_down(client, broker):
    broker.sever()
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["broker"].startswith("error")
