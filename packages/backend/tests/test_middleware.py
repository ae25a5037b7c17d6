"""Request ID middleware tests."""

import pytest


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert "X-Request-ID" in r1.headers
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    r = await client.get("/api/v1/health", headers={"X-Request-ID": "trace-12345"})
    assert r.headers["X-Request-ID"] == "trace-12345"


@pytest.mark.asyncio
async def test_overlong_request_id_replaced(client):
    """An incoming id longer than the cap is swapped for a generated one."""
    long_id = "x" * 129
    r = await client.get("/api/v1/health", headers={"X-Request-ID": long_id})
    assert r.headers["X-Request-ID"] != long_id
    assert len(r.headers["X-Request-ID"]) == 32


def test_resolve_request_id():
    from knowhub.middleware.request_id import MAX_REQUEST_ID_LENGTH, resolve_request_id

    assert resolve_request_id("abc") == "abc"
    assert resolve_request_id("a" * MAX_REQUEST_ID_LENGTH) == "a" * MAX_REQUEST_ID_LENGTH
    assert resolve_request_id("") != ""
    assert resolve_request_id(None)
    assert resolve_request_id("bad\nid") != "bad\nid"
