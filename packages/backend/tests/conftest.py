"""Test fixtures — in-memory broker, app with lifespan, fake connections.

Learn: Nothing here needs Redis. The InMemoryBroker has the same
fire-and-forget semantics, and a MemoryBus shared by two brokers stands
in for two replicas on one Redis. HTTP tests drive the app through
httpx's ASGITransport inside the app's own lifespan, so the relay task
runs on the test's event loop; WebSocket tests use Starlette's
TestClient, which runs the lifespan itself.
"""

import asyncio
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from knowhub.auth.dependencies import CurrentIdentity
from knowhub.auth.jwt import create_access_token
from knowhub.main import create_app
from knowhub.realtime.connections import Connection
from knowhub.realtime.memory import InMemoryBroker


USER_ID = "u-alice"
TEAM_ID = "t1"


class RecordingConnection(Connection):
    """Connection that keeps every frame it was sent."""

    def __init__(self, identity: CurrentIdentity | None = None, fail: bool = False):
        super().__init__(identity)
        self.sent: list[tuple[str, Any]] = []
        self.fail = fail

    async def send(self, event: str, data: Any) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append((event, data))

    def events(self) -> list[str]:
        return [event for event, _ in self.sent]


async def eventually(predicate, timeout: float = 2.0) -> None:
    """Yield to the loop until predicate() holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture()
def make_conn():
    """Factory for recording connections bound to a user/team session."""
    def _make(user_id: str = USER_ID, team_id: str | None = TEAM_ID, fail: bool = False):
        return RecordingConnection(CurrentIdentity(user_id=user_id, team_id=team_id), fail=fail)
    return _make


@pytest.fixture()
def broker():
    return InMemoryBroker()


@pytest.fixture()
def token():
    """Access token for USER_ID in TEAM_ID."""
    return create_access_token(USER_ID, team_id=TEAM_ID)


@pytest.fixture()
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture()
async def app(broker):
    """App with its lifespan running (broker, relay, manager on app.state)."""
    application = create_app(broker=broker)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client against the running app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def stop_relay(relay, task: asyncio.Task) -> None:
    """Stop a relay started with create_task(relay.run()) and reap it."""
    relay.stop()
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
