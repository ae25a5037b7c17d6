"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The lifespan owns the realtime plumbing:

    broker ──► EventPublisher          (used by mutation handlers)
       └────► Relay ──► ConnectionManager ──► /ws sockets

Everything is built here and hung on app.state; nothing reaches for a
module-level connection. Tests pass an InMemoryBroker to create_app().
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from knowhub import __version__
from knowhub.api import api_router
from knowhub.config import settings
from knowhub.realtime.backoff import Backoff
from knowhub.realtime.broker import Broker, BrokerError, create_broker
from knowhub.realtime.connections import (
    AccessPolicy,
    ConnectionManager,
    session_team_policy,
    trust_client_policy,
)
from knowhub.realtime.publisher import EventPublisher
from knowhub.realtime.relay import Relay

logger = structlog.get_logger()


def _default_policy() -> AccessPolicy:
    if settings.verify_team_on_join:
        return session_team_policy
    return trust_client_policy


def create_app(
    broker: Optional[Broker] = None,
    access_policy: Optional[AccessPolicy] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle.

        Learn: Anything before `yield` runs at startup, after `yield`
        runs at shutdown.
        """
        logger.info(
            "knowhub.starting",
            version=__version__,
            environment=settings.environment,
            broker=settings.broker_backend if broker is None else type(broker).__name__,
        )

        app_broker = broker or create_broker(settings)
        try:
            await app_broker.connect()
            logger.info("knowhub.broker_connected")
        except BrokerError as e:
            # Mutations keep working; the relay keeps retrying in the background
            logger.warning("knowhub.broker_unavailable", error=str(e))

        manager = ConnectionManager(access_policy=access_policy or _default_policy())
        relay = Relay(app_broker, manager, Backoff.from_settings(settings))

        app.state.broker = app_broker
        app.state.publisher = EventPublisher(app_broker)
        app.state.manager = manager
        app.state.relay = relay

        relay_task = asyncio.create_task(relay.run())
        try:
            await relay.wait_subscribed(timeout=settings.relay_startup_timeout)
            logger.info("knowhub.relay_started")
        except asyncio.TimeoutError:
            logger.warning("knowhub.relay_not_subscribed", timeout=settings.relay_startup_timeout)

        yield

        # Shutdown
        logger.info("knowhub.shutdown", **manager.stats())
        relay.stop()
        relay_task.cancel()
        try:
            await relay_task
        except asyncio.CancelledError:
            pass
        await app_broker.disconnect()

    app = FastAPI(
        title="Knowhub Realtime",
        description="Team activity fan-out for the Knowhub knowledge base",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    from knowhub.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from knowhub.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: knowhub.main:app)
app = create_app()
