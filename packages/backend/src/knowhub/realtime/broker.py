"""Broker — named pub/sub channels shared by every backend process.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine for realtime UI updates (the frontend can always query
the API to catch up).

The broker is an object built at startup and handed to the publisher and
the relay, rather than a module-level connection. Tests swap in the
in-memory broker (see knowhub.realtime.memory) without touching Redis.

Channel naming: one channel per event kind (document:new, team:remove, ...).
The team scope travels inside the envelope, not in the channel name.
"""

from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
import structlog
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

logger = structlog.get_logger()


class BrokerError(Exception):
    """Raised when the broker is unreachable or a subscription drops."""


class Broker:
    """Interface shared by the Redis and in-memory brokers."""

    async def connect(self) -> None:
        raise NotImplementedError

    async def ping(self) -> bool:
        raise NotImplementedError

    async def publish(self, channel: str, message: str) -> int:
        """Publish a message. Returns the number of subscribers reached."""
        raise NotImplementedError

    async def subscribe(self, *channels: str) -> None:
        raise NotImplementedError

    def listen(self) -> AsyncIterator[tuple[str, str]]:
        """Yield (channel, data) for every message on subscribed channels."""
        raise NotImplementedError

    async def disconnect(self) -> None:
        raise NotImplementedError


class RedisBroker(Broker):
    """Redis-backed broker.

    Learn: A connection in SUBSCRIBE mode can't run other commands, so
    publishing goes through the client's pool while subscriptions get a
    dedicated PubSub connection. Every redis/socket failure surfaces as
    BrokerError so callers never import redis themselves.
    """

    def __init__(self, url: str):
        self.url = url
        self._redis: Optional[aioredis.Redis] = None
        self._pubsub: Optional[PubSub] = None

    async def connect(self) -> None:
        self._redis = aioredis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Verify connection
        try:
            await self._redis.ping()
        except (RedisError, OSError) as e:
            raise BrokerError(f"Redis unreachable at {self.url}: {e}") from e

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            raise BrokerError("Broker not connected. Call connect() first.")
        return self._redis

    async def ping(self) -> bool:
        try:
            return bool(await self._client().ping())
        except (RedisError, OSError) as e:
            raise BrokerError(str(e)) from e

    async def publish(self, channel: str, message: str) -> int:
        try:
            return await self._client().publish(channel, message)
        except (RedisError, OSError) as e:
            raise BrokerError(f"Publish to {channel} failed: {e}") from e

    async def subscribe(self, *channels: str) -> None:
        await self._close_pubsub()
        self._pubsub = self._client().pubsub(ignore_subscribe_messages=True)
        try:
            await self._pubsub.subscribe(*channels)
        except (RedisError, OSError) as e:
            raise BrokerError(f"Subscribe failed: {e}") from e

    async def listen(self) -> AsyncIterator[tuple[str, str]]:
        if self._pubsub is None:
            raise BrokerError("Not subscribed. Call subscribe() first.")
        try:
            async for message in self._pubsub.listen():
                if message["type"] == "message":
                    yield message["channel"], message["data"]
        except (RedisError, OSError) as e:
            raise BrokerError(f"Subscription lost: {e}") from e
        # listen() only returns when the connection is gone
        raise BrokerError("Subscription closed")

    async def _close_pubsub(self) -> None:
        if self._pubsub is not None:
            try:
                await self._pubsub.aclose()
            except (RedisError, OSError) as e:
                logger.debug("knowhub.broker.pubsub_close_failed", error=str(e))
            self._pubsub = None

    async def disconnect(self) -> None:
        await self._close_pubsub()
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def create_broker(settings) -> Broker:
    """Build the broker selected by KNOWHUB_BROKER_BACKEND."""
    if settings.broker_backend == "memory":
        from knowhub.realtime.memory import InMemoryBroker

        return InMemoryBroker()
    return RedisBroker(settings.redis_url)
