"""In-memory broker — process-local pub/sub with the Redis broker's semantics.

Learn: Used by the test suite and by single-process development
(KNOWHUB_BROKER_BACKEND=memory). Several InMemoryBroker instances can
share one MemoryBus to stand in for several backend replicas talking to
the same Redis. sever() simulates a broker outage: listeners fail with
BrokerError and publishes are refused until restore().
"""

import asyncio
from typing import AsyncIterator, Optional

from knowhub.realtime.broker import Broker, BrokerError

_SEVERED = object()


class MemoryBus:
    """The shared 'server' side: channel → subscriber queues."""

    def __init__(self):
        self.channels: dict[str, set[asyncio.Queue]] = {}
        self.available = True
        self.published: list[tuple[str, str]] = []

    def attach(self, queue: asyncio.Queue, channels: tuple[str, ...]) -> None:
        for channel in channels:
            self.channels.setdefault(channel, set()).add(queue)

    def detach(self, queue: asyncio.Queue) -> None:
        for queues in self.channels.values():
            queues.discard(queue)

    def deliver(self, channel: str, message: str) -> int:
        if not self.available:
            raise BrokerError("Broker unavailable")
        self.published.append((channel, message))
        queues = self.channels.get(channel, set())
        for queue in queues:
            queue.put_nowait((channel, message))
        return len(queues)

    def sever(self) -> None:
        """Drop every subscription, as if the broker connection died."""
        self.available = False
        for queue in {q for queues in self.channels.values() for q in queues}:
            queue.put_nowait(_SEVERED)
        self.channels.clear()

    def restore(self) -> None:
        self.available = True


class InMemoryBroker(Broker):
    """Broker backed by a MemoryBus (a fresh private bus by default)."""

    def __init__(self, bus: Optional[MemoryBus] = None):
        self.bus = bus or MemoryBus()
        self._queue: Optional[asyncio.Queue] = None
        self.connected = False

    async def connect(self) -> None:
        if not self.bus.available:
            raise BrokerError("Broker unavailable")
        self.connected = True

    async def ping(self) -> bool:
        if not self.bus.available:
            raise BrokerError("Broker unavailable")
        return True

    async def publish(self, channel: str, message: str) -> int:
        return self.bus.deliver(channel, message)

    async def subscribe(self, *channels: str) -> None:
        if not self.bus.available:
            raise BrokerError("Broker unavailable")
        if self._queue is not None:
            self.bus.detach(self._queue)
        self._queue = asyncio.Queue()
        self.bus.attach(self._queue, channels)

    async def listen(self) -> AsyncIterator[tuple[str, str]]:
        if self._queue is None:
            raise BrokerError("Not subscribed. Call subscribe() first.")
        queue = self._queue
        while True:
            item = await queue.get()
            if item is _SEVERED:
                raise BrokerError("Subscription lost")
            yield item

    def sever(self) -> None:
        self.bus.sever()

    def restore(self) -> None:
        self.bus.restore()

    async def disconnect(self) -> None:
        if self._queue is not None:
            self.bus.detach(self._queue)
            self._queue = None
        self.connected = False
