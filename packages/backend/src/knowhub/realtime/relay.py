"""Relay — bridges broker channels to team connections.

Learn: The relay runs inside every realtime process. It opens its own
subscriber connection, subscribes to every event channel *before*
processing anything, and for each message:

1. decodes the envelope (malformed → warning, dropped)
2. looks up the kind's emitter in a closed kind → emitter table
3. broadcasts the emitted data to the envelope's team

It never transforms payload content and never queries storage; it is a
pure fan-out router keyed by team id.

If the broker goes away, the relay reconnects with bounded exponential
backoff and re-subscribes. Messages published during the gap are gone —
delivery is at-most-once, and clients recover by refetching.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

from knowhub.events.envelope import Envelope
from knowhub.events.errors import EnvelopeError
from knowhub.events.types import ALL_CHANNELS, EventKind
from knowhub.realtime.backoff import Backoff
from knowhub.realtime.broker import Broker, BrokerError
from knowhub.realtime.connections import ConnectionManager

logger = structlog.get_logger()

Emitter = Callable[[Envelope], Any]


def _payload(envelope: Envelope) -> Any:
    return envelope.payload


def _member_removed(envelope: Envelope) -> dict[str, Any]:
    return {"senderId": envelope.sender_id, "memberId": envelope.payload}


def _team_deleted(envelope: Envelope) -> str:
    return envelope.team_id


def _qa_created(envelope: Envelope) -> dict[str, Any]:
    return {"qa": envelope.payload, "senderId": envelope.sender_id}


# What each kind emits to clients (event name = kind value)
EMITTERS: dict[EventKind, Emitter] = {
    EventKind.DOCUMENT_CREATED: _payload,
    EventKind.DOCUMENT_UPDATED: _payload,
    EventKind.DOCUMENT_DELETED: _payload,
    EventKind.TEAM_ACTIVITY_APPENDED: _payload,
    EventKind.TEAM_MEMBER_JOINED: _payload,
    EventKind.TEAM_MEMBER_REMOVED: _member_removed,
    EventKind.TEAM_DELETED: _team_deleted,
    EventKind.QA_CREATED: _qa_created,
}

@dataclass
class RelayStats:
    """Runtime counters for the health endpoint."""
    received: int = 0
    delivered: int = 0
    dropped: int = 0
    reconnects: int = 0
    subscribed: bool = False


class Relay:
    """Subscribes to every channel and fans envelopes out to team rooms."""

    def __init__(
        self,
        broker: Broker,
        manager: ConnectionManager,
        backoff: Optional[Backoff] = None,
    ):
        self.broker = broker
        self.manager = manager
        self.backoff = backoff or Backoff()
        self.stats = RelayStats()
        self._running = False
        self._subscribed = asyncio.Event()

    async def handle_message(self, channel: str, raw: str | bytes) -> int:
        """Route one broker message. Returns the number of deliveries."""
        self.stats.received += 1
        try:
            envelope = Envelope.decode(channel, raw)
        except EnvelopeError as e:
            self.stats.dropped += 1
            logger.warning("knowhub.relay.dropped", channel=channel, error=str(e))
            return 0

        data = EMITTERS[envelope.kind](envelope)
        delivered = await self.manager.broadcast(envelope.team_id, envelope.kind.value, data)
        self.stats.delivered += delivered

        # Revoked members hear about it first, then leave the room
        if envelope.kind is EventKind.TEAM_MEMBER_REMOVED:
            self.manager.evict(envelope.team_id, user_id=str(envelope.payload))
        elif envelope.kind is EventKind.TEAM_DELETED:
            self.manager.evict(envelope.team_id)

        logger.debug(
            "knowhub.relay.fanned_out",
            channel=channel,
            team_id=envelope.team_id,
            delivered=delivered,
        )
        return delivered

    async def run(self) -> None:
        """Subscribe and relay until stop() — reconnecting on broker loss."""
        self._running = True
        while self._running:
            try:
                await self.broker.subscribe(*ALL_CHANNELS)
                self.stats.subscribed = True
                self._subscribed.set()
                self.backoff.reset()
                logger.info("knowhub.relay.subscribed", channels=len(ALL_CHANNELS))

                async for channel, raw in self.broker.listen():
                    try:
                        await self.handle_message(channel, raw)
                    except Exception:
                        # One bad message must not take the relay down
                        self.stats.dropped += 1
                        logger.exception("knowhub.relay.message_failed", channel=channel)
            except BrokerError as e:
                self.stats.subscribed = False
                self._subscribed.clear()
                if not self._running:
                    break
                delay = self.backoff.next_delay()
                self.stats.reconnects += 1
                logger.warning(
                    "knowhub.relay.broker_lost",
                    error=str(e),
                    retry_in=delay,
                    attempt=self.backoff.attempts,
                )
                await asyncio.sleep(delay)

    async def wait_subscribed(self, timeout: Optional[float] = None) -> None:
        """Block until the relay holds a live subscription."""
        await asyncio.wait_for(self._subscribed.wait(), timeout)

    def stop(self) -> None:
        self._running = False
