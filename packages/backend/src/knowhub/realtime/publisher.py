"""Event publisher — called by mutation handlers after a commit.

Learn: Every handler publishes here *after* its database write has been
committed, never before — a client must not hear about a document that
a rollback then erased. Exactly one broker message goes out per call.

Delivery is best-effort: if the broker is down the failure is logged and
swallowed. The mutation already succeeded, so the HTTP response still
succeeds; only the realtime notification is lost (clients catch up on
their next fetch).
"""

from typing import Any

import structlog
from fastapi import Request

from knowhub.events.envelope import Envelope
from knowhub.events.types import EventKind
from knowhub.realtime.broker import Broker, BrokerError

logger = structlog.get_logger()


class EventPublisher:
    """Serializes envelopes and publishes them on their kind's channel."""

    def __init__(self, broker: Broker):
        self.broker = broker

    async def publish(self, envelope: Envelope) -> bool:
        """Publish one envelope. Returns False if the broker dropped it."""
        try:
            receivers = await self.broker.publish(envelope.channel, envelope.encode())
        except BrokerError as e:
            logger.warning(
                "knowhub.publish_failed",
                channel=envelope.channel,
                team_id=envelope.team_id,
                error=str(e),
            )
            return False
        logger.debug(
            "knowhub.published",
            channel=envelope.channel,
            team_id=envelope.team_id,
            receivers=receivers,
        )
        return True

    # ─── Documents ──────────────────────────────────────

    async def document_created(self, team_id: str, document: dict[str, Any]) -> bool:
        return await self.publish(
            Envelope(EventKind.DOCUMENT_CREATED, team_id, document)
        )

    async def document_updated(self, team_id: str, document: dict[str, Any]) -> bool:
        return await self.publish(
            Envelope(EventKind.DOCUMENT_UPDATED, team_id, document)
        )

    async def document_deleted(self, team_id: str, document_id: str) -> bool:
        return await self.publish(
            Envelope(EventKind.DOCUMENT_DELETED, team_id, document_id)
        )

    # ─── Team ───────────────────────────────────────────

    async def activity_appended(self, team_id: str, activity: dict[str, Any]) -> bool:
        return await self.publish(
            Envelope(EventKind.TEAM_ACTIVITY_APPENDED, team_id, activity)
        )

    async def member_joined(self, team_id: str, member: dict[str, Any]) -> bool:
        return await self.publish(
            Envelope(EventKind.TEAM_MEMBER_JOINED, team_id, member)
        )

    async def member_removed(self, team_id: str, member_id: str, sender_id: str) -> bool:
        """Publish a removal. sender_id lets the actor skip its own echo."""
        return await self.publish(
            Envelope(EventKind.TEAM_MEMBER_REMOVED, team_id, member_id, sender_id)
        )

    async def team_deleted(self, team_id: str) -> bool:
        return await self.publish(Envelope(EventKind.TEAM_DELETED, team_id))

    # ─── Q&A ────────────────────────────────────────────

    async def qa_created(self, team_id: str, qa: dict[str, Any], sender_id: str) -> bool:
        return await self.publish(
            Envelope(EventKind.QA_CREATED, team_id, qa, sender_id)
        )


def get_publisher(request: Request) -> EventPublisher:
    """FastAPI dependency — the publisher built in the app lifespan."""
    return request.app.state.publisher
