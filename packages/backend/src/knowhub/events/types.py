"""Event kind constants.

Learn: Centralizing event kinds in one closed enum prevents typos and
makes it easy to discover every event in the system. The enum values
double as the broker channel names and the event names clients receive,
so a kind that is not listed here can never be published or relayed.
"""

from enum import Enum

from knowhub.events.errors import EnvelopeError


class EventKind(str, Enum):
    """Every realtime event. Value = broker channel = client event name."""

    # ─── Documents ─────────────────────────────────────────
    DOCUMENT_CREATED = "document:new"
    DOCUMENT_UPDATED = "document:update"
    DOCUMENT_DELETED = "document:delete"

    # ─── Team ──────────────────────────────────────────────
    TEAM_ACTIVITY_APPENDED = "team:activity"
    TEAM_MEMBER_JOINED = "team:join"
    TEAM_MEMBER_REMOVED = "team:remove"
    TEAM_DELETED = "team:delete"

    # ─── Q&A ───────────────────────────────────────────────
    QA_CREATED = "qna:new"

    @classmethod
    def from_channel(cls, channel: str) -> "EventKind":
        """Resolve a channel name, rejecting anything outside the closed set."""
        try:
            return cls(channel)
        except ValueError:
            raise EnvelopeError(f"Unknown event kind: {channel!r}")


ALL_CHANNELS: tuple[str, ...] = tuple(kind.value for kind in EventKind)

# Client → server handshake
JOIN_TEAM = "joinTeam"
PING = "ping"
PONG = "pong"
