"""Event envelope — the self-contained unit published on the broker.

Learn: An envelope carries everything a client needs to reconcile its
local state: the team scope, the kind-specific payload, and (for kinds
that can echo back to their actor) the sender. The relay never goes back
to storage to process one.

Wire format: one JSON object per broker message, published on the channel
named after the kind. Each kind keeps its payload under its own key so
the messages stay readable in `redis-cli monitor`:

    document:new     {"teamId": "t1", "document": {...}}
    document:delete  {"teamId": "t1", "documentId": "d1"}
    team:remove      {"teamId": "t1", "memberId": "u2", "senderId": "u1"}
    team:delete      {"teamId": "t1"}
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from knowhub.events.errors import EnvelopeError
from knowhub.events.types import EventKind

# Key holding the payload for each kind (None = no payload)
PAYLOAD_FIELDS: dict[EventKind, Optional[str]] = {
    EventKind.DOCUMENT_CREATED: "document",
    EventKind.DOCUMENT_UPDATED: "document",
    EventKind.DOCUMENT_DELETED: "documentId",
    EventKind.TEAM_ACTIVITY_APPENDED: "activity",
    EventKind.TEAM_MEMBER_JOINED: "member",
    EventKind.TEAM_MEMBER_REMOVED: "memberId",
    EventKind.TEAM_DELETED: None,
    EventKind.QA_CREATED: "qa",
}

# Kinds that carry the acting user so receivers can suppress self-echo
SENDER_KINDS = frozenset({EventKind.TEAM_MEMBER_REMOVED, EventKind.QA_CREATED})


@dataclass(frozen=True)
class Envelope:
    """One realtime event scoped to a team."""

    kind: EventKind
    team_id: str
    payload: Any = None
    sender_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.team_id, str) or not self.team_id:
            raise EnvelopeError(f"{self.kind.value}: teamId is required")
        if PAYLOAD_FIELDS[self.kind] is not None and self.payload is None:
            raise EnvelopeError(
                f"{self.kind.value}: missing {PAYLOAD_FIELDS[self.kind]!r}"
            )

    @property
    def channel(self) -> str:
        return self.kind.value

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {"teamId": self.team_id}
        field = PAYLOAD_FIELDS[self.kind]
        if field is not None:
            body[field] = self.payload
        if self.kind in SENDER_KINDS:
            body["senderId"] = self.sender_id
        return body

    def encode(self) -> str:
        return json.dumps(self.to_wire(), default=str)

    @classmethod
    def from_wire(cls, kind: EventKind, body: Any) -> "Envelope":
        if not isinstance(body, dict):
            raise EnvelopeError(f"{kind.value}: envelope must be a JSON object")
        field = PAYLOAD_FIELDS[kind]
        return cls(
            kind=kind,
            team_id=body.get("teamId"),
            payload=body.get(field) if field is not None else None,
            sender_id=body.get("senderId") if kind in SENDER_KINDS else None,
        )

    @classmethod
    def decode(cls, channel: str, raw: str | bytes) -> "Envelope":
        """Parse a broker message. Raises EnvelopeError on anything malformed."""
        kind = EventKind.from_channel(channel)
        try:
            body = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise EnvelopeError(f"{channel}: invalid JSON ({e})")
        except RecursionError:
            raise EnvelopeError(f"{channel}: JSON nested too deeply")
        return cls.from_wire(kind, body)

