"""Client reconciler — applies realtime events to locally cached state.

Learn: Delivery is at-most-once and unordered across kinds, and a user's
own optimistic update may already have done what an event describes.
So every handler is idempotent and keyed by entity id:

    document:new     insert if absent
    document:update  replace if present, else ask for a refetch
    document:delete  remove if present
    team:activity    prepend, keep the newest `activity_limit`
    team:join        append member if absent
    team:remove      someone else removed me → leave team + navigate;
                     otherwise drop the member from the list
    team:delete      leave team + navigate, whoever did it
    qna:new          prepend if absent

Handlers never navigate or re-render themselves. They return an Intent
and the UI layer decides what to do with it.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from knowhub.events.types import EventKind


class Intent(str, enum.Enum):
    NONE = "none"
    REFETCH_DOCUMENTS = "refetch_documents"
    NAVIGATE_JOIN_TEAM = "navigate_join_team"


@dataclass
class ClientState:
    """Local caches, mutated only through Reconciler.apply()."""
    user_id: str
    team: Optional[dict[str, Any]] = None
    documents: list[dict[str, Any]] = field(default_factory=list)
    members: list[dict[str, Any]] = field(default_factory=list)
    activities: list[dict[str, Any]] = field(default_factory=list)
    qas: list[dict[str, Any]] = field(default_factory=list)

    def clear_team(self) -> None:
        self.team = None
        self.documents.clear()
        self.members.clear()
        self.activities.clear()
        self.qas.clear()


def entity_id(entity: Any) -> Optional[str]:
    """Identifier of a cached entity: `_id`, falling back to `id`."""
    if isinstance(entity, dict):
        value = entity.get("_id", entity.get("id"))
        return None if value is None else str(value)
    return None


def _index_of(items: list[dict[str, Any]], key: Optional[str]) -> int:
    if key is None:
        return -1
    for i, item in enumerate(items):
        if entity_id(item) == key:
            return i
    return -1


class Reconciler:
    """Applies one event at a time to a ClientState."""

    def __init__(self, state: ClientState, activity_limit: int = 5):
        self.state = state
        self.activity_limit = activity_limit
        self._handlers: dict[EventKind, Callable[[Any], Intent]] = {
            EventKind.DOCUMENT_CREATED: self._document_created,
            EventKind.DOCUMENT_UPDATED: self._document_updated,
            EventKind.DOCUMENT_DELETED: self._document_deleted,
            EventKind.TEAM_ACTIVITY_APPENDED: self._activity_appended,
            EventKind.TEAM_MEMBER_JOINED: self._member_joined,
            EventKind.TEAM_MEMBER_REMOVED: self._member_removed,
            EventKind.TEAM_DELETED: self._team_deleted,
            EventKind.QA_CREATED: self._qa_created,
        }

    def apply(self, event: str, data: Any) -> Intent:
        """Apply a server event. Unknown event names raise EnvelopeError."""
        kind = EventKind.from_channel(event)
        return self._handlers[kind](data)

    # ─── Documents ──────────────────────────────────────

    def _document_created(self, document: Any) -> Intent:
        key = entity_id(document)
        if key is None:
            return Intent.REFETCH_DOCUMENTS
        if _index_of(self.state.documents, key) == -1:
            self.state.documents.append(document)
        return Intent.NONE

    def _document_updated(self, document: Any) -> Intent:
        i = _index_of(self.state.documents, entity_id(document))
        if i == -1:
            # Unknown locally (or no id); the payload may be a partial view
            return Intent.REFETCH_DOCUMENTS
        self.state.documents[i] = document
        return Intent.NONE

    def _document_deleted(self, document_id: Any) -> Intent:
        key = str(document_id) if document_id is not None else None
        i = _index_of(self.state.documents, key)
        if i != -1:
            del self.state.documents[i]
        return Intent.NONE

    # ─── Team ───────────────────────────────────────────

    def _activity_appended(self, activity: Any) -> Intent:
        key = entity_id(activity)
        if key is not None and _index_of(self.state.activities, key) != -1:
            return Intent.NONE
        self.state.activities.insert(0, activity)
        del self.state.activities[self.activity_limit:]
        return Intent.NONE

    def _member_joined(self, member: Any) -> Intent:
        key = entity_id(member)
        if key is not None and _index_of(self.state.members, key) == -1:
            self.state.members.append(member)
        return Intent.NONE

    def _member_removed(self, data: Any) -> Intent:
        if not isinstance(data, dict):
            return Intent.NONE
        member_id = data.get("memberId")
        sender_id = data.get("senderId")
        me = self.state.user_id

        if member_id == me:
            if sender_id == me:
                # Our own leave action echoing back; already handled locally
                return Intent.NONE
            self.state.clear_team()
            return Intent.NAVIGATE_JOIN_TEAM

        i = _index_of(self.state.members, None if member_id is None else str(member_id))
        if i != -1:
            del self.state.members[i]
        return Intent.NONE

    def _team_deleted(self, team_id: Any) -> Intent:
        self.state.clear_team()
        return Intent.NAVIGATE_JOIN_TEAM

    # ─── Q&A ────────────────────────────────────────────

    def _qa_created(self, data: Any) -> Intent:
        qa = data.get("qa") if isinstance(data, dict) else None
        key = entity_id(qa)
        if key is not None and _index_of(self.state.qas, key) == -1:
            self.state.qas.insert(0, qa)
        return Intent.NONE

