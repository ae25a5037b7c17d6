"""Client reconciler tests — idempotence, self-echo, forced navigation.

Pattern: test_<event>_<scenario>
"""

import pytest

from knowhub.client.reconciler import ClientState, Intent, Reconciler
from knowhub.events import EnvelopeError

ME = "u-me"


@pytest.fixture
def state():
    return ClientState(
        user_id=ME,
        team={"_id": "t1", "name": "Docs"},
        members=[{"_id": ME}, {"_id": "u-bob"}],
    )


@pytest.fixture
def rec(state):
    return Reconciler(state, activity_limit=5)


# ═══════════════════════════════════════════════════════════
# Documents
# ═══════════════════════════════════════════════════════════


def test_document_created_twice_inserts_once():
    state = ClientState(user_id=ME)
    rec = Reconciler(state)
    doc = {"_id": "d1", "title": "Runbook"}

    assert rec.apply("document:new", doc) is Intent.NONE
    assert rec.apply("document:new", doc) is Intent.NONE
    assert state.documents == [doc]


def test_document_updated_replaces_by_id(state, rec):
    state.documents = [{"_id": "d1", "title": "old"}, {"_id": "d2", "title": "keep"}]
    assert rec.apply("document:update", {"_id": "d1", "title": "new"}) is Intent.NONE
    assert state.documents == [{"_id": "d1", "title": "new"}, {"_id": "d2", "title": "keep"}]


def test_document_updated_unknown_asks_for_refetch(state, rec):
    state.documents = [{"_id": "d2"}]
    assert rec.apply("document:update", {"_id": "d1", "title": "partial"}) is Intent.REFETCH_DOCUMENTS
    assert state.documents == [{"_id": "d2"}]


def test_document_deleted_removes_by_id(state, rec):
    state.documents = [{"_id": "d1", "title": "a"}, {"_id": "d2", "title": "b"}]
    assert rec.apply("document:delete", "d1") is Intent.NONE
    assert state.documents == [{"_id": "d2", "title": "b"}]


def test_document_deleted_absent_is_noop(state, rec):
    state.documents = [{"_id": "d2"}]
    rec.apply("document:delete", "d1")
    rec.apply("document:delete", "d1")
    assert state.documents == [{"_id": "d2"}]


# ═══════════════════════════════════════════════════════════
# Activity feed
# ═══════════════════════════════════════════════════════════


def test_activity_prepends_and_caps(state, rec):
    for i in range(7):
        rec.apply("team:activity", {"_id": f"a{i}", "action": "updated"})
    assert [a["_id"] for a in state.activities] == ["a6", "a5", "a4", "a3", "a2"]


def test_activity_duplicate_not_repeated(state, rec):
    rec.apply("team:activity", {"_id": "a1"})
    rec.apply("team:activity", {"_id": "a1"})
    assert len(state.activities) == 1


# ═══════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════


def test_member_joined_appends_if_absent(state, rec):
    rec.apply("team:join", {"_id": "u-carol", "name": "Carol"})
    rec.apply("team:join", {"_id": "u-carol", "name": "Carol"})
    assert [m["_id"] for m in state.members] == [ME, "u-bob", "u-carol"]


def test_member_removed_other_member_drops_from_list(state, rec):
    intent = rec.apply("team:remove", {"senderId": ME, "memberId": "u-bob"})
    assert intent is Intent.NONE
    assert [m["_id"] for m in state.members] == [ME]
    assert state.team is not None


def test_member_removed_me_by_someone_else_navigates(state, rec):
    intent = rec.apply("team:remove", {"senderId": "u-bob", "memberId": ME})
    assert intent is Intent.NAVIGATE_JOIN_TEAM
    assert state.team is None
    assert state.members == []


def test_member_removed_self_echo_suppressed(state, rec):
    """I left the team myself; my optimistic update already ran."""
    intent = rec.apply("team:remove", {"senderId": ME, "memberId": ME})
    assert intent is Intent.NONE
    assert state.team == {"_id": "t1", "name": "Docs"}


# ═══════════════════════════════════════════════════════════
# Team deletion
# ═══════════════════════════════════════════════════════════


def test_team_deleted_clears_and_navigates(state, rec):
    state.documents = [{"_id": "d1"}]
    state.qas = [{"_id": "q1"}]
    assert rec.apply("team:delete", "t1") is Intent.NAVIGATE_JOIN_TEAM
    assert state.team is None
    assert state.documents == [] and state.qas == []


def test_team_deleted_navigates_even_for_owner():
    """Deletion doesn't care who did it."""
    owner_state = ClientState(user_id="u-owner", team={"_id": "t1"})
    assert Reconciler(owner_state).apply("team:delete", "t1") is Intent.NAVIGATE_JOIN_TEAM
    assert owner_state.team is None


# ═══════════════════════════════════════════════════════════
# Q&A
# ═══════════════════════════════════════════════════════════


def test_qa_created_prepends_if_absent(state, rec):
    state.qas = [{"_id": "q0"}]
    rec.apply("qna:new", {"qa": {"_id": "q1", "question": "Where?"}, "senderId": "u-bob"})
    rec.apply("qna:new", {"qa": {"_id": "q1", "question": "Where?"}, "senderId": "u-bob"})
    assert [q["_id"] for q in state.qas] == ["q1", "q0"]


def test_unknown_event_rejected(rec):
    with pytest.raises(EnvelopeError):
        rec.apply("document:archive", {"_id": "d1"})
