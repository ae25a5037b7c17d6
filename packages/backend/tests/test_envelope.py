"""Envelope wire format tests.

Pattern: test_<operation>_<scenario>
"""

import json

import pytest

from knowhub.events import ALL_CHANNELS, Envelope, EnvelopeError, EventKind


def test_channels_cover_every_kind():
    assert set(ALL_CHANNELS) == {
        "document:new", "document:update", "document:delete",
        "team:activity", "team:join", "team:remove", "team:delete", "qna:new",
    }


def test_encode_document_created_uses_document_key():
    doc = {"_id": "d1", "title": "Onboarding"}
    env = Envelope(EventKind.DOCUMENT_CREATED, "t1", doc)
    assert env.channel == "document:new"
    assert json.loads(env.encode()) == {"teamId": "t1", "document": doc}


def test_encode_member_removed_carries_sender():
    env = Envelope(EventKind.TEAM_MEMBER_REMOVED, "t1", "u2", sender_id="u1")
    assert json.loads(env.encode()) == {"teamId": "t1", "memberId": "u2", "senderId": "u1"}


def test_encode_team_deleted_has_only_team():
    env = Envelope(EventKind.TEAM_DELETED, "t1")
    assert json.loads(env.encode()) == {"teamId": "t1"}


def test_decode_document_deleted():
    env = Envelope.decode("document:delete", '{"teamId": "t1", "documentId": "d1"}')
    assert env.kind is EventKind.DOCUMENT_DELETED
    assert env.team_id == "t1"
    assert env.payload == "d1"
    assert env.sender_id is None


def test_decode_accepts_bytes():
    env = Envelope.decode("qna:new", b'{"teamId": "t1", "qa": {"_id": "q1"}, "senderId": "u1"}')
    assert env.payload == {"_id": "q1"}
    assert env.sender_id == "u1"


def test_decode_ignores_sender_on_kinds_without_one():
    env = Envelope.decode("team:join", '{"teamId": "t1", "member": {"_id": "u3"}, "senderId": "x"}')
    assert env.sender_id is None


@pytest.mark.parametrize("raw", [
    '{"documentId": "d1"}',            # no teamId
    '{"teamId": "", "documentId": "d1"}',
    '{"teamId": 42, "documentId": "d1"}',
    '{"teamId": "t1"}',                # no payload
    '["t1", "d1"]',                    # not an object
    'not json',
])
def test_decode_rejects_malformed(raw):
    with pytest.raises(EnvelopeError):
        Envelope.decode("document:delete", raw)


def test_decode_rejects_unknown_channel():
    with pytest.raises(EnvelopeError, match="Unknown event kind"):
        Envelope.decode("document:archive", '{"teamId": "t1"}')


def test_construct_requires_payload():
    with pytest.raises(EnvelopeError):
        Envelope(EventKind.DOCUMENT_UPDATED, "t1")


def test_decode_rejects_deeply_nested_json():
    raw = '{"teamId": "t1", "documentId": ' + "[" * 200_000 + "]" * 200_000 + "}"
    with pytest.raises(EnvelopeError, match="nested too deeply"):
        Envelope.decode("document:delete", raw)
