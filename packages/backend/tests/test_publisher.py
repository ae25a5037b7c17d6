"""Publisher tests — one message per mutation, best-effort delivery."""

import json

import pytest

from knowhub.realtime.publisher import EventPublisher


@pytest.mark.asyncio
async def test_each_call_publishes_exactly_once(broker):
    publisher = EventPublisher(broker)

    await publisher.document_created("t1", {"_id": "d1"})
    await publisher.document_updated("t1", {"_id": "d1", "title": "v2"})
    await publisher.document_deleted("t1", "d1")
    await publisher.activity_appended("t1", {"action": "deleted"})
    await publisher.member_joined("t1", {"_id": "u3"})
    await publisher.member_removed("t1", "u3", sender_id="u1")
    await publisher.qa_created("t1", {"_id": "q1"}, sender_id="u1")
    await publisher.team_deleted("t1")

    channels = [channel for channel, _ in broker.bus.published]
    assert channels == [
        "document:new", "document:update", "document:delete", "team:activity",
        "team:join", "team:remove", "qna:new", "team:delete",
    ]


@pytest.mark.asyncio
async def test_member_removed_wire_body(broker):
    await EventPublisher(broker).member_removed("t1", "u3", sender_id="u1")
    channel, message = broker.bus.published[-1]
    assert channel == "team:remove"
    assert json.loads(message) == {"teamId": "t1", "memberId": "u3", "senderId": "u1"}


@pytest.mark.asyncio
async def test_broker_down_is_logged_not_raised(broker):
    broker.sever()
    published = await EventPublisher(broker).document_created("t1", {"_id": "d1"})
    assert published is False
    assert broker.bus.published == []


@pytest.mark.asyncio
async def test_publish_with_no_subscribers_still_succeeds(broker):
    """Fire-and-forget: nobody listening is not a failure."""
    assert await EventPublisher(broker).team_deleted("t1") is True
