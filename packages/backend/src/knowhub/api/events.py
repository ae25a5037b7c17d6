"""Event publishing API — the hand-off point for mutation handlers.

Learn: Handlers living in this process call the EventPublisher directly
(see get_publisher). Handlers in other services POST here once their
write has committed. Either way the result is one broker message, and a
broker outage never turns into an error for the caller: the response
just says `published: false`.
"""

from fastapi import APIRouter, Depends, HTTPException

from knowhub.auth.dependencies import CurrentIdentity, get_current_user
from knowhub.events.envelope import Envelope
from knowhub.events.errors import EnvelopeError
from knowhub.realtime.publisher import EventPublisher, get_publisher
from knowhub.schemas.events import EventCreate, EventPublished

router = APIRouter()


@router.post("/events", response_model=EventPublished, status_code=202)
async def publish_event(
    body: EventCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    publisher: EventPublisher = Depends(get_publisher),
):
    """Publish a committed change to every client of the team."""
    if identity.team_id != body.team_id:
        raise HTTPException(status_code=403, detail="Not a member of this team")

    try:
        envelope = Envelope(
            kind=body.kind,
            team_id=body.team_id,
            payload=body.payload,
            sender_id=body.sender_id,
        )
    except EnvelopeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    published = await publisher.publish(envelope)
    return EventPublished(kind=body.kind, team_id=body.team_id, published=published)
