"""Pydantic schemas for the event publishing API.

Learn: Field names follow the wire format (camelCase), so the body a
service POSTs looks like the envelope that ends up on the broker.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from knowhub.events.types import EventKind


class EventCreate(BaseModel):
    kind: EventKind
    team_id: str = Field(..., alias="teamId", min_length=1)
    payload: Any = None
    sender_id: Optional[str] = Field(default=None, alias="senderId")

    model_config = {"populate_by_name": True}


class EventPublished(BaseModel):
    kind: EventKind
    team_id: str = Field(..., serialization_alias="teamId")
    published: bool
