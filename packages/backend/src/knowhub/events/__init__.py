"""Event kinds and the envelope that carries them through the broker."""

from knowhub.events.envelope import Envelope
from knowhub.events.errors import EnvelopeError
from knowhub.events.types import ALL_CHANNELS, JOIN_TEAM, EventKind

__all__ = ["ALL_CHANNELS", "JOIN_TEAM", "Envelope", "EnvelopeError", "EventKind"]
