"""Event errors."""


class EnvelopeError(ValueError):
    """Raised when an envelope or client event is malformed or unknown."""
