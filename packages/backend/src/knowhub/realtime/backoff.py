"""Bounded exponential backoff for broker and socket reconnects."""

from dataclasses import dataclass, field


@dataclass
class Backoff:
    """Exponential delays capped at `maximum`.

    Learn: "bounded" means the delay stops growing, not that retrying
    stops — the relay keeps trying forever, just never faster than
    once per `maximum` seconds once the broker has been gone a while.
    """

    initial: float = 0.5
    factor: float = 2.0
    maximum: float = 30.0
    attempts: int = field(default=0, init=False)

    def next_delay(self) -> float:
        delay = min(self.initial * (self.factor ** self.attempts), self.maximum)
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0

    @classmethod
    def from_settings(cls, settings) -> "Backoff":
        return cls(
            initial=settings.reconnect_initial_delay,
            factor=settings.reconnect_factor,
            maximum=settings.reconnect_max_delay,
        )
