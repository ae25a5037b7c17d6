"""Backoff tests."""

from knowhub.realtime.backoff import Backoff


def test_delays_grow_then_cap():
    b = Backoff(initial=0.5, factor=2.0, maximum=3.0)
    assert [b.next_delay() for _ in range(5)] == [0.5, 1.0, 2.0, 3.0, 3.0]
    assert b.attempts == 5


def test_reset_starts_over():
    b = Backoff(initial=1.0, factor=2.0, maximum=10.0)
    b.next_delay()
    b.next_delay()
    b.reset()
    assert b.next_delay() == 1.0
