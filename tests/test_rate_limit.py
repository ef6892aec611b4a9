from __future__ import annotations

from core.rate_limit import PostRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_admits_up_to_limit_within_window() -> None:
    clock = FakeClock()
    limiter = PostRateLimiter(max_posts=3, window_seconds=60, clock=clock)

    assert [limiter.allow() for _ in range(5)] == [True, True, True, False, False]


def test_window_reset_admits_again() -> None:
    clock = FakeClock()
    limiter = PostRateLimiter(max_posts=2, window_seconds=60, clock=clock)
    limiter.allow()
    limiter.allow()
    assert not limiter.allow()

    clock.now = 59.9
    assert not limiter.allow()

    clock.now = 60.0
    assert limiter.allow()
    assert limiter.allow()
    assert not limiter.allow()
