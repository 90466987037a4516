import pytest

from app.core.exceptions import RateLimitExceededError
from app.services.rate_limiter import InMemoryRateLimiter


class FakeTimer:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limit_applies_within_window():
    timer = FakeTimer()
    limiter = InMemoryRateLimiter(timer=timer)

    assert limiter.allow("login:1.2.3.4:alice", 2, 60)
    assert limiter.allow("login:1.2.3.4:alice", 2, 60)
    assert not limiter.allow("login:1.2.3.4:alice", 2, 60)

    timer.now += 61
    assert limiter.allow("login:1.2.3.4:alice", 2, 60)


def test_hit_raises_over_limit():
    limiter = InMemoryRateLimiter(timer=FakeTimer())
    limiter.hit("refresh:1.2.3.4", 1, 60, "slow down")
    with pytest.raises(RateLimitExceededError) as exc:
        limiter.hit("refresh:1.2.3.4", 1, 60, "slow down")
    assert exc.value.code == 21008
    assert exc.value.message == "slow down"


def test_idle_buckets_are_evicted():
    timer = FakeTimer()
    limiter = InMemoryRateLimiter(timer=timer, sweep_interval=60)

    for i in range(50):
        limiter.allow(f"login:1.2.3.4:user{i}", 5, 60)
    assert len(limiter) == 50

    timer.now += 120
    limiter.allow("login:1.2.3.4:someone", 5, 60)
    assert len(limiter) == 1


def test_bucket_dropped_once_empty():
    timer = FakeTimer()
    limiter = InMemoryRateLimiter(timer=timer, sweep_interval=3600)

    limiter.allow("a", 1, 10)
    timer.now += 11
    assert not limiter.allow("b", 0, 10)
    assert limiter.allow("a", 1, 10)
    assert len(limiter) == 1
