"""Unit tests for the fixed-window rate limiter."""

from __future__ import annotations

from app.utils.rate_limit import DEFAULT_MAX_REQUESTS, RateLimiter


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def test_endpoint_limits_with_wildcard() -> None:
    limiter = RateLimiter()
    assert limiter.limits_for("/api/admin/paion-stats") == (60, 20)
    assert limiter.limits_for("/api/profile") == (60, 30)
    assert limiter.limits_for("/api/channel-reports") == (60, 10)
    assert limiter.limits_for("/api/paion/balance") == (60, DEFAULT_MAX_REQUESTS)


def test_blocks_after_limit_and_reports_remaining() -> None:
    clock = FakeClock()
    limiter = RateLimiter({"/api/x": (60, 3)}, clock=clock)

    results = [limiter.check("user", "/api/x") for _ in range(4)]

    assert [r["allowed"] for r in results] == [True, True, True, False]
    assert [r["remaining"] for r in results] == [2, 1, 0, 0]
    assert results[0]["reset"] == 1_060.0


def test_window_resets_after_expiry() -> None:
    clock = FakeClock()
    limiter = RateLimiter({"/api/x": (60, 1)}, clock=clock)

    assert limiter.check("user", "/api/x")["allowed"]
    assert not limiter.check("user", "/api/x")["allowed"]

    clock.now += 61
    assert limiter.check("user", "/api/x")["allowed"]


def test_identifiers_are_counted_separately() -> None:
    limiter = RateLimiter({"/api/x": (60, 1)}, clock=FakeClock())
    assert limiter.check("alice", "/api/x")["allowed"]
    assert limiter.check("bob", "/api/x")["allowed"]
    assert not limiter.check("alice", "/api/x")["allowed"]


def test_expired_entries_are_purged() -> None:
    clock = FakeClock()
    limiter = RateLimiter({"/api/x": (10, 5)}, clock=clock)
    limiter.check("alice", "/api/x")
    clock.now += 11
    limiter.check("bob", "/api/x")
    assert list(limiter._store) == ["bob:/api/x"]
