"""Unit tests for the TTL cache with an injected clock."""

from __future__ import annotations

import pytest

from analysis.cache import TTLCache

pytestmark = pytest.mark.unit


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    """Values are served until the TTL elapses."""

    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl_seconds=300, clock=clock)
    cache.set("variables", "v1")
    clock.now = 299.9
    assert cache.get("variables") == "v1"
    clock.now = 300.0
    assert cache.get("variables") is None


def test_get_or_set_calls_factory_once_per_ttl() -> None:
    """The factory runs on a miss and again after expiry."""

    clock = FakeClock()
    calls: list[int] = []

    def factory() -> int:
        calls.append(1)
        return len(calls)

    cache: TTLCache[int] = TTLCache(ttl_seconds=10, clock=clock)
    assert cache.get_or_set("k", factory) == 1
    assert cache.get_or_set("k", factory) == 1
    clock.now = 10.0
    assert cache.get_or_set("k", factory) == 2


def test_invalidate_single_key_and_all() -> None:
    """Invalidation drops one key or everything."""

    cache: TTLCache[int] = TTLCache(ttl_seconds=60, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.invalidate()
    assert cache.get("b") is None
    cache.invalidate("missing")


def test_negative_ttl_is_rejected() -> None:
    """A negative lifetime is a configuration error."""

    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=-1)


def test_concurrent_expiry_does_not_raise() -> None:
    """A second reader dropping the same expired entry first is harmless."""

    cache: TTLCache[str] = TTLCache(ttl_seconds=10, clock=FakeClock())
    cache.set("k", "v")
    reads: list[str | None] = []

    def racing_clock() -> float:
        cache._clock = lambda: 20.0
        reads.append(cache.get("k"))
        return 20.0

    cache._clock = racing_clock
    assert cache.get("k") is None
    assert reads == [None]
