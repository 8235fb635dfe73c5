"""Time-based cache with an injectable clock.

Used for the variable-metadata cache: entries expire after a TTL or when
explicitly invalidated. Staleness within the TTL is acceptable because reports
are informational dashboards.
"""

from __future__ import annotations

import time
from typing import Callable, Generic, Hashable, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """A small key/value cache whose entries expire after `ttl_seconds`."""

    def __init__(self, ttl_seconds: float = 300.0, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime in seconds (must be >= 0).
            clock: Callable returning the current time in seconds.
        """

        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, V]] = {}

    def get(self, key: Hashable) -> V | None:
        """Return a cached value, or None when missing or expired."""

        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: Hashable, value: V) -> V:
        """Store a value and return it."""

        self._entries[key] = (self._clock(), value)
        return value

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one entry, or every entry when `key` is None."""

        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def get_or_set(self, key: Hashable, factory: Callable[[], V]) -> V:
        """Return a cached value, computing and storing it when missing."""

        value = self.get(key)
        if value is None:
            value = self.set(key, factory())
        return value
