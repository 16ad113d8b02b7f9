"""Simple TTL-based keyed cache for latest vehicle positions."""

import time
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Keyed TTL cache.

    Each key holds a single value with time-based expiration, refreshed on
    every set. Expired entries are dropped lazily on access.
    """

    def __init__(self, ttl: float = 60.0, time_source: Callable[[], float] = time.monotonic):
        """Initialize the cache.

        Args:
            ttl: Time-to-live in seconds for cached values.
            time_source: Monotonic clock, replaceable in tests.
        """
        self._ttl = ttl
        self._now = time_source
        self._entries: dict[str, tuple[T, float]] = {}

    def get(self, key: str) -> T | None:
        """Get the cached value for a key if it hasn't expired.

        Returns:
            The cached value if valid, None if expired or not set.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._now() < expires_at:
            return value
        del self._entries[key]
        return None

    def set(self, key: str, value: T) -> None:
        """Set a value in the cache with TTL."""
        self._entries[key] = (value, self._now() + self._ttl)

    def values(self) -> list[T]:
        """Return all unexpired values."""
        return [value for key in list(self._entries) if (value := self.get(key)) is not None]

    def clear(self) -> None:
        """Clear all cached values."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self.values())
