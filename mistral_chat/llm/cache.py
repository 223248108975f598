"""Bounded response cache keyed by serialized request."""

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Generic, TypeVar

from mistral_chat.config import CacheSettings
from mistral_chat.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ResponseCache(Generic[T]):
    """LRU cache with per-entry expiry.

    The host integration owns the instance and hands it to the nodes that
    may use it. Two invocations writing the same key resolve as
    last-write-wins.

    Args:
        max_entries: Entries kept before the least recently used is evicted.
        ttl_seconds: Lifetime of an entry.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        max_entries: int = 128,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[T, float]] = OrderedDict()

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "ResponseCache[T]":
        """Create a cache sized from settings."""
        return cls(max_entries=settings.max_entries, ttl_seconds=settings.ttl_seconds)

    def get(self, key: str) -> T | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: T) -> None:
        """Store a value, evicting the least recently used entry when full."""
        self._entries[key] = (value, self._clock() + self._ttl_seconds)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cached response {evicted[:12]}")

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
