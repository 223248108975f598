"""Tests for the response cache."""

import pytest

from mistral_chat.config import CacheSettings
from mistral_chat.llm.cache import ResponseCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestResponseCache:
    """Tests for ResponseCache."""

    def test_get_set(self) -> None:
        """Stored values are returned."""
        cache: ResponseCache[str] = ResponseCache()
        cache.set("k", "v")
        assert cache.get("k") == "v"
        assert cache.get("missing") is None
        assert len(cache) == 1

    def test_expiry(self) -> None:
        """Entries expire after their TTL."""
        clock = FakeClock()
        cache: ResponseCache[str] = ResponseCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")

        clock.now = 9.9
        assert cache.get("k") == "v"
        clock.now = 10.0
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_lru_eviction(self) -> None:
        """The least recently used entry is evicted when full."""
        cache: ResponseCache[int] = ResponseCache(max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_last_write_wins(self) -> None:
        """Writing an existing key replaces its value."""
        cache: ResponseCache[int] = ResponseCache()
        cache.set("k", 1)
        cache.set("k", 2)
        assert cache.get("k") == 2
        assert len(cache) == 1

    def test_clear(self) -> None:
        """Clear removes every entry."""
        cache: ResponseCache[int] = ResponseCache()
        cache.set("k", 1)
        cache.clear()
        assert len(cache) == 0

    def test_from_settings(self) -> None:
        """Bounds come from settings."""
        cache: ResponseCache[int] = ResponseCache.from_settings(CacheSettings(max_entries=1))
        cache.set("a", 1)
        cache.set("b", 2)
        assert len(cache) == 1

    @pytest.mark.parametrize(("max_entries", "ttl"), [(0, 10.0), (1, 0.0)])
    def test_invalid_bounds(self, max_entries: int, ttl: float) -> None:
        """Non-positive bounds are rejected."""
        with pytest.raises(ValueError):
            ResponseCache(max_entries=max_entries, ttl_seconds=ttl)
