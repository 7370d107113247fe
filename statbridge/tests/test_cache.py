"""Tests for the in-memory TTL cache."""
from __future__ import annotations

from statbridge.services.cache import TTLCache


class FakeClock:
    def __init__(self, start: int = 1_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class TestTTLCache:
    """Expiry, cleanup and stats."""

    def test_get_before_and_after_expiry(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("k", {"v": 1}, 100)
        cache.set("other", "x", 10_000)

        assert cache.get("k") == {"v": 1}
        before = cache.stats()["total"]

        clock.advance(150)
        assert cache.get("k") is None
        assert cache.stats()["total"] == before - 1

    def test_entry_still_valid_at_exact_ttl(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("k", 1, 100)
        clock.advance(100)
        assert cache.get("k") == 1

    def test_stats_does_not_mutate(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("a", 1, 10)
        cache.set("b", 2, 1000)
        clock.advance(50)

        assert cache.stats() == {"total": 2, "expired": 1}
        assert cache.stats() == {"total": 2, "expired": 1}
        assert len(cache) == 2

    def test_cleanup_removes_expired_entries(self):
        clock = FakeClock()
        cache = TTLCache(clock=clock)
        cache.set("a", 1, 10)
        cache.set("b", 2, 10)
        cache.set("c", 3, 1000)
        clock.advance(50)

        assert cache.cleanup() == 2
        assert cache.stats() == {"total": 1, "expired": 0}
        assert cache.get("c") == 3

    def test_delete_and_clear(self):
        cache = TTLCache()
        cache.set("a", 1, 1000)
        cache.set("b", 2, 1000)
        cache.delete("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0

    def test_hit_and_miss_counters(self):
        cache = TTLCache()
        cache.set("a", 1, 1000)
        cache.get("a")
        cache.get("missing")
        assert cache.hits == 1
        assert cache.misses == 1

    def test_make_key_is_order_independent(self):
        first = TTLCache.make_key("eurostat", {"geo": "SE", "time": [2020, 2021]})
        second = TTLCache.make_key("eurostat", {"time": [2020, 2021], "geo": "SE"})
        assert first == second
        assert first.startswith("eurostat:")
        assert first != TTLCache.make_key("eurostat", {"geo": "NO", "time": [2020, 2021]})

    def test_entry_serializes_to_persisted_shape(self):
        clock = FakeClock(start=42)
        cache = TTLCache(clock=clock)
        cache.set("k", "v", 5)
        entry = cache._cache["k"]
        assert entry.to_dict() == {"key": "k", "value": "v", "ttl_ms": 5, "created_at_epoch_ms": 42}
