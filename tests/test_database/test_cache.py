"""Tests for the TTL cache."""

from field_stock.database.cache import TieredCache

HOUR = 60 * 60 * 1000


class TestTtlBoundary:
    def test_value_returned_just_before_ttl(self, cache, clock):
        cache.set("trucks", [["ID"]])
        clock.advance(HOUR - 1)
        assert cache.get("trucks") == [["ID"]]

    def test_absent_at_ttl(self, cache, clock):
        cache.set("trucks", [["ID"]])
        clock.advance(HOUR)
        assert cache.get("trucks") is None

    def test_absent_after_ttl(self, cache, clock):
        cache.set("trucks", [["ID"]])
        clock.advance(HOUR * 5)
        assert cache.get("trucks") is None

    def test_expired_entry_evicted(self, cache, clock, store):
        cache.set("trucks", 1)
        clock.advance(HOUR)
        cache.get("trucks")
        assert cache.cached_keys() == []

    def test_set_restarts_ttl(self, cache, clock):
        cache.set("k", 1)
        clock.advance(HOUR - 10)
        cache.set("k", 2)
        clock.advance(HOUR - 1)
        assert cache.get("k") == 2


class TestPurge:
    def test_purge_all(self, cache):
        cache.set("settings", 1)
        cache.set("categories", 2)
        cache.purge()
        assert cache.get("settings") is None
        assert cache.get("categories") is None

    def test_purge_selected(self, cache):
        cache.set("settings", 1)
        cache.set("trucks", 2)
        cache.purge(["trucks"])
        assert cache.get("settings") == 1
        assert cache.get("trucks") is None

    def test_purge_keeps_lockout_state(self, cache, store):
        store.set("loginAttempts", 4)
        cache.set("settings", 1)
        cache.purge()
        assert store.get("loginAttempts") == 4

    def test_default_ttl_from_config(self, store):
        from field_stock.config import Config
        assert TieredCache(store).ttl_ms == Config.cache_ttl_ms()
