"""
Unit tests for the process-local cache tier.
"""

import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_contests.app.caching.local_cache import LocalCache
from shared.test_helpers import ManualClock


class TestLocalCache:
    """Test cases for LocalCache."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def cache(self, clock):
        return LocalCache(max_size=3, ttl_seconds=60, clock=clock)

    def test_get_missing_key(self, cache):
        assert cache.get("absent") is None

    def test_set_then_get(self, cache):
        cache.set("user:1:walletBalances", {"wallet_amount": 50})
        assert cache.get("user:1:walletBalances") == {"wallet_amount": 50}

    def test_entry_survives_until_ttl(self, cache, clock):
        cache.set("k", "v")
        clock.advance(60)
        assert cache.get("k") == "v"

    def test_entry_expires_after_ttl(self, cache, clock):
        cache.set("k", "v")
        clock.advance(60.001)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_evicts_oldest_when_full(self, cache):
        for key in ("a", "b", "c", "d"):
            cache.set(key, key.upper())

        assert len(cache) == 3
        assert cache.get("a") is None
        assert cache.keys() == ["b", "c", "d"]

    def test_overwrite_does_not_evict(self, cache):
        for key in ("a", "b", "c"):
            cache.set(key, 1)

        cache.set("a", 2)

        assert len(cache) == 3
        assert cache.get("a") == 2
        assert cache.get("b") == 1

    def test_size_never_exceeds_capacity(self, clock):
        cache = LocalCache(max_size=10, ttl_seconds=60, clock=clock)
        for i in range(250):
            cache.set(f"key:{i}", i)
            assert len(cache) <= 10

    def test_overwrite_refreshes_expiry(self, cache, clock):
        cache.set("k", 1)
        clock.advance(50)
        cache.set("k", 2)
        clock.advance(50)
        assert cache.get("k") == 2

    def test_delete(self, cache):
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_delete_matching(self, cache):
        cache.set("user:1:walletBalances", 1)
        cache.set("user:1:documentStatus", 2)
        cache.set("user:2:walletBalances", 3)

        removed = cache.delete_matching("user:1:*")

        assert removed == 2
        assert cache.keys() == ["user:2:walletBalances"]

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_contains_respects_expiry(self, cache, clock):
        cache.set("k", 1)
        assert "k" in cache
        clock.advance(61)
        assert "k" not in cache

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            LocalCache(max_size=0)
