"""
Tests for the pairwise similarity cache.
"""

import threading

import pytest

from funcsim.similarity.cache import LRUCache, SimilarityCache, make_cache_key


class TestCacheKey:
    """Tests for order-independent keys."""

    def test_order_independent(self):
        """Test that swapping arguments yields the same key."""
        assert make_cache_key("bbbb", "aaaa") == make_cache_key("aaaa", "bbbb") == "aaaa|bbbb"

    def test_same_hash(self):
        """Test a key built from equal hashes."""
        assert make_cache_key("abcd", "abcd") == "abcd|abcd"


class TestLRUCache:
    """Tests for the LRU shard."""

    def test_evicts_least_recently_used(self):
        """Test eviction order."""
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.evictions == 1

    def test_update_does_not_evict(self):
        """Test that overwriting a key keeps the size."""
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert len(cache) == 2
        assert cache.get("a") == 10
        assert cache.evictions == 0


class TestSimilarityCache:
    """Tests for the sharded cache."""

    def test_get_set_symmetric(self):
        """Test that a value stored for (a, b) is found for (b, a)."""
        cache = SimilarityCache(max_size=100)
        cache.set("f00d", "beef", 0.75)

        assert cache.get("beef", "f00d") == 0.75

    def test_miss_returns_none(self):
        """Test that a miss is not an error."""
        cache = SimilarityCache()

        assert cache.get("1", "2") is None
        assert cache.get_stats()['misses'] == 1

    def test_bounded(self):
        """Test that the cache never exceeds its capacity."""
        cache = SimilarityCache(max_size=50, shards=4)
        for i in range(500):
            cache.set(f"{i:04d}", "zzzz", float(i))

        assert len(cache) <= 50
        assert cache.get_stats()['evictions'] >= 450

    def test_capacity_split_exactly(self):
        """Test that shard capacities add up to max_size."""
        cache = SimilarityCache(max_size=10, shards=4)

        assert sum(shard.max_size for shard in cache.shards) == 10

    def test_more_shards_than_capacity(self):
        """Test that tiny caches still work."""
        cache = SimilarityCache(max_size=2, shards=16)
        cache.set("a", "b", 1.0)

        assert len(cache.shards) == 2
        assert cache.get("a", "b") == 1.0

    def test_invalid_size(self):
        """Test rejection of a non-positive capacity."""
        with pytest.raises(ValueError):
            SimilarityCache(max_size=0)

    def test_stats(self):
        """Test hit and miss accounting."""
        cache = SimilarityCache()
        cache.set("a", "b", 0.5)
        cache.get("a", "b")
        cache.get("b", "a")
        cache.get("a", "c")

        stats = cache.get_stats()
        assert stats['hits'] == 2
        assert stats['misses'] == 1
        assert stats['hit_rate'] == pytest.approx(0.667, abs=1e-3)

    def test_concurrent_writers(self):
        """Test that parallel writers do not corrupt the cache."""
        cache = SimilarityCache(max_size=1000)

        def writer(offset):
            for i in range(200):
                cache.set(f"{offset}-{i}", "x", float(i))
                cache.get("x", f"{offset}-{i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) <= 1000
        stats = cache.get_stats()
        assert stats['hits'] + stats['misses'] == 1600
