"""
Bounded, thread-safe cache for pairwise similarity results.

Keys are order independent: the pair (a, b) and the pair (b, a) share an
entry. Entries are spread across shards, each guarded by its own lock, so
concurrent workers rarely contend.
"""

import threading
import zlib
from collections import OrderedDict
from typing import Any, Dict, List, Optional


def make_cache_key(hash_a: str, hash_b: str) -> str:
    """Smaller hash first so the key ignores argument order."""
    if hash_a <= hash_b:
        return f"{hash_a}|{hash_b}"
    return f"{hash_b}|{hash_a}"


class LRUCache:
    """
    Thread-safe LRU cache.
    """

    def __init__(self, max_size: int = 10000):
        """
        Initialize LRU cache.

        Args:
            max_size: Maximum number of entries
        """
        self.max_size = max_size
        self.cache: OrderedDict[str, Any] = OrderedDict()
        self.lock = threading.RLock()

        # Statistics
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        with self.lock:
            if key not in self.cache:
                self.misses += 1
                return None

            # Move to end (most recently used)
            self.cache.move_to_end(key)
            self.hits += 1
            return self.cache[key]

    def set(self, key: str, value: Any):
        """Set value in cache."""
        with self.lock:
            if key in self.cache:
                self.cache.move_to_end(key)
                self.cache[key] = value
                return

            while len(self.cache) >= self.max_size:
                self.cache.popitem(last=False)
                self.evictions += 1

            self.cache[key] = value

    def clear(self):
        """Clear all cache entries."""
        with self.lock:
            self.cache.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0

    def __len__(self) -> int:
        with self.lock:
            return len(self.cache)


class SimilarityCache:
    """
    Sharded LRU cache keyed by unordered pairs of structural hashes.

    The total capacity is split evenly across shards, so the cache never
    holds more than ``max_size`` entries.
    """

    def __init__(self, max_size: int = 10000, shards: int = 16):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        shards = max(1, min(shards, max_size))
        self.max_size = max_size
        base, extra = divmod(max_size, shards)
        self.shards: List[LRUCache] = [
            LRUCache(base + (1 if i < extra else 0)) for i in range(shards)
        ]

    def _shard(self, key: str) -> LRUCache:
        return self.shards[zlib.crc32(key.encode()) % len(self.shards)]

    def get(self, hash_a: str, hash_b: str) -> Optional[float]:
        key = make_cache_key(hash_a, hash_b)
        return self._shard(key).get(key)

    def set(self, hash_a: str, hash_b: str, value: Any):
        key = make_cache_key(hash_a, hash_b)
        self._shard(key).set(key, value)

    def clear(self):
        for shard in self.shards:
            shard.clear()

    def __len__(self) -> int:
        return sum(len(shard) for shard in self.shards)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        hits = sum(shard.hits for shard in self.shards)
        misses = sum(shard.misses for shard in self.shards)
        total = hits + misses
        return {
            'size': len(self),
            'max_size': self.max_size,
            'shards': len(self.shards),
            'hits': hits,
            'misses': misses,
            'evictions': sum(shard.evictions for shard in self.shards),
            'hit_rate': round(hits / total, 3) if total > 0 else 0,
        }
