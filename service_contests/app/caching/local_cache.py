"""
Process-local bounded cache tier.
"""

import fnmatch
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


@dataclass
class CacheEntry:
    """A value held by the local tier."""
    value: Any
    inserted_at: float
    expires_at: float


class LocalCache:
    """Capacity-bounded, TTL-expiring in-memory cache.

    Every entry lives for the same fixed ``ttl_seconds`` regardless of the TTL a
    caller asks the distributed tier for. When full, the oldest-inserted entry
    is evicted (dict order is insertion order; replacing a key keeps its slot).
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None

        return entry.value

    def set(self, key: str, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value,
            inserted_at=now,
            expires_at=now + self.ttl_seconds,
        )

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_matching(self, pattern: str) -> int:
        """Remove every key matching a glob ``pattern``."""
        matched = fnmatch.filter(list(self._entries), pattern)
        for key in matched:
            del self._entries[key]
        return len(matched)

    def keys(self) -> List[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
