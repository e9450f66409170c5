"""Time-bounded lookup cache for entity resolution.

Replaces module-level caches with an explicit object that is constructed
once per process and passed into the resolvers. The clock is injectable so
expiry can be tested without sleeping.

Usage:
    cache = TTLCache(ttl_seconds=300)
    directory = cache.get_or_load("partners", load_partner_directory)
"""

import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


_MISSING = object()


@dataclass
class CacheStats:
    """Hit/miss counters."""
    hits: int = 0
    misses: int = 0
    expired: int = 0


class TTLCache:
    """Thread-safe key/value cache whose entries expire after a fixed TTL."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        self._lock = Lock()
        self.stats = CacheStats()

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return a live entry, or default if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return default

            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self.stats.expired += 1
                self.stats.misses += 1
                return default

            self.stats.hits += 1
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value, calling loader on a miss.

        The loader runs outside the lock; concurrent misses may both load,
        the last writer wins.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one entry, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)
