"""
In-Process TTL Cache

Dict-backed cache guarded by a threading.Lock. Entries expire lazily on
read. Good enough for a single worker; use RedisCache when several workers
must see the same invalidations.
"""

import fnmatch
import inspect
import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from .config import CacheTTL

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass
class CacheStats:
    """Cache operation statistics."""
    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "errors": self.errors,
            "hit_rate_percent": round(self.hit_rate * 100, 2),
        }


def _seconds(ttl: Union[timedelta, int, float, None]) -> float:
    if ttl is None:
        return CacheTTL.DEFAULT.total_seconds()
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


async def resolve(fetcher: Fetcher) -> Any:
    """Call a sync or async fetcher."""
    value = fetcher()
    if inspect.isawaitable(value):
        value = await value
    return value


class TTLCache:
    """Thread-safe in-memory cache with per-entry expiry."""

    def __init__(self, enabled: bool = True, clock: Callable[[], float] = time.monotonic):
        self.enabled = enabled
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None

            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                self.stats.misses += 1
                return None

            self.stats.hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Union[timedelta, int, float, None] = None) -> bool:
        if not self.enabled:
            return False

        with self._lock:
            self._entries[key] = (self._clock() + _seconds(ttl), value)
            self.stats.writes += 1
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern. Returns count deleted."""
        with self._lock:
            matched = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for key in matched:
                del self._entries[key]

        if matched:
            logger.debug(f"Deleted {len(matched)} keys matching {pattern}")
        return len(matched)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Fetcher,
        ttl: Union[timedelta, int, float, None] = None,
    ) -> Any:
        """Return the cached value or compute, store and return it."""
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await resolve(fetcher)
        if value is not None:
            self.set(key, value, ttl)
        return value

    async def invalidate(self, pattern: str) -> int:
        return self.delete_pattern(pattern)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.to_dict()
        stats.update({"backend": "memory", "enabled": self.enabled, "entries": len(self)})
        return stats
