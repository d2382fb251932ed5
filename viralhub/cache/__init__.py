"""
Viral Hub Caching Layer

Two interchangeable backends behind the same async surface
(`get_or_fetch`, `invalidate`):
- TTLCache: in-process dict with expiry, for a single worker
- RedisCache: shared across workers, degrades to misses when Redis is down

Usage:
    cache = create_cache()
    data = await cache.get_or_fetch(key, lambda: load(...), CacheTTL.OPPORTUNITIES)
    await cache.invalidate("opportunities:*")
"""

import logging
from typing import Optional, Union

from .config import CacheConfig, CacheTTL, get_cache_config
from .memory_cache import CacheStats, TTLCache
from .redis_cache import CircuitBreaker, RedisCache

logger = logging.getLogger(__name__)

Cache = Union[TTLCache, RedisCache]


def create_cache(config: Optional[CacheConfig] = None) -> Cache:
    """Pick the backend named by CACHE_BACKEND."""
    config = config or get_cache_config()
    if config.backend == "redis":
        logger.info("Using Redis cache backend")
        return RedisCache(config)
    return TTLCache(enabled=config.enabled)


__all__ = [
    "CacheConfig",
    "CacheTTL",
    "get_cache_config",
    "CacheStats",
    "TTLCache",
    "CircuitBreaker",
    "RedisCache",
    "Cache",
    "create_cache",
]
