"""
Cache Configuration

Settings can be overridden via environment variables:
- CACHE_ENABLED: Enable/disable caching globally
- CACHE_BACKEND: memory (single process) or redis (shared)
- REDIS_URL: Redis connection for the shared backend
- CACHE_PREFIX: Key namespace
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache


@dataclass(frozen=True)
class CacheTTL:
    """
    Cache TTL by data type.

    Opportunity lists change on every build or status write, both of which
    invalidate `opportunities:*`; the TTL only bounds staleness from writes
    made by other processes.
    """

    DEFAULT: timedelta = timedelta(minutes=5)
    OPPORTUNITIES: timedelta = timedelta(seconds=120)


@dataclass
class CacheConfig:
    """Main cache configuration."""

    enabled: bool = field(default_factory=lambda: os.getenv(
        "CACHE_ENABLED",
        "true"
    ).lower() == "true")

    backend: str = field(default_factory=lambda: os.getenv(
        "CACHE_BACKEND",
        "memory"
    ).lower())

    redis_url: str = field(default_factory=lambda: os.getenv(
        "REDIS_URL",
        "redis://localhost:6379/0"
    ))

    namespace: str = field(default_factory=lambda: os.getenv(
        "CACHE_PREFIX",
        "viralhub"
    ))

    redis_socket_timeout: float = 2.0
    redis_connect_timeout: float = 2.0
    redis_max_connections: int = 20

    circuit_breaker_enabled: bool = True
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 60


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()
