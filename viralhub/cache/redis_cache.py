"""
Redis Cache

Shared backend with the TTLCache surface. Values are stored as JSON under
`{namespace}:{key}`. Redis trouble never reaches callers: reads become
misses, writes report False, and a circuit breaker stops hammering a dead
server.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from .config import CacheConfig, CacheTTL, get_cache_config
from .memory_cache import CacheStats, Fetcher, resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")
TTL = Union[timedelta, int, float, None]


@dataclass
class CircuitBreakerState:
    failures: int = 0
    is_open: bool = False
    opened_at: float = 0.0


class CircuitBreaker:
    """
    Opens after `threshold` consecutive failures. Once `timeout` seconds
    have passed the next caller is let through (half-open); its outcome
    closes or reopens the circuit.
    """

    def __init__(self, threshold: int = 5, timeout: int = 60, clock: Callable[[], float] = time.monotonic):
        self.threshold = threshold
        self.timeout = timeout
        self.state = CircuitBreakerState()
        self._clock = clock
        self._lock = asyncio.Lock()

    async def is_available(self) -> bool:
        async with self._lock:
            if self.state.is_open and self._clock() - self.state.opened_at >= self.timeout:
                logger.info("Circuit breaker half-open, trying Redis again")
                self.state = CircuitBreakerState()
            return not self.state.is_open

    async def record_success(self) -> None:
        async with self._lock:
            self.state.failures = 0

    async def record_failure(self) -> None:
        async with self._lock:
            self.state.failures += 1
            if not self.state.is_open and self.state.failures >= self.threshold:
                self.state.is_open = True
                self.state.opened_at = self._clock()
                logger.warning(f"Circuit breaker open for {self.timeout}s after {self.state.failures} Redis failures")


def _seconds(ttl: TTL) -> int:
    ttl = CacheTTL.DEFAULT if ttl is None else ttl
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else ttl
    return max(1, int(seconds))


class RedisCache:
    """Redis-backed cache; every failure degrades to a miss."""

    backend = "redis"

    def __init__(self, config: Optional[CacheConfig] = None, client: Optional[Redis] = None):
        self.config = config or get_cache_config()
        self.stats = CacheStats()
        self._redis = client
        self._pool: Optional[ConnectionPool] = None
        self._connect_lock = asyncio.Lock()
        self._breaker = (
            CircuitBreaker(self.config.circuit_breaker_threshold, self.config.circuit_breaker_timeout)
            if self.config.circuit_breaker_enabled else None
        )

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _key(self, key: str) -> str:
        return f"{self.config.namespace}:{key}"

    async def _connect(self) -> Redis:
        async with self._connect_lock:
            if self._redis is None:
                self._pool = ConnectionPool.from_url(
                    self.config.redis_url,
                    max_connections=self.config.redis_max_connections,
                    socket_timeout=self.config.redis_socket_timeout,
                    socket_connect_timeout=self.config.redis_connect_timeout,
                    decode_responses=True,
                )
                client = Redis(connection_pool=self._pool)
                await client.ping()
                self._redis = client
                logger.info(f"Connected to Redis at {self.config.redis_url}")
        return self._redis

    async def _run(self, op: str, call: Callable[[Redis], Awaitable[T]], fallback: T) -> T:
        """Run one Redis command through the breaker; errors become `fallback`."""
        if not self.config.enabled:
            return fallback
        if self._breaker and not await self._breaker.is_available():
            self.stats.errors += 1
            return fallback

        try:
            result = await call(await self._connect())
        except (RedisError, OSError) as e:
            self.stats.errors += 1
            if self._breaker:
                await self._breaker.record_failure()
            logger.warning(f"Redis {op} failed: {e}")
            return fallback

        if self._breaker:
            await self._breaker.record_success()
        return result

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
        self._redis = None
        self._pool = None

    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._run("get", lambda r: r.get(self._key(key)), None)
        if raw is None:
            self.stats.misses += 1
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            self.stats.errors += 1
            logger.error(f"Discarding undecodable cache entry {key}")
            return None
        self.stats.hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: TTL = None) -> bool:
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            self.stats.errors += 1
            logger.error(f"Cannot cache {key}: {e}")
            return False

        stored = await self._run("set", lambda r: r.set(self._key(key), payload, ex=_seconds(ttl)), False)
        if stored:
            self.stats.writes += 1
        return bool(stored)

    async def delete(self, key: str) -> bool:
        return bool(await self._run("delete", lambda r: r.delete(self._key(key)), 0))

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching a glob pattern; returns how many went."""

        async def scan_and_delete(r: Redis) -> int:
            keys = [k async for k in r.scan_iter(match=self._key(pattern), count=100)]
            return await r.delete(*keys) if keys else 0

        deleted = await self._run("delete_pattern", scan_and_delete, 0)
        if deleted:
            logger.info(f"Invalidated {deleted} keys matching {pattern}")
        return deleted

    async def clear(self) -> int:
        return await self.delete_pattern("*")

    async def get_or_fetch(self, key: str, fetcher: Fetcher, ttl: TTL = None) -> Any:
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await resolve(fetcher)
        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def invalidate(self, pattern: str) -> int:
        return await self.delete_pattern(pattern)

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats.to_dict(),
            "backend": self.backend,
            "enabled": self.config.enabled,
            "connected": self._redis is not None,
            "circuit_breaker_open": bool(self._breaker and self._breaker.state.is_open),
        }
