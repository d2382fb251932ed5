"""
Fixed-Window Rate Limiting

Limits requests per caller identity (`user:{id}:{ip}`):
- FixedWindowRateLimiter: in-process, window starts at the first request
- RedisRateLimiter: shared across workers, INCR + EXPIRE in one pipeline

Presets (max requests per 60s window):
- API: 100, AUTH: 10, AI_GENERATE: 20, HEAVY: 5

Usage:
    @router.post("/build", dependencies=[Depends(enforce_rate_limit(RateLimitPreset.HEAVY))])
"""

import enum
import inspect
import logging
import math
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, Optional, Tuple, Union

from fastapi import Depends, Request
from redis.asyncio import Redis
from redis.exceptions import RedisError

from viralhub.exceptions import RateLimitError
from viralhub.utils import get_settings
from .dependencies import get_current_user
from .models import AuthenticatedUser

logger = logging.getLogger(__name__)


class RateLimitPreset(enum.Enum):
    """(max requests, window seconds)"""
    API = (100, 60)
    AUTH = (10, 60)
    AI_GENERATE = (20, 60)
    HEAVY = (5, 60)

    @property
    def max_requests(self) -> int:
        return self.value[0]

    @property
    def window_seconds(self) -> int:
        return self.value[1]


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in: int    # seconds until the window resets


class FixedWindowRateLimiter:
    """
    In-memory fixed window counter.

    The window for a key opens on its first request and closes
    `window_seconds` later; the next request after that opens a new one.
    Expired windows are swept at most once every `sweep_interval` seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()
        # key -> (window start, count, window length)
        self._windows: Dict[str, Tuple[float, int, int]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [k for k, (started, _, window) in self._windows.items() if now - started >= window]
        for key in expired:
            del self._windows[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Dropped {len(expired)} expired rate limit windows")

    def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()

        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep(now)

            started, count, _ = self._windows.get(key, (now, 0, window_seconds))
            if now - started >= window_seconds:
                started, count = now, 0

            reset_in = max(0, math.ceil(started + window_seconds - now))

            if count >= max_requests:
                self._windows[key] = (started, count, window_seconds)
                return RateLimitResult(allowed=False, remaining=0, reset_in=reset_in)

            count += 1
            self._windows[key] = (started, count, window_seconds)
            return RateLimitResult(allowed=True, remaining=max_requests - count, reset_in=reset_in)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


class RedisRateLimiter:
    """
    Redis fixed window. The counter key expires `window_seconds` after its
    first increment, so the window starts at the first request. Fails open
    when Redis is unreachable.
    """

    def __init__(self, client: Redis, prefix: str = "viralhub:ratelimit"):
        self.client = client
        self.prefix = prefix

    async def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        redis_key = f"{self.prefix}:{key}"
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, window_seconds, nx=True)
                pipe.ttl(redis_key)
                count, _, ttl = await pipe.execute()
        except RedisError as e:
            logger.error(f"Rate limiter unavailable, allowing request: {e}")
            return RateLimitResult(allowed=True, remaining=max_requests, reset_in=window_seconds)

        reset_in = ttl if ttl and ttl > 0 else window_seconds
        if count > max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_in=reset_in)
        return RateLimitResult(allowed=True, remaining=max_requests - count, reset_in=reset_in)


RateLimiter = Union[FixedWindowRateLimiter, RedisRateLimiter]


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter for the configured backend."""
    settings = get_settings()
    if settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Using Redis rate limiter")
        return RedisRateLimiter(Redis.from_url(settings.REDIS_URL, decode_responses=True))
    return FixedWindowRateLimiter()


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def get_client_identifier(request: Request, user: Optional[AuthenticatedUser] = None) -> str:
    user_id = user.id if user else "anonymous"
    return f"user:{user_id}:{get_client_ip(request)}"


def enforce_rate_limit(preset: RateLimitPreset):
    """Dependency factory; rejects with RateLimitError before the handler runs."""

    async def dependency(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        key = f"{preset.name.lower()}:{get_client_identifier(request, user)}"
        result = limiter.check(key, preset.max_requests, preset.window_seconds)
        if inspect.isawaitable(result):
            result = await result

        if not result.allowed:
            logger.info(f"Rate limit {preset.name.lower()} exceeded for {key}")
            raise RateLimitError(retry_after=result.reset_in)
        return result

    return dependency
