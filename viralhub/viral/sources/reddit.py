"""
Reddit Signal Source

Fetches trending posts from Reddit's public JSON listings (no API key).

- One request per second at most
- Up to 3 attempts with 2^attempt second backoff on 429/5xx/transport errors
- Skips removed/deleted posts, score < 10, upvote ratio < 0.5
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from viralhub.utils import get_settings
from .types import (
    FetchConfig,
    FetchResult,
    NormalizedSignal,
    SignalMetrics,
    calculate_velocity,
    truncate_excerpt,
)

logger = logging.getLogger(__name__)


class RedditError(Exception):
    """Reddit request failed after retries."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


MIN_SCORE = 10
MIN_UPVOTE_RATIO = 0.5
MAX_LIMIT = 100


class RedditSource:
    """
    Async client for Reddit listings.

    Usage:
        async with RedditSource() as source:
            result = await source.fetch_signals(FetchConfig(subreddits=["marketing"]))
    """

    BASE_URL = "https://www.reddit.com"
    source_type = "reddit"

    def __init__(
        self,
        user_agent: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 30.0,
        request_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.request_delay = request_delay
        self._last_request = 0.0

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "User-Agent": user_agent or get_settings().REDDIT_USER_AGENT,
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def fetch_signals(self, config: FetchConfig) -> FetchResult:
        """Fetch each subreddit (and an optional search); one failure does not stop the rest."""
        result = FetchResult()
        limit = min(config.limit or 25, MAX_LIMIT)
        seen = set()

        for subreddit in config.subreddits or ["all"]:
            params = {"limit": limit, "raw_json": 1}
            if config.sort == "top":
                params["t"] = config.time_filter
            try:
                posts = await self._get_listing(f"/r/{subreddit}/{config.sort}.json", params)
            except RedditError as e:
                logger.error(f"Error fetching r/{subreddit}: {e}")
                result.errors.append(f"r/{subreddit}: {e}")
                continue

            added = self._collect(posts, config.industry, result, seen)
            logger.info(f"r/{subreddit}: {len(posts)} posts, {added} kept")

        if config.query:
            params = {
                "q": config.query,
                "sort": "relevance" if config.sort == "hot" else config.sort,
                "t": config.time_filter,
                "limit": limit,
                "raw_json": 1,
            }
            try:
                posts = await self._get_listing("/search.json", params)
                added = self._collect(posts, config.industry, result, seen)
                logger.info(f"Search '{config.query}': {len(posts)} posts, {added} kept")
            except RedditError as e:
                logger.error(f"Error searching Reddit for '{config.query}': {e}")
                result.errors.append(f"search: {e}")

        return result

    def _collect(self, posts: List[Dict[str, Any]], industry, result: FetchResult, seen: set) -> int:
        added = 0
        for post in posts:
            if should_skip_post(post) or post.get("id") in seen:
                continue
            seen.add(post.get("id"))
            result.signals.append(normalize_post(post, industry))
            added += 1
        return added

    async def _respect_rate_limit(self):
        elapsed = time.monotonic() - self._last_request
        if elapsed < self.request_delay:
            await asyncio.sleep(self.request_delay - elapsed)
        self._last_request = time.monotonic()

    async def _get_listing(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = await self._request_with_retry(path, params)
        children = (data.get("data") or {}).get("children") or []
        return [child.get("data") or {} for child in children]

    async def _request_with_retry(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """GET with retry on rate limits, server errors and transport failures."""
        config = self.retry_config
        last_exception: Optional[RedditError] = None

        for attempt in range(1, config.max_attempts + 1):
            await self._respect_rate_limit()
            try:
                response = await self._client.get(path, params=params)

                if response.status_code in config.retryable_status_codes:
                    last_exception = RedditError(
                        f"Reddit API error: {response.status_code}", status_code=response.status_code,
                    )
                elif response.status_code >= 400:
                    raise RedditError(f"Reddit API error: {response.status_code}", status_code=response.status_code)
                else:
                    return response.json()

            except httpx.TimeoutException as e:
                last_exception = RedditError(f"Request timed out: {e}")
            except httpx.RequestError as e:
                last_exception = RedditError(f"Request failed: {e}")

            if attempt < config.max_attempts:
                delay = config.initial_delay * (config.exponential_base ** attempt)
                logger.warning(
                    f"Reddit request failed, retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{config.max_attempts})"
                )
                await asyncio.sleep(delay)

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def should_skip_post(post: Dict[str, Any]) -> bool:
    if post.get("selftext") in ("[removed]", "[deleted]"):
        return True
    if post.get("author") == "[deleted]":
        return True
    if (post.get("score") or 0) < MIN_SCORE:
        return True
    if (post.get("upvote_ratio") if post.get("upvote_ratio") is not None else 1.0) < MIN_UPVOTE_RATIO:
        return True
    return False


def normalize_post(post: Dict[str, Any], industry: Optional[str] = None, now: Optional[float] = None) -> NormalizedSignal:
    now = now if now is not None else time.time()
    created_utc = float(post.get("created_utc") or now)
    score = int(post.get("score") or 0)
    age_hours = (now - created_utc) / 3600

    return NormalizedSignal(
        source_type="reddit",
        external_id=str(post["id"]),
        url=f"https://reddit.com{post.get('permalink', '')}",
        title=post.get("title") or "",
        author=post.get("author"),
        community=post.get("subreddit"),
        created_at_external=datetime.fromtimestamp(created_utc, tz=timezone.utc).replace(tzinfo=None),
        metrics=SignalMetrics(
            upvotes=score,
            comments=int(post.get("num_comments") or 0),
            upvote_ratio=post.get("upvote_ratio"),
            velocity=calculate_velocity(score, age_hours),
        ),
        raw_excerpt=truncate_excerpt(post.get("selftext")),
        industry=industry,
    )
