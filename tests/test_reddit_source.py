"""
Tests for the Reddit signal source.
"""

from datetime import datetime

import httpx
import pytest

from viralhub.viral.sources import (
    FetchConfig,
    RedditSource,
    RetryConfig,
    calculate_velocity,
    normalize_post,
    should_skip_post,
    truncate_excerpt,
)

CREATED = 1773144000  # 2026-03-10 12:00:00 UTC


def post(post_id, title="Cold email templates that still work", score=120, **extra):
    data = {
        "id": post_id,
        "title": title,
        "author": "poster",
        "subreddit": "marketing",
        "permalink": f"/r/marketing/comments/{post_id}/",
        "score": score,
        "num_comments": 14,
        "upvote_ratio": 0.95,
        "created_utc": CREATED,
        "selftext": "We tested forty subject lines.",
    }
    data.update(extra)
    return data


def listing(*posts):
    return {"data": {"children": [{"kind": "t3", "data": p} for p in posts]}}


def make_source(handler):
    return RedditSource(
        retry_config=RetryConfig(initial_delay=0),
        request_delay=0,
        transport=httpx.MockTransport(handler),
    )


class TestPostFilters:

    @pytest.mark.parametrize("overrides", [
        {"selftext": "[removed]"},
        {"selftext": "[deleted]"},
        {"author": "[deleted]"},
        {"score": 9},
        {"upvote_ratio": 0.4},
    ])
    def test_skipped(self, overrides):
        assert should_skip_post(post("p1", **overrides)) is True

    def test_kept(self):
        assert should_skip_post(post("p1")) is False
        assert should_skip_post(post("p1", upvote_ratio=None)) is False


class TestNormalizePost:

    def test_fields(self):
        signal = normalize_post(post("p1"), industry="marketing", now=CREATED + 4 * 3600)

        assert signal.source_type == "reddit"
        assert signal.external_id == "p1"
        assert signal.url == "https://reddit.com/r/marketing/comments/p1/"
        assert signal.community == "marketing"
        assert signal.created_at_external == datetime(2026, 3, 10, 12, 0, 0)
        assert signal.metrics.upvotes == 120
        assert signal.metrics.velocity == 30.0
        assert signal.industry == "marketing"

    def test_long_excerpt_truncated(self):
        signal = normalize_post(post("p1", selftext="x" * 800), now=CREATED)

        assert len(signal.raw_excerpt) == 503
        assert signal.raw_excerpt.endswith("...")

    def test_helpers(self):
        assert calculate_velocity(50, 0) == 50
        assert calculate_velocity(10, 3) == 3.33
        assert truncate_excerpt("") is None


class TestFetchSignals:

    @pytest.mark.asyncio
    async def test_subreddits_and_search_deduplicated(self):
        requests = []

        def handler(request):
            requests.append(request)
            if request.url.path == "/search.json":
                return httpx.Response(200, json=listing(post("p1"), post("p3", title="Newsletter pricing advice")))
            return httpx.Response(200, json=listing(post("p1"), post("p2", score=2)))

        async with make_source(handler) as source:
            result = await source.fetch_signals(FetchConfig(
                industry="marketing", subreddits=["marketing"], query="email", sort="top", time_filter="week",
            ))

        assert [s.external_id for s in result.signals] == ["p1", "p3"]
        assert result.errors == []
        assert requests[0].url.path == "/r/marketing/top.json"
        assert requests[0].url.params["t"] == "week"
        assert requests[1].url.params["q"] == "email"
        assert requests[0].headers["User-Agent"].startswith("viralhub/")

    @pytest.mark.asyncio
    async def test_failed_subreddit_does_not_stop_others(self):
        def handler(request):
            if request.url.path.startswith("/r/private"):
                return httpx.Response(403)
            return httpx.Response(200, json=listing(post("p1")))

        async with make_source(handler) as source:
            result = await source.fetch_signals(FetchConfig(subreddits=["private", "marketing"]))

        assert [s.external_id for s in result.signals] == ["p1"]
        assert result.errors == ["r/private: Reddit API error: 403"]

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=listing(post("p1")))

        async with make_source(handler) as source:
            result = await source.fetch_signals(FetchConfig(subreddits=["marketing"]))

        assert len(calls) == 3
        assert len(result.signals) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with make_source(handler) as source:
            result = await source.fetch_signals(FetchConfig(subreddits=["marketing"]))

        assert len(calls) == 3
        assert result.signals == []
        assert result.errors[0].startswith("r/marketing: Request failed")
