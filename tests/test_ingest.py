"""
Tests for signal ingestion.
"""

from datetime import datetime, timedelta

import pytest

from viralhub.utils import utcnow
from viralhub.viral.ingest import ingest_signals
from viralhub.viral.sources import FetchConfig, FetchResult, NormalizedSignal, SignalMetrics


def normalized(external_id, title, upvotes=120, comments=15):
    return NormalizedSignal(
        source_type="reddit",
        external_id=external_id,
        url=f"https://reddit.com/r/marketing/comments/{external_id}",
        title=title,
        author="poster",
        community="marketing",
        created_at_external=datetime(2026, 3, 10, 8, 0, 0),
        metrics=SignalMetrics(upvotes=upvotes, comments=comments, upvote_ratio=0.93, velocity=30.0),
        raw_excerpt="Body text",
    )


class StaticSource:
    """SignalSource returning canned results."""

    source_type = "reddit"

    def __init__(self, signals=(), errors=(), failure=None):
        self.result = FetchResult(signals=list(signals), errors=list(errors))
        self.failure = failure
        self.configs = []

    async def fetch_signals(self, config):
        self.configs.append(config)
        if self.failure is not None:
            raise self.failure
        return self.result


class TestIngestSignals:

    @pytest.mark.asyncio
    async def test_inserts_new_signals(self, repository):
        source = StaticSource([
            normalized("a1", "Email open rates dropped after the update"),
            normalized("a2", "What is your newsletter welcome sequence"),
        ])

        result = await ingest_signals(repository, source, FetchConfig(industry="marketing"))

        assert result.success is True
        assert result.inserted == 2
        stored = repository.get_signal_by_external_id("reddit", "a1")
        assert stored.industry == "marketing"
        assert stored.upvotes == 120
        assert [s.external_id for s in result.signals] == ["a1", "a2"]
        assert result.to_dict()["signals"][0]["id"] == str(stored.id)

    @pytest.mark.asyncio
    async def test_recently_fetched_signal_skipped(self, repository, add_signal):
        add_signal("Email open rates dropped", external_id="a1", fetched_at=utcnow() - timedelta(hours=1))
        source = StaticSource([normalized("a1", "Email open rates dropped", upvotes=999)])

        result = await ingest_signals(repository, source, FetchConfig(industry="marketing"))

        assert result.skipped == 1
        assert repository.get_signal_by_external_id("reddit", "a1").upvotes == 50

    @pytest.mark.asyncio
    async def test_stale_signal_gets_fresh_metrics_only(self, repository, add_signal):
        add_signal("Original title", external_id="a1", fetched_at=utcnow() - timedelta(hours=7))
        source = StaticSource([normalized("a1", "Edited title", upvotes=999)])

        result = await ingest_signals(repository, source, FetchConfig(industry="marketing"))

        assert result.updated == 1
        assert result.signals == []
        stored = repository.get_signal_by_external_id("reddit", "a1")
        assert stored.upvotes == 999
        assert stored.title == "Original title"

    @pytest.mark.asyncio
    async def test_spam_counted_not_stored(self, repository):
        source = StaticSource([
            normalized("s1", "Huge giveaway for marketers"),
            normalized("a1", "Cold email templates that still work"),
        ])

        result = await ingest_signals(repository, source, FetchConfig(industry="marketing"))

        assert result.spam == 1
        assert result.inserted == 1
        assert repository.get_signal_by_external_id("reddit", "s1") is None

    @pytest.mark.asyncio
    async def test_partial_source_errors_recorded(self, repository):
        source = StaticSource(
            [normalized("a1", "Cold email templates that still work")],
            errors=["r/smallbusiness: Reddit API error: 503"],
        )

        result = await ingest_signals(repository, source, FetchConfig(industry="marketing"))

        assert result.success is True
        assert result.errors == ["Reddit error: r/smallbusiness: Reddit API error: 503"]

    @pytest.mark.asyncio
    async def test_source_failure(self, repository):
        source = StaticSource(failure=RuntimeError("connection reset"))

        result = await ingest_signals(repository, source, FetchConfig(industry="marketing"))

        assert result.success is False
        assert result.errors == ["Reddit error: connection reset"]
        assert result.inserted == 0
