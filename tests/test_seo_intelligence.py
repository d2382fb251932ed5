"""
Tests for the SEO intelligence layer.
"""

from typing import Dict, List, Optional, Sequence

import pytest

from viralhub.viral.seo_intelligence import (
    DEMAND_CAPTURE,
    DEMAND_CREATION,
    ExistingContent,
    KeywordData,
    SearchIntelligence,
    SearchQuery,
    build_search_context,
    build_search_intelligence,
    calculate_channel_scores,
    categorize_demand,
    detect_negative_sentiment,
    detect_search_intent,
    evaluate_strategic_gates,
)


class StaticSearchData:
    """In-memory SearchDataProvider."""

    def __init__(self, volumes: Dict[str, KeywordData], queries: Optional[List[SearchQuery]] = None):
        self.volumes = volumes
        self.queries = queries or []
        self.keyword_calls: List[str] = []

    async def get_keyword_data(self, keyword: str) -> Optional[KeywordData]:
        self.keyword_calls.append(keyword)
        return self.volumes.get(keyword)

    async def get_ranking_queries(self, site_url: str, keywords: Sequence[str]) -> List[SearchQuery]:
        return list(self.queries)


class TestClassification:

    @pytest.mark.parametrize("text,intent", [
        ("best crm pricing compared", "commercial"),
        ("free trial for email tools", "transactional"),
        ("why do newsletters work", "informational"),
    ])
    def test_search_intent(self, text, intent):
        assert detect_search_intent(text) == intent

    def test_negative_sentiment(self):
        assert detect_negative_sentiment("This agency is a scam") is True
        assert detect_negative_sentiment("Great results with reels") is False

    @pytest.mark.parametrize("volume,level", [(None, "unknown"), (5000, "high"), (250, "medium"), (20, "low")])
    def test_demand_levels(self, volume, level):
        assert categorize_demand(volume) == level


class TestSearchIntelligence:

    @pytest.mark.asyncio
    async def test_without_provider_demand_unknown(self):
        search = await build_search_intelligence(["email", "marketing"], "email + marketing")

        assert search.has_data is False
        assert search.demand_level == "unknown"
        assert search.opportunity_type == DEMAND_CREATION

    @pytest.mark.asyncio
    async def test_falls_back_to_first_keyword(self):
        provider = StaticSearchData({"email": KeywordData("email", 2400, difficulty=40)})

        search = await build_search_intelligence(["email", "marketing"], "email + marketing", provider)

        assert provider.keyword_calls == ["email  marketing", "email"]
        assert search.search_volume == 2400
        assert search.demand_level == "high"
        assert search.opportunity_type == DEMAND_CAPTURE
        assert search.primary_keyword == "email"

    @pytest.mark.asyncio
    async def test_ranking_queries_filtered_to_topic(self):
        provider = StaticSearchData({}, queries=[
            SearchQuery("email marketing checklist", impressions=300, clicks=10, position=8.0),
            SearchQuery("podcast gear", impressions=900, clicks=40, position=3.0),
        ])

        search = await build_search_intelligence(
            ["email", "marketing"], "email + marketing", provider, site_url="https://acme.test",
        )

        assert [q.query for q in search.queries] == ["email marketing checklist"]
        assert search.best_position == 8.0
        assert search.has_volume_data is False
        assert search.primary_keyword == "email marketing checklist"

    @pytest.mark.asyncio
    async def test_provider_failure_is_tolerated(self):
        class Broken(StaticSearchData):
            async def get_keyword_data(self, keyword):
                raise RuntimeError("quota exceeded")

        search = await build_search_intelligence(["email"], "email", Broken({}))

        assert search.has_data is False


class TestStrategicGates:

    def test_negative_sentiment_about_industry_blocks(self):
        gates = evaluate_strategic_gates(
            "marketing agencies are a scam", ["marketing", "scam"], "marketing", SearchIntelligence(),
        )

        assert gates.intent_alignment.passed is False
        assert gates.blocked_by.startswith("Intent:")

    def test_competitor_mention_blocks(self):
        gates = evaluate_strategic_gates(
            "hubspot + email", ["hubspot", "email"], "marketing", SearchIntelligence(), competitors=["HubSpot"],
        )

        assert gates.all_passed is False
        assert "HubSpot" in gates.intent_alignment.reason

    def test_cannibalization_when_already_ranking(self):
        search = SearchIntelligence(has_data=True, has_ranking_data=True, best_position=4.0)
        content = [ExistingContent("https://acme.test/email", "Email guide", ["email", "marketing"])]

        gates = evaluate_strategic_gates(
            "email + marketing", ["email", "marketing"], "retail", search, existing_content=content,
        )

        assert gates.cannibalization.passed is False
        assert gates.cannibalization.details["action"] == "update_existing"
        assert gates.blocked_by.startswith("Cannibalization:")

    def test_clean_topic_passes(self):
        gates = evaluate_strategic_gates(
            "email + marketing", ["email", "marketing"], "retail", SearchIntelligence(),
            existing_clusters=["email automation"],
        )

        assert gates.all_passed is True
        assert gates.topical_fit.details["action"] == "extend_cluster"
        assert gates.blocked_by is None


class TestChannelScores:

    def _gates(self):
        return evaluate_strategic_gates("email", ["email"], "retail", SearchIntelligence())

    def test_low_volume_blocks_blog(self):
        search = SearchIntelligence(
            has_data=True, has_volume_data=True, search_volume=30, demand_level="low",
        )

        scores = calculate_channel_scores(70, 400, search, self._gates())

        assert scores.blog.viable is False
        assert scores.blog.total == 0
        assert scores.recommended_channel in ("youtube", "instagram")
        assert scores.recommendation.startswith("Low search demand")

    def test_high_volume_recommends_blog(self):
        search = SearchIntelligence(
            has_data=True, has_volume_data=True, search_volume=5000, keyword_difficulty=30,
            demand_level="high", trend_direction="declining",
        )

        scores = calculate_channel_scores(40, 200, search, self._gates())

        # 35 demand + 15 position + 10 viral + 20 fit
        assert scores.blog.total == 80
        assert scores.recommended_channel == "blog"

    def test_search_context_needs_demand(self):
        assert build_search_context(SearchIntelligence(), "email", "thread") is None

        search = SearchIntelligence(
            has_data=True, has_volume_data=True, demand_level="high",
            primary_keyword="email tools", intent="commercial",
        )
        context = build_search_context(search, "email", "Which email tool is worth it")

        assert context["primary_query"] == "email tools"
        assert context["intent"] == "commercial"
        assert "compare options" in context["searcher_question"]
