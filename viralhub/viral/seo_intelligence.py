"""
SEO Intelligence Layer

Decision layer that classifies a viral topic against search demand:
- Demand capture: proven search volume, blog-first
- Demand creation: no search demand yet, social-first

Provides:
- Search intent and negative sentiment detection
- Four strategic gates (intent alignment, topical fit, cannibalization,
  competitive viability)
- Per-channel scores (blog / youtube / instagram) with viability
- Search context for briefs

Search data comes from an injected SearchDataProvider (keyword volume +
ranking queries); without one, demand is "unknown".
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

INTENT_TRANSACTIONAL = "transactional"
INTENT_COMMERCIAL = "commercial"
INTENT_INFORMATIONAL = "informational"

DEMAND_CAPTURE = "demand_capture"
DEMAND_CREATION = "demand_creation"

HIGH_DEMAND_VOLUME = 1000
MEDIUM_DEMAND_VOLUME = 100
EXCEPTIONAL_ENGAGEMENT = 5000
CHANNEL_VIABLE_SCORE = 30

COMMERCIAL_PATTERNS = [
    re.compile(r"\b(kopen|bestellen|prijs|prijzen|kosten|tarief|tarieven|offerte|vergelijk)\b", re.I),
    re.compile(r"\b(buy|order|price|pricing|cost|quote|compare|vs|versus)\b", re.I),
    re.compile(r"\b(beste|top|review|reviews|ervaringen|beoordeling)\b", re.I),
    re.compile(r"\b(best|top|review|reviews|rating|rated)\b", re.I),
]

TRANSACTIONAL_PATTERNS = [
    re.compile(r"\b(aanmelden|inschrijven|download|koop|bestel|reserveer|boek)\b", re.I),
    re.compile(r"\b(sign.?up|subscribe|download|buy|order|book|register|get.started)\b", re.I),
    re.compile(r"\b(gratis|free|trial|demo|cursus|training|workshop)\b", re.I),
]

NEGATIVE_SENTIMENT_PATTERNS = [
    re.compile(r"\b(scam|fraud|oplicht|oplichter|waardeloos|slecht|falen|fail)\b", re.I),
    re.compile(r"\b(scam|fraud|fake|worthless|bad|terrible|worst|fail|fired|quit|stop)\b", re.I),
    re.compile(r"\b(waarom.*(niet|stop|quit|fail))\b", re.I),
    re.compile(r"\b(why.*(not|stop|quit|fail|fire))\b", re.I),
]


# =============================================================================
# SEARCH DATA
# =============================================================================

@dataclass
class KeywordData:
    """Search demand for one keyword (e.g. from Ahrefs)."""
    keyword: str
    volume: int
    difficulty: Optional[int] = None


@dataclass
class SearchQuery:
    """A query the client's site already ranks for (e.g. from Search Console)."""
    query: str
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    position: float = 0.0


class SearchDataProvider(Protocol):
    """Source of search demand and ranking data."""

    async def get_keyword_data(self, keyword: str) -> Optional[KeywordData]:
        ...

    async def get_ranking_queries(self, site_url: str, keywords: Sequence[str]) -> List[SearchQuery]:
        ...


@dataclass
class SearchIntelligence:
    """What search data says about a topic."""
    has_data: bool = False
    has_volume_data: bool = False
    has_ranking_data: bool = False
    keyword_data: Optional[KeywordData] = None
    queries: List[SearchQuery] = field(default_factory=list)
    search_volume: Optional[int] = None
    keyword_difficulty: Optional[int] = None
    total_impressions: int = 0
    total_clicks: int = 0
    best_position: Optional[float] = None
    demand_level: str = "unknown"       # high, medium, low, unknown
    opportunity_type: str = DEMAND_CREATION
    primary_keyword: Optional[str] = None
    intent: str = INTENT_INFORMATIONAL
    trend_direction: str = "stable"     # rising, stable, declining

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_data": self.has_data,
            "data_sources": {"volume": self.has_volume_data, "rankings": self.has_ranking_data},
            "search_volume": self.search_volume,
            "keyword_difficulty": self.keyword_difficulty,
            "total_impressions": self.total_impressions,
            "total_clicks": self.total_clicks,
            "best_position": self.best_position,
            "demand_level": self.demand_level,
            "opportunity_type": self.opportunity_type,
            "primary_keyword": self.primary_keyword,
            "intent": self.intent,
            "trend_direction": self.trend_direction,
        }


def detect_search_intent(text: str) -> str:
    """Transactional patterns win over commercial; default informational."""
    lower = (text or "").lower()
    if any(p.search(lower) for p in TRANSACTIONAL_PATTERNS):
        return INTENT_TRANSACTIONAL
    if any(p.search(lower) for p in COMMERCIAL_PATTERNS):
        return INTENT_COMMERCIAL
    return INTENT_INFORMATIONAL


def detect_negative_sentiment(text: str) -> bool:
    lower = (text or "").lower()
    return any(p.search(lower) for p in NEGATIVE_SENTIMENT_PATTERNS)


def categorize_demand(volume: Optional[int]) -> str:
    if volume is None:
        return "unknown"
    if volume >= HIGH_DEMAND_VOLUME:
        return "high"
    if volume >= MEDIUM_DEMAND_VOLUME:
        return "medium"
    return "low"


def _clean_keyword(text: str) -> str:
    return re.sub(r"[^a-z0-9\s]", "", text.lower()).strip()


async def build_search_intelligence(
    keywords: Sequence[str],
    topic: str,
    provider: Optional[SearchDataProvider] = None,
    site_url: Optional[str] = None,
) -> SearchIntelligence:
    """
    Gather search demand (volume) and existing rankings for a topic.

    Volume drives demand level; rankings are only used for cannibalization
    and position signals, never as a demand proxy.
    """
    keyword_data: Optional[KeywordData] = None
    queries: List[SearchQuery] = []

    if provider:
        try:
            keyword_data = await provider.get_keyword_data(_clean_keyword(topic))
            if not keyword_data and keywords:
                keyword_data = await provider.get_keyword_data(_clean_keyword(keywords[0]))
        except Exception as e:
            logger.warning(f"Failed to fetch keyword volume for '{topic}': {e}")

        if site_url:
            try:
                raw = await provider.get_ranking_queries(site_url, keywords)
                keyword_set = {k.lower() for k in keywords}
                queries = [
                    q for q in raw
                    if any(w in keyword_set for w in q.query.lower().split())
                    or any(k.lower() in q.query.lower() for k in keywords)
                ]
            except Exception as e:
                logger.warning(f"Failed to fetch ranking queries for {site_url}: {e}")

    demand_level = categorize_demand(keyword_data.volume if keyword_data else None)
    primary_keyword = keyword_data.keyword if keyword_data else None
    if not primary_keyword and queries:
        primary_keyword = max(queries, key=lambda q: q.impressions).query

    return SearchIntelligence(
        has_data=keyword_data is not None or bool(queries),
        has_volume_data=keyword_data is not None,
        has_ranking_data=bool(queries),
        keyword_data=keyword_data,
        queries=queries,
        search_volume=keyword_data.volume if keyword_data else None,
        keyword_difficulty=keyword_data.difficulty if keyword_data else None,
        total_impressions=sum(q.impressions for q in queries),
        total_clicks=sum(q.clicks for q in queries),
        best_position=min((q.position for q in queries), default=None),
        demand_level=demand_level,
        opportunity_type=DEMAND_CAPTURE if demand_level in ("high", "medium") else DEMAND_CREATION,
        primary_keyword=primary_keyword,
        intent=detect_search_intent(primary_keyword or " ".join(keywords)),
    )


# =============================================================================
# STRATEGIC GATES
# =============================================================================

@dataclass
class ExistingContent:
    """A page the client already has."""
    url: str
    title: str
    keywords: List[str] = field(default_factory=list)


@dataclass
class GateResult:
    """Result of one strategic gate."""
    gate_name: str
    passed: bool
    reason: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"gate_name": self.gate_name, "passed": self.passed, "reason": self.reason, **self.details}


@dataclass
class StrategicGates:
    """All four gates; the first failure (in order) is the blocker."""
    intent_alignment: GateResult
    topical_fit: GateResult
    cannibalization: GateResult
    competitive_viability: GateResult

    GATE_LABELS = {
        "intent_alignment": "Intent",
        "topical_fit": "Topical fit",
        "cannibalization": "Cannibalization",
        "competitive_viability": "Competition",
    }

    @property
    def gates(self) -> List[GateResult]:
        return [self.intent_alignment, self.topical_fit, self.cannibalization, self.competitive_viability]

    @property
    def all_passed(self) -> bool:
        return all(g.passed for g in self.gates)

    @property
    def blocked_by(self) -> Optional[str]:
        for gate in self.gates:
            if not gate.passed:
                return f"{self.GATE_LABELS[gate.gate_name]}: {gate.reason}"
        return None

    def to_dict(self) -> Dict[str, Any]:
        result = {g.gate_name: g.to_dict() for g in self.gates}
        result["all_passed"] = self.all_passed
        result["blocked_by"] = self.blocked_by
        return result


def evaluate_strategic_gates(
    topic: str,
    keywords: Sequence[str],
    industry: str,
    search: SearchIntelligence,
    competitors: Sequence[str] = (),
    existing_clusters: Sequence[str] = (),
    existing_content: Sequence[ExistingContent] = (),
) -> StrategicGates:
    """Run all four gates for a candidate topic."""
    return StrategicGates(
        intent_alignment=_intent_alignment(topic, keywords, industry, competitors),
        topical_fit=_topical_fit(keywords, existing_clusters),
        cannibalization=_cannibalization(keywords, existing_content, search),
        competitive_viability=_competitive_viability(search),
    )


def _intent_alignment(topic, keywords, industry, competitors) -> GateResult:
    full_text = f"{topic} {' '.join(keywords)}".lower()

    if detect_negative_sentiment(full_text):
        industry_words = [w for w in (industry or "").lower().split() if w]
        if any(w in full_text for w in industry_words):
            return GateResult(
                "intent_alignment", False,
                f"Topic has negative sentiment about {industry} - could harm brand",
                {"risk": "reputation"},
            )
        return GateResult(
            "intent_alignment", True,
            "Topic has negative sentiment but not about client industry - proceed with caution",
            {"risk": "negative-sentiment"},
        )

    for competitor in competitors:
        if competitor and competitor.lower() in full_text:
            return GateResult(
                "intent_alignment", False,
                f"Topic prominently features competitor: {competitor}",
                {"risk": "competitor-benefit"},
            )

    return GateResult("intent_alignment", True, "Topic aligns with brand and business goals", {"risk": "none"})


def _topical_fit(keywords, existing_clusters) -> GateResult:
    if not existing_clusters:
        return GateResult(
            "topical_fit", True, "No cluster strategy defined - topic allowed",
            {"cluster": None, "action": "new_cluster"},
        )

    lowered = [k.lower() for k in keywords]
    keyword_set = set(lowered)
    for cluster in existing_clusters:
        cluster_words = cluster.lower().split()
        if any(w in keyword_set or any(w in k for k in lowered) for w in cluster_words):
            return GateResult(
                "topical_fit", True, f"Extends existing cluster: {cluster}",
                {"cluster": cluster, "action": "extend_cluster"},
            )

    return GateResult(
        "topical_fit", True, "New topic area - consider if this should become a new cluster",
        {"cluster": None, "action": "new_cluster"},
    )


def _cannibalization(keywords, existing_content, search: SearchIntelligence) -> GateResult:
    if not existing_content:
        return GateResult(
            "cannibalization", True, "No existing content database to check",
            {"existing_content_url": None, "action": "create_new"},
        )

    keyword_set = {k.lower() for k in keywords}
    for content in existing_content:
        overlap = [k for k in (c.lower() for c in content.keywords) if k in keyword_set]
        if len(overlap) < 2:
            continue

        if search.best_position and search.best_position <= 10:
            return GateResult(
                "cannibalization", False,
                f'Already ranking #{search.best_position:.0f} with "{content.title}" - update instead',
                {"existing_content_url": content.url, "action": "update_existing"},
            )
        return GateResult(
            "cannibalization", True,
            f'Similar content exists: "{content.title}" - consider consolidating',
            {"existing_content_url": content.url, "action": "merge"},
        )

    return GateResult(
        "cannibalization", True, "No conflicting content found",
        {"existing_content_url": None, "action": "create_new"},
    )


def _competitive_viability(search: SearchIntelligence) -> GateResult:
    if not search.has_data:
        return GateResult(
            "competitive_viability", True, "No search data - competitive difficulty unknown",
            {"difficulty": "medium"},
        )

    position, demand = search.best_position, search.demand_level

    if position and position <= 10:
        return GateResult(
            "competitive_viability", True, f"Already ranking #{position:.0f} - optimization opportunity",
            {"difficulty": "easy"},
        )
    if position and position <= 30 and demand != "low":
        return GateResult(
            "competitive_viability", True,
            f"Ranking #{position:.0f} with {demand} demand - growth opportunity",
            {"difficulty": "medium"},
        )
    if not position and demand == "low":
        return GateResult(
            "competitive_viability", True, "Not ranking and low search demand - will need strong content",
            {"difficulty": "hard"},
        )
    if not position and demand in ("high", "medium"):
        return GateResult(
            "competitive_viability", True, f"High competition ({demand} demand) but worth pursuing",
            {"difficulty": "hard"},
        )

    return GateResult("competitive_viability", True, "Standard competitive landscape", {"difficulty": "medium"})


# =============================================================================
# CHANNEL SCORING
# =============================================================================

@dataclass
class ChannelScore:
    """Channel-specific score with its components."""
    total: int
    breakdown: Dict[str, int]
    viable: bool
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "breakdown": self.breakdown, "viable": self.viable, "rationale": self.rationale}


@dataclass
class ChannelScores:
    blog: ChannelScore
    youtube: ChannelScore
    instagram: ChannelScore
    recommended_channel: str
    recommendation: str

    def get(self, channel: str) -> Optional[ChannelScore]:
        return getattr(self, channel, None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blog": self.blog.to_dict(),
            "youtube": self.youtube.to_dict(),
            "instagram": self.instagram.to_dict(),
            "recommended_channel": self.recommended_channel,
            "recommendation": self.recommendation,
        }


def calculate_channel_scores(
    viral_score: int,
    total_engagement: int,
    search: SearchIntelligence,
    gates: StrategicGates,
) -> ChannelScores:
    """Score each channel and pick a recommendation."""
    blog = _blog_score(viral_score, total_engagement, search, gates)
    youtube = _youtube_score(viral_score, total_engagement, search, gates)
    instagram = _instagram_score(viral_score, total_engagement, search, gates)

    viable = [(name, s) for name, s in (("blog", blog), ("youtube", youtube), ("instagram", instagram)) if s.viable]
    viable.sort(key=lambda pair: -pair[1].total)
    recommended = viable[0][0] if viable else "youtube"

    if not blog.viable and youtube.viable:
        recommendation = "Low search demand - focus on social channels for awareness"
    elif blog.viable and blog.total > youtube.total:
        recommendation = "Strong search opportunity - blog as primary, social for amplification"
    else:
        recommendation = "Balanced opportunity - lead with highest scoring channel"

    return ChannelScores(blog, youtube, instagram, recommended, recommendation)


def _blog_score(viral_score, total_engagement, search: SearchIntelligence, gates: StrategicGates) -> ChannelScore:
    has_demand = search.demand_level in ("high", "medium")
    exceptional = total_engagement > EXCEPTIONAL_ENGAGEMENT

    if search.has_volume_data and search.demand_level == "low" and not exceptional:
        return ChannelScore(
            0, {}, False,
            f"Low search volume ({search.search_volume or 0}/mo) - social channels recommended instead",
        )

    breakdown: Dict[str, int] = {}

    if search.has_volume_data and has_demand:
        volume = search.search_volume or 0
        breakdown["search_demand"] = 35 if volume >= 1000 else 25 if volume >= 100 else 15
    elif search.demand_level == "unknown":
        breakdown["search_demand"] = 15
    else:
        breakdown["search_demand"] = 5

    if search.has_volume_data and search.keyword_difficulty is not None:
        kd = search.keyword_difficulty
        breakdown["difficulty_penalty"] = -10 if kd > 70 else -5 if kd > 50 else 0

    position = search.best_position
    if search.has_ranking_data and position:
        breakdown["position_opportunity"] = 25 if position <= 10 else 20 if position <= 20 else 10 if position <= 50 else 5
    else:
        breakdown["position_opportunity"] = 15

    breakdown["viral_validation"] = min(20, round(viral_score * 0.25))
    breakdown["strategic_fit"] = 20 if gates.all_passed else 10

    if search.has_volume_data and has_demand:
        rationale = f"Strong blog opportunity - {search.search_volume or 0}/mo search volume, KD {search.keyword_difficulty or 0}"
    elif search.has_volume_data:
        rationale = f"Blog allowed despite lower volume ({search.search_volume or 0}/mo) due to viral validation"
    elif search.has_ranking_data:
        rationale = "Blog opportunity (ranking data only) - add a volume provider for real search demand"
    else:
        rationale = "Demand creation opportunity - no search data yet, viral-first approach"

    return ChannelScore(sum(breakdown.values()), breakdown, True, rationale)


def _youtube_score(viral_score, total_engagement, search: SearchIntelligence, gates: StrategicGates) -> ChannelScore:
    breakdown: Dict[str, int] = {}

    momentum = min(30, round(viral_score * 0.4))
    if search.trend_direction == "rising":
        momentum += 10
    elif search.trend_direction == "stable":
        momentum += 5
    breakdown["viral_momentum"] = min(40, momentum)

    if total_engagement > 5000:
        breakdown["topic_appeal"] = 25
    elif total_engagement > 1000:
        breakdown["topic_appeal"] = 20
    elif total_engagement > 500:
        breakdown["topic_appeal"] = 15
    else:
        breakdown["topic_appeal"] = 10

    if search.has_data and search.demand_level != "low":
        breakdown["search_tailwind"] = {"high": 17, "medium": 12}.get(search.demand_level, 5)
    else:
        breakdown["search_tailwind"] = 0

    breakdown["strategic_fit"] = 17 if gates.all_passed else 8

    total = sum(breakdown.values())
    return ChannelScore(
        total, breakdown, total >= CHANNEL_VIABLE_SCORE,
        "Strong YouTube opportunity with viral momentum" if total >= 60
        else "Moderate YouTube opportunity - focus on hook and storytelling",
    )


def _instagram_score(viral_score, total_engagement, search: SearchIntelligence, gates: StrategicGates) -> ChannelScore:
    breakdown: Dict[str, int] = {}

    recency = min(35, round(viral_score * 0.45))
    if search.trend_direction == "rising":
        recency += 10
    breakdown["viral_recency"] = min(45, recency)

    if total_engagement > 3000:
        breakdown["visual_potential"] = 25
    elif total_engagement > 1000:
        breakdown["visual_potential"] = 20
    else:
        breakdown["visual_potential"] = 15

    breakdown["trend_alignment"] = {"rising": 15, "stable": 10}.get(search.trend_direction, 5)
    breakdown["strategic_fit"] = 15 if gates.all_passed else 7

    total = sum(breakdown.values())
    return ChannelScore(
        total, breakdown, total >= CHANNEL_VIABLE_SCORE,
        "Strong Instagram opportunity - high trending potential" if total >= 55
        else "Moderate Instagram opportunity - ensure strong visual hook",
    )


# =============================================================================
# SEARCH CONTEXT (for briefs)
# =============================================================================

def build_search_context(search: SearchIntelligence, topic: str, core_discussion: str) -> Optional[Dict[str, Any]]:
    """Searcher-facing framing for briefs; None without usable search data."""
    if not search.has_data or search.demand_level == "unknown":
        return None

    query = search.primary_keyword or topic
    if search.intent == INTENT_TRANSACTIONAL:
        question = f'People search "{query}" to take action - they want to buy, sign up, or get started'
    elif search.intent == INTENT_COMMERCIAL:
        question = f'People compare options around "{query}" - they want to make the best choice'
    else:
        question = f'People want to understand "{query}" - they are looking for information and answers'

    return {
        "primary_query": query,
        "intent": search.intent,
        "searcher_question": question,
        "competitive_gap": (
            f'The viral discussion is about: "{core_discussion[:100]}..." - '
            f"typical search results likely miss this current angle"
        ),
        "our_differentiator": (
            f"We combine current discussions ({search.total_impressions} impressions) "
            f"with the real questions people ask"
        ),
        "avoid": [
            "No generic content that ignores the current discussion",
            "Do not chase keywords at the expense of readability",
        ],
    }
