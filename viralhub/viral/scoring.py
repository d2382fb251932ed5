"""
Opportunity Score Calculator

Calculates a composite score (0-100) for a signal cluster from five
independently capped sub-scores:

1. Engagement (max 30) - log-scaled upvotes + comments
2. Freshness (max 20) - linear decay, zero at 240 hours
3. Relevance (max 25) - keyword match against the industry
4. Novelty (max 15) - discussion depth / community spread, minus topics
   already covered by recent opportunities
5. Seasonality (max 10) - proximity to a matching calendar event

Formula:
    Score = clamp(round(engagement + freshness + relevance + novelty + seasonality), 0, 100)

No sub-score reads another sub-score's output.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from viralhub.utils import as_naive_utc, utcnow
from .keywords import SignalCluster

logger = logging.getLogger(__name__)

SCORE_CAPS: Dict[str, int] = {
    "engagement": 30,
    "freshness": 20,
    "relevance": 25,
    "novelty": 15,
    "seasonality": 10,
}

FRESHNESS_DECAY_HOURS = 12       # one point lost per 12 hours
RELEVANCE_PER_MATCH = 8
NOVELTY_PER_COMMUNITY = 5
NOVELTY_HISTORY_PENALTY = 5
NOVELTY_HISTORY_OVERLAP = 2
DEFAULT_SEASONALITY = 5
SEASONAL_HORIZON_DAYS = 30


def round_half_up(value: float) -> int:
    """Round to nearest int, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


@dataclass
class ScoreBreakdown:
    """Sub-scores for one cluster."""
    engagement: int = 0
    freshness: int = 0
    relevance: int = 0
    novelty: int = 0
    seasonality: int = 0

    @property
    def total(self) -> int:
        raw = self.engagement + self.freshness + self.relevance + self.novelty + self.seasonality
        return min(100, max(0, round_half_up(raw)))

    def to_dict(self) -> Dict[str, int]:
        return {
            "engagement": self.engagement,
            "freshness": self.freshness,
            "relevance": self.relevance,
            "novelty": self.novelty,
            "seasonality": self.seasonality,
        }


@dataclass(frozen=True)
class SeasonalEvent:
    """Recurring calendar moment (e.g. Black Friday) and its topic keywords."""
    name: str
    month: int
    day: int
    keywords: frozenset = field(default_factory=frozenset)

    def days_until(self, today: date) -> int:
        """Days until the next occurrence (0 on the day itself)."""
        occurrence = self._on(today.year)
        if occurrence < today:
            occurrence = self._on(today.year + 1)
        return (occurrence - today).days

    def _on(self, year: int) -> date:
        # Feb 29 falls back to Feb 28 outside leap years
        try:
            return date(year, self.month, self.day)
        except ValueError:
            return date(year, self.month, self.day - 1)


# =============================================================================
# SUB-SCORES
# =============================================================================

def engagement_score(upvotes: float, comments: float) -> int:
    """min(30, round(log10(upvotes+1)*5 + log10(comments+1)*3))"""
    upvotes = max(0.0, float(upvotes or 0))
    comments = max(0.0, float(comments or 0))
    raw = math.log10(upvotes + 1) * 5 + math.log10(comments + 1) * 3
    return min(SCORE_CAPS["engagement"], round_half_up(raw))


def freshness_score(age_hours: float) -> int:
    """max(0, round(20 - age_hours/12)); non-increasing in age."""
    raw = SCORE_CAPS["freshness"] - (age_hours / FRESHNESS_DECAY_HOURS)
    return max(0, min(SCORE_CAPS["freshness"], round_half_up(raw)))


def relevance_score(keywords: Iterable[str], industry: str) -> int:
    """8 points per keyword matching an industry word, capped at 25."""
    industry_words = [w for w in (industry or "").lower().split() if len(w) >= 3]
    if not industry_words:
        return 0

    matches = 0
    for keyword in keywords:
        if any(word in keyword or keyword in word for word in industry_words):
            matches += 1

    return min(SCORE_CAPS["relevance"], matches * RELEVANCE_PER_MATCH)


def novelty_score(
    upvotes: float,
    comments: float,
    communities: int,
    is_single: bool,
    history_matches: int = 0,
) -> int:
    """
    Discussion novelty, reduced for topics seen in recent opportunities.

    Single signal: comment-to-upvote ratio (lively debate beats drive-by
    upvotes). Cluster: how many distinct communities discuss it.
    """
    cap = SCORE_CAPS["novelty"]
    if is_single:
        ratio = (comments / upvotes) if upvotes else 0.0
        base = min(cap, round_half_up(ratio * 50) + 5)
    else:
        base = min(cap, communities * NOVELTY_PER_COMMUNITY)

    penalty = history_matches * NOVELTY_HISTORY_PENALTY
    return max(0, min(cap, base - penalty))


def seasonality_score(
    keywords: Iterable[str],
    today: date,
    calendar: Sequence[SeasonalEvent] = (),
) -> int:
    """Baseline 5, up to 10 as a matching event approaches (30-day horizon)."""
    keyword_set = set(keywords)
    best = DEFAULT_SEASONALITY

    for event in calendar:
        if not keyword_set & set(event.keywords):
            continue
        days = event.days_until(today)
        if days > SEASONAL_HORIZON_DAYS:
            continue
        best = max(best, round_half_up(SCORE_CAPS["seasonality"] - days / 3))

    return min(SCORE_CAPS["seasonality"], best)


# =============================================================================
# CLUSTER SCORING
# =============================================================================

def _signal_age_hours(signal: Any, now: datetime) -> float:
    created = getattr(signal, "created_at_external", None)
    if created is None:
        return 0.0
    return max(0.0, (now - as_naive_utc(created)).total_seconds() / 3600)


def count_history_matches(keywords: Iterable[str], history: Sequence[Set[str]]) -> int:
    """Prior opportunity topics sharing at least two keywords with this cluster."""
    keyword_set = set(keywords)
    return sum(1 for topic in history if len(keyword_set & topic) >= NOVELTY_HISTORY_OVERLAP)


def score_cluster(
    cluster: SignalCluster,
    industry: str,
    now: Optional[datetime] = None,
    history_topics: Sequence[Set[str]] = (),
    calendar: Sequence[SeasonalEvent] = (),
) -> ScoreBreakdown:
    """
    Score a cluster.

    Args:
        cluster: Signals + ranked keywords
        industry: Industry text matched for relevance
        now: Reference time (naive UTC or aware); defaults to utcnow()
        history_topics: Keyword sets of recent opportunity topics
        calendar: Seasonal events

    Returns:
        ScoreBreakdown (use `.total` for the 0-100 score)
    """
    now = as_naive_utc(now) if now else utcnow()
    signals = cluster.signals
    count = max(1, len(signals))

    avg_upvotes = sum(s.upvotes or 0 for s in signals) / count
    avg_comments = sum(s.comments or 0 for s in signals) / count
    avg_age = sum(_signal_age_hours(s, now) for s in signals) / count
    communities = len({s.community for s in signals if getattr(s, "community", None)})

    breakdown = ScoreBreakdown(
        engagement=engagement_score(avg_upvotes, avg_comments),
        freshness=freshness_score(avg_age),
        relevance=relevance_score(cluster.keywords, industry),
        novelty=novelty_score(
            avg_upvotes,
            avg_comments,
            communities,
            is_single=len(signals) == 1,
            history_matches=count_history_matches(cluster.keywords, history_topics),
        ),
        seasonality=seasonality_score(cluster.keywords, now.date(), calendar),
    )

    logger.debug(f"Scored cluster {cluster.keywords[:3]}: {breakdown.to_dict()} -> {breakdown.total}")
    return breakdown


def summarize_scores(breakdowns: List[ScoreBreakdown]) -> Dict[str, Any]:
    """Aggregate stats for a batch of scores."""
    if not breakdowns:
        return {"count": 0, "avg_score": 0, "max_score": 0, "min_score": 0}

    totals = [b.total for b in breakdowns]
    return {
        "count": len(totals),
        "avg_score": round(sum(totals) / len(totals), 1),
        "max_score": max(totals),
        "min_score": min(totals),
    }
