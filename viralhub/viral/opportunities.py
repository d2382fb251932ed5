"""
Opportunity Builder

Turns recent signals into scored, channel-targeted content opportunities:

1. Load signals for the industry (last N days)
2. Drop spam
3. Cluster by keyword overlap
4. Score each cluster (penalizing topics covered recently)
5. One opportunity per requested channel, with angle/hook/reasoning
6. Optional SEO layer: search demand, strategic gates, channel viability
7. Rank, truncate, optionally sharpen with AI, persist as `new`

Opportunity status moves forward only (new -> shortlisted -> generated);
archived is reachable from anywhere and is terminal.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy.exc import SQLAlchemyError

from viralhub.cache import CacheTTL
from viralhub.database import Channel, Opportunity, OpportunityStatus, Signal, ViralRepository, as_uuid
from viralhub.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from viralhub.llm import EnhancePromptContext, LLMClient, get_template
from viralhub.utils import as_naive_utc, get_settings, utcnow
from .keywords import SignalCluster, cluster_signals
from .schemas import BuildConfig, EnhancementResponse
from .scoring import ScoreBreakdown, SeasonalEvent, score_cluster
from .seo_intelligence import (
    ExistingContent,
    SearchDataProvider,
    build_search_context,
    build_search_intelligence,
    calculate_channel_scores,
    evaluate_strategic_gates,
)
from .spam import filter_spam

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
AI_ENHANCE_TOP = 5
HISTORY_DAYS = 30
TOPIC_KEYWORDS = 3
TOPIC_SEPARATOR = " + "
CACHE_PATTERN = "opportunities:*"

STATUS_RANK = {
    OpportunityStatus.NEW.value: 0,
    OpportunityStatus.SHORTLISTED.value: 1,
    OpportunityStatus.GENERATED.value: 2,
}


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def validate_status_transition(current: str, requested: str) -> bool:
    """
    Check a status change.

    Returns:
        True if the status changes, False for a same-state no-op

    Raises:
        ValidationError: unknown status value
        InvalidTransitionError: backwards move or leaving archived
    """
    valid = {s.value for s in OpportunityStatus}
    if requested not in valid:
        raise ValidationError(f"Invalid status: {requested}")

    if requested == current:
        return False
    if current == OpportunityStatus.ARCHIVED.value:
        raise InvalidTransitionError("opportunity", current, requested)
    if requested == OpportunityStatus.ARCHIVED.value:
        return True
    if STATUS_RANK[requested] > STATUS_RANK.get(current, 0):
        return True
    raise InvalidTransitionError("opportunity", current, requested)


async def update_opportunity_status(
    repository: ViralRepository,
    cache,
    opportunity_id: str,
    status: str,
) -> Opportunity:
    opportunity = repository.get_opportunity(opportunity_id)
    if opportunity is None:
        raise NotFoundError("Opportunity", opportunity_id)

    previous = opportunity.status
    if not validate_status_transition(previous, status):
        return opportunity

    repository.set_opportunity_status(opportunity, status)
    repository.commit()
    logger.info(f"Opportunity {opportunity.id}: {previous} -> {status}")

    await cache.invalidate(CACHE_PATTERN)
    return opportunity


# =============================================================================
# CHANNEL TEMPLATES
# =============================================================================

def generate_angle(title: str, channel: str) -> str:
    if channel == Channel.YOUTUBE.value:
        return f'Deep dive into "{title[:50]}..." - What everyone is missing'
    if channel == Channel.INSTAGRAM.value:
        return f"Quick take on {title[:30]}... - Carousel breakdown"
    if channel == Channel.BLOG.value:
        return f"Complete guide: {title[:40]}... - Analysis and insights"
    return title[:60]


def generate_hook(upvotes: int, comments: int, channel: str) -> str:
    if channel == Channel.YOUTUBE.value:
        return (
            f"This is blowing up right now ({upvotes:,} engaged, {comments} comments). "
            f"Here's what you need to know..."
        )
    if channel == Channel.INSTAGRAM.value:
        return f"{upvotes:,}+ people are talking about this. Here's the breakdown:"
    if channel == Channel.BLOG.value:
        return (
            f"With {upvotes:,} engaged readers and {comments} discussions, "
            f"this topic is trending. Let's analyze why."
        )
    return "Trending topic with high engagement"


def generate_reasoning(cluster: SignalCluster, breakdown: ScoreBreakdown) -> str:
    parts = []
    if breakdown.engagement >= 20:
        parts.append(f"Strong engagement ({cluster.total_engagement:,} total upvotes)")
    if breakdown.freshness >= 15:
        parts.append("Fresh topic gaining momentum")
    if breakdown.relevance >= 15:
        parts.append("Highly relevant to industry")
    if breakdown.novelty >= 10:
        parts.append("Cross-community interest")

    if not parts:
        return "Moderate potential based on current engagement patterns."
    return ". ".join(parts) + "."


def enhance_reasoning(base: str, channel_score, search) -> str:
    """Append search demand and channel rationale to the viral reasoning."""
    parts = [base.rstrip(".")]

    if search.has_data:
        if search.demand_level == "high":
            parts.append(f"High search demand ({search.total_impressions:,} impressions)")
        elif search.demand_level == "medium":
            parts.append("Moderate search demand detected")
        if search.best_position and search.best_position <= 20:
            parts.append(f"Already ranking #{search.best_position:.0f} - optimization opportunity")
    else:
        parts.append("Demand creation opportunity - viral-first strategy")

    parts.append(channel_score.rationale)
    return ". ".join(parts)


def topic_keywords(topic: str) -> Set[str]:
    """Keyword set of a stored topic ("a + b + c")."""
    return {part.strip() for part in (topic or "").split(TOPIC_SEPARATOR.strip()) if part.strip()}


# =============================================================================
# BUILD
# =============================================================================

@dataclass
class OpportunityDraft:
    """An opportunity before it is stored."""
    industry: str
    channel: str
    topic: str
    angle: str
    hook: str
    reasoning: str
    score: int
    score_breakdown: Dict[str, int]
    source_signal_ids: List[str]
    newest_signal_at: Optional[datetime] = None
    client_id: Optional[str] = None
    seo_data: Optional[Dict[str, Any]] = None

    def sort_key(self):
        newest = self.newest_signal_at.timestamp() if self.newest_signal_at else 0.0
        return (-self.score, -newest, self.topic)

    def to_record(self) -> Dict[str, Any]:
        return {
            "client_id": as_uuid(self.client_id) if self.client_id else None,
            "industry": self.industry,
            "channel": self.channel,
            "topic": self.topic,
            "angle": self.angle,
            "hook": self.hook,
            "reasoning": self.reasoning,
            "score": self.score,
            "score_breakdown": self.score_breakdown,
            "source_signal_ids": self.source_signal_ids,
            "seo_data": self.seo_data,
            "status": OpportunityStatus.NEW.value,
        }


@dataclass
class BuildResult:
    success: bool
    opportunities: List[Opportunity] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    seo_summary: Optional[Dict[str, Any]] = None


class OpportunityBuilder:
    """
    Builds and stores opportunities for one industry.

    Args:
        repository: Data access
        cache: Cache exposing async `invalidate(pattern)`
        llm: Optional client for AI enhancement
        search_provider: Optional search demand source for the SEO layer
        calendar: Seasonal events used by the seasonality score
    """

    def __init__(
        self,
        repository: ViralRepository,
        cache,
        llm: Optional[LLMClient] = None,
        search_provider: Optional[SearchDataProvider] = None,
        calendar: Sequence[SeasonalEvent] = (),
    ):
        self.repository = repository
        self.cache = cache
        self.llm = llm
        self.search_provider = search_provider
        self.calendar = calendar

    async def build(self, config: BuildConfig, now: Optional[datetime] = None) -> BuildResult:
        now = as_naive_utc(now) if now else utcnow()
        settings = get_settings()

        signals = self.repository.get_signals_since(
            config.industry, now - timedelta(days=config.days), limit=settings.SIGNAL_FETCH_LIMIT,
        )
        logger.info(f"Building opportunities for {config.industry}: {len(signals)} signals")
        if not signals:
            return BuildResult(success=True, seo_summary=self._seo_summary(config, [], 0))

        kept, rejected = filter_spam(signals)
        if rejected:
            logger.info(f"Filtered {len(rejected)} spam signals")

        clusters = cluster_signals(kept)
        history = [
            topic_keywords(topic)
            for topic in self.repository.recent_opportunity_topics(
                config.industry, now - timedelta(days=HISTORY_DAYS),
            )
        ]

        drafts: List[OpportunityDraft] = []
        gated = 0
        for cluster in clusters:
            breakdown = score_cluster(cluster, config.industry, now, history, self.calendar)
            if config.seo.enabled:
                cluster_drafts, blocked = await self._create_with_seo(cluster, breakdown, config)
                gated += int(blocked)
                drafts.extend(cluster_drafts)
            else:
                drafts.extend(
                    self._create_draft(cluster, breakdown, config, channel) for channel in config.channels
                )

        drafts.sort(key=OpportunityDraft.sort_key)
        top = drafts[:config.limit]

        if config.use_ai and top and self.llm is not None:
            await self._enhance_with_ai(top, config.industry)

        stored, errors = self._persist(top)
        await self.cache.invalidate(CACHE_PATTERN)

        logger.info(f"Stored {len(stored)} of {len(top)} opportunities for {config.industry}")
        return BuildResult(
            success=bool(stored) or not top,
            opportunities=stored,
            errors=errors,
            seo_summary=self._seo_summary(config, top, gated),
        )

    # -------------------------------------------------------------------------

    def _create_draft(
        self,
        cluster: SignalCluster,
        breakdown: ScoreBreakdown,
        config: BuildConfig,
        channel: str,
    ) -> OpportunityDraft:
        top_signal = _top_signal(cluster)
        created = [as_naive_utc(s.created_at_external) for s in cluster.signals if s.created_at_external]

        return OpportunityDraft(
            industry=config.industry,
            client_id=config.client_id,
            channel=channel,
            topic=TOPIC_SEPARATOR.join(cluster.keywords[:TOPIC_KEYWORDS]),
            angle=generate_angle(top_signal.title, channel),
            hook=generate_hook(top_signal.upvotes, top_signal.comments, channel),
            reasoning=generate_reasoning(cluster, breakdown),
            score=breakdown.total,
            score_breakdown=breakdown.to_dict(),
            source_signal_ids=cluster.signal_ids,
            newest_signal_at=max(created) if created else None,
        )

    async def _create_with_seo(self, cluster: SignalCluster, breakdown: ScoreBreakdown, config: BuildConfig):
        """
        Returns:
            (drafts, blocked) where blocked means the strategic gates failed
        """
        seo = config.seo
        topic_text = " ".join(cluster.keywords)

        search = await build_search_intelligence(
            cluster.keywords, topic_text, provider=self.search_provider, site_url=seo.site_url,
        )
        gates = evaluate_strategic_gates(
            topic_text,
            cluster.keywords,
            config.industry,
            search,
            competitors=seo.competitors,
            existing_clusters=seo.existing_clusters,
            existing_content=[
                ExistingContent(url=c.url, title=c.title, keywords=c.keywords) for c in seo.existing_content
            ],
        )
        channel_scores = calculate_channel_scores(breakdown.total, cluster.total_engagement, search, gates)

        top_signal = _top_signal(cluster)
        seo_data = {
            "search_intelligence": search.to_dict(),
            "strategic_gates": gates.to_dict(),
            "channel_scores": channel_scores.to_dict(),
            "search_context": build_search_context(search, topic_text, top_signal.raw_excerpt or top_signal.title),
            "opportunity_type": search.opportunity_type,
            "gated": not gates.all_passed,
        }

        if not gates.all_passed and seo.enforce_gates:
            logger.info(f"Opportunity blocked: {topic_text} - {gates.blocked_by}")
            return [], True

        drafts = []
        for channel in config.channels:
            channel_score = channel_scores.get(channel)
            if channel_score is None or not channel_score.viable:
                logger.info(f"Channel {channel} not viable for topic: {topic_text}")
                continue

            draft = self._create_draft(cluster, breakdown, config, channel)
            draft.reasoning = enhance_reasoning(draft.reasoning, channel_score, search)
            draft.seo_data = {**seo_data, "channel_score": channel_score.total}
            drafts.append(draft)

        if not drafts and gates.all_passed:
            fallback = channel_scores.recommended_channel
            draft = self._create_draft(cluster, breakdown, config, fallback)
            draft.reasoning = f"{draft.reasoning} (Recommended: {channel_scores.recommendation})"
            draft.seo_data = {**seo_data, "channel_score": channel_scores.get(fallback).total}
            drafts.append(draft)

        return drafts, not gates.all_passed

    async def _enhance_with_ai(self, drafts: List[OpportunityDraft], industry: str) -> None:
        """Overwrite angle/hook/reasoning of the top drafts; failures keep the templates."""
        top = drafts[:AI_ENHANCE_TOP]
        summaries = [
            {"topic": d.topic, "angle": d.angle, "score": d.score, "engagement": d.score_breakdown["engagement"]}
            for d in top
        ]
        template = get_template("viral_topic_synthesis")
        prompt = template.render(EnhancePromptContext(industry=industry, opportunities=json.dumps(summaries, indent=2)))

        result = await self.llm.generate_json(
            template.task, prompt, system=template.system, schema=EnhancementResponse,
        )
        if not result.success:
            logger.warning(f"AI enhancement failed, keeping template copy: {result.errors}")
            return

        for draft, enhanced in zip(top, result.value.enhanced):
            if enhanced.angle:
                draft.angle = enhanced.angle
            if enhanced.hook:
                draft.hook = enhanced.hook
            if enhanced.reasoning:
                draft.reasoning = enhanced.reasoning

    def _persist(self, drafts: List[OpportunityDraft]):
        stored: List[Opportunity] = []
        errors: List[str] = []

        for start in range(0, len(drafts), BATCH_SIZE):
            batch = drafts[start:start + BATCH_SIZE]
            try:
                stored.extend(self.repository.add_opportunities([d.to_record() for d in batch]))
                self.repository.commit()
            except SQLAlchemyError as e:
                self.repository.rollback()
                logger.error(f"Opportunity batch insert failed: {e}")
                errors.append(f"Batch insert error: {e}")

        return stored, errors

    @staticmethod
    def _seo_summary(config: BuildConfig, drafts: List[OpportunityDraft], gated: int) -> Dict[str, Any]:
        types = [(d.seo_data or {}).get("opportunity_type") for d in drafts]
        return {
            "enabled": config.seo.enabled,
            "total": len(drafts),
            "demand_capture": types.count("demand_capture"),
            "demand_creation": types.count("demand_creation"),
            "gated": gated,
        }


def _top_signal(cluster: SignalCluster) -> Signal:
    best = cluster.signals[0]
    for signal in cluster.signals[1:]:
        if (signal.upvotes or 0) > (best.upvotes or 0):
            best = signal
    return best


# =============================================================================
# QUERIES
# =============================================================================

@dataclass
class OpportunityFilters:
    client_id: Optional[str] = None
    industry: Optional[str] = None
    channel: Optional[str] = None
    status: Optional[str] = None
    limit: int = 20

    def validate(self) -> None:
        if self.channel and self.channel not in {c.value for c in Channel}:
            raise ValidationError(f"Invalid channel: {self.channel}")
        if self.status and self.status not in {s.value for s in OpportunityStatus}:
            raise ValidationError(f"Invalid status: {self.status}")

    @property
    def cache_key(self) -> str:
        return (
            f"opportunities:{self.client_id or 'all'}:{self.industry or 'all'}:"
            f"{self.channel or 'all'}:{self.status or 'all'}:{self.limit}"
        )


async def list_opportunities(repository: ViralRepository, cache, filters: OpportunityFilters) -> List[Dict[str, Any]]:
    """Serialized opportunities, read through the cache."""
    filters.validate()

    def load():
        return [
            serialize_opportunity(o)
            for o in repository.list_opportunities(
                client_id=filters.client_id,
                industry=filters.industry,
                channel=filters.channel,
                status=filters.status,
                limit=filters.limit,
            )
        ]

    return await cache.get_or_fetch(filters.cache_key, load, CacheTTL.OPPORTUNITIES)


@dataclass
class OpportunityDetail:
    opportunity: Opportunity
    signals: List[Signal]
    generations: list


def get_opportunity_with_signals(repository: ViralRepository, opportunity_id: str) -> OpportunityDetail:
    opportunity = repository.get_opportunity(opportunity_id)
    if opportunity is None:
        raise NotFoundError("Opportunity", opportunity_id)

    return OpportunityDetail(
        opportunity=opportunity,
        signals=repository.get_signals_by_ids(opportunity.source_signal_ids or []),
        generations=repository.list_generations(opportunity.id),
    )


# =============================================================================
# SERIALIZATION
# =============================================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_opportunity(opportunity: Opportunity) -> Dict[str, Any]:
    return {
        "id": str(opportunity.id),
        "clientId": str(opportunity.client_id) if opportunity.client_id else None,
        "industry": opportunity.industry,
        "channel": opportunity.channel,
        "topic": opportunity.topic,
        "angle": opportunity.angle,
        "hook": opportunity.hook,
        "reasoning": opportunity.reasoning,
        "score": opportunity.score,
        "scoreBreakdown": opportunity.score_breakdown or {},
        "sourceSignalIds": opportunity.source_signal_ids or [],
        "seoData": opportunity.seo_data,
        "status": opportunity.status,
        "createdAt": _iso(opportunity.created_at),
    }


def serialize_signal(signal: Signal) -> Dict[str, Any]:
    return {
        "id": str(signal.id),
        "sourceType": signal.source_type,
        "externalId": signal.external_id,
        "url": signal.url,
        "title": signal.title,
        "author": signal.author,
        "community": signal.community,
        "createdAtExternal": _iso(signal.created_at_external),
        "metrics": signal.metrics or {},
        "rawExcerpt": signal.raw_excerpt,
        "industry": signal.industry,
        "fetchedAt": _iso(signal.fetched_at),
    }
