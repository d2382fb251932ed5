"""
Canonical Brief Service

A brief is the five-field contract between strategy and production,
generated from real signals and approved by a human before any channel
content is written.

Lifecycle:
    draft -> approved | rejected
    draft | rejected -> superseded   (regenerate with a new angle)

Briefs are never edited in place; a new angle creates a new draft and
supersedes the old one in the same transaction.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from viralhub.database import (
    Brief,
    BriefGeneration,
    BriefStatus,
    Opportunity,
    Signal,
    ViralRepository,
    as_uuid,
)
from viralhub.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    UpstreamGenerationError,
    ValidationError,
    ViralHubError,
)
from viralhub.integrations import ClientContext, parse_client_settings
from viralhub.llm import BriefPromptContext, ContentPromptContext, LLMClient, get_template
from viralhub.utils import utcnow
from .schemas import CanonicalBrief, EvidenceItem, GenerateBriefRequest, GenerationOptions

logger = logging.getLogger(__name__)

SOURCE_CONTEXT_SIGNALS = 10
EXCERPT_PREVIEW = 200
DEFAULT_TONE = "Professional but approachable"
DEFAULT_AUDIENCE = "General audience"
DEFAULT_VIDEO_LENGTH = "8-10 minutes"
DEFAULT_BRIEF_WORD_COUNT = 2000

CONTENT_TASKS = {
    "youtube": "youtube_script_from_brief",
    "blog": "blog_post_from_brief",
    "instagram": "instagram_from_brief",
}

# Allowed (from, to) brief status changes
BRIEF_TRANSITIONS = {
    BriefStatus.DRAFT.value: {BriefStatus.APPROVED.value, BriefStatus.REJECTED.value, BriefStatus.SUPERSEDED.value},
    BriefStatus.REJECTED.value: {BriefStatus.SUPERSEDED.value},
}


def check_brief_transition(current: str, requested: str) -> None:
    if requested not in BRIEF_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError("brief", current, requested)


@dataclass
class BriefResult:
    success: bool
    brief: Optional[Brief] = None
    error: Optional[ViralHubError] = None
    old_brief_id: Optional[str] = None


@dataclass
class BriefContentResult:
    success: bool
    generation: Optional[BriefGeneration] = None
    error: Optional[ViralHubError] = None


@dataclass
class BriefFilters:
    client_id: Optional[str] = None
    status: Optional[str] = None
    idea_id: Optional[str] = None
    limit: int = 50


# =============================================================================
# CONTEXT BUILDERS
# =============================================================================

def build_source_context(signals: List[Signal]) -> str:
    """Readable digest of the top signals for the brief prompt."""
    parts = []
    for signal in signals[:SOURCE_CONTEXT_SIGNALS]:
        lines = [f"POST: {signal.title}", f"   URL: {signal.url}"]
        if signal.community:
            lines.append(f"   Subreddit: r/{signal.community}")
        if signal.metrics:
            lines.append(f"   Engagement: {signal.upvotes} upvotes, {signal.comments} comments")
        if signal.raw_excerpt:
            lines.append(f"   Excerpt: {signal.raw_excerpt[:EXCERPT_PREVIEW]}...")
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def build_evidence(signals: List[Signal]) -> List[Dict[str, Any]]:
    return [
        EvidenceItem(
            signal_id=str(s.id),
            url=s.url or "",
            title=s.title,
            excerpt=s.raw_excerpt[:EXCERPT_PREVIEW] if s.raw_excerpt else None,
            subreddit=s.community,
            upvotes=s.upvotes,
            comments=s.comments,
        ).model_dump()
        for s in signals
    ]


def build_source_date_range(signals: List[Signal]) -> Optional[Dict[str, str]]:
    dates = [s.created_at_external for s in signals if s.created_at_external]
    if not dates:
        return None
    return {"from": min(dates).isoformat(), "to": max(dates).isoformat()}


# =============================================================================
# SERVICE
# =============================================================================

class BriefService:
    """
    Generate, review and produce content from canonical briefs.

    Args:
        repository: Data access (the service commits its own writes)
        llm: Claude client; only needed for generation calls
    """

    def __init__(self, repository: ViralRepository, llm: Optional[LLMClient] = None):
        self.repository = repository
        self.llm = llm

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def generate_brief(self, request: GenerateBriefRequest, user_id: Optional[str] = None) -> BriefResult:
        try:
            idea, signals = self._load_sources(request)
            brief = await self._create_brief(
                signals,
                idea=idea,
                industry=request.industry,
                client_id=request.client_id,
                instruction=request.instruction,
                user_id=user_id,
            )
            self.repository.commit()
        except ViralHubError as e:
            logger.warning(f"Brief generation failed: {e.message}")
            return BriefResult(success=False, error=e)
        except SQLAlchemyError as e:
            self.repository.rollback()
            logger.error(f"Failed to store brief: {e}")
            return BriefResult(success=False, error=UpstreamGenerationError("Failed to store brief"))

        logger.info(f"Created draft brief {brief.id} from {len(signals)} signals")
        return BriefResult(success=True, brief=brief)

    def _load_sources(self, request: GenerateBriefRequest):
        idea: Optional[Opportunity] = None

        if request.idea_id:
            idea = self.repository.get_opportunity(request.idea_id)
            if idea is None:
                raise NotFoundError("Idea", request.idea_id)
            signal_ids = idea.source_signal_ids or []
        elif request.signal_ids:
            signal_ids = request.signal_ids
        else:
            raise ValidationError("Either ideaId or signalIds is required")

        signals = self.repository.get_signals_by_ids(signal_ids)
        if not signals:
            raise ValidationError("No signals found")

        signals.sort(key=lambda s: -s.upvotes)
        return idea, signals

    def _client_context(self, client_id: Optional[str]):
        """(client name, ClientContext) or (None, None)."""
        if not client_id:
            return None, None
        client = self.repository.get_client(client_id)
        if client is None:
            return None, None
        return client.name, parse_client_settings(client.settings).context

    async def _create_brief(
        self,
        signals: List[Signal],
        idea: Optional[Opportunity] = None,
        industry: Optional[str] = None,
        client_id: Optional[str] = None,
        instruction: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Brief:
        """Generate and add a draft brief; the caller commits."""
        if self.llm is None:
            raise UpstreamGenerationError("AI generation is not configured")

        industry = industry or (idea.industry if idea else None) or signals[0].industry or "general"
        client_name, context = self._client_context(client_id)
        context = context or ClientContext()

        search_context = None
        if idea is not None and idea.seo_data and idea.seo_data.get("search_context"):
            search_context = json.dumps(idea.seo_data["search_context"], indent=2)

        template = get_template("canonical_brief")
        prompt = template.render(BriefPromptContext(
            industry=industry,
            source_context=build_source_context(signals),
            client_name=client_name,
            proposition=context.proposition,
            target_audience=context.target_audience,
            usps=context.usps,
            tone_of_voice=context.tone_of_voice,
            brand_voice=context.brand_voice,
            no_go_claims=context.do_nots,
            search_context=search_context,
            instruction=instruction,
        ))

        result = await self.llm.generate_json(template.task, prompt, system=template.system, schema=CanonicalBrief)
        if result.upstream_failed:
            raise UpstreamGenerationError("AI generation failed", {"errors": result.errors})
        if not result.success:
            raise UpstreamGenerationError("Invalid brief format", {"errors": result.errors})

        brief_data = result.value.model_dump(exclude_none=True)
        # Client guardrails always apply, whatever the model returned
        brief_data["no_go_claims"] = list(dict.fromkeys([*brief_data.get("no_go_claims", []), *context.do_nots]))

        return self.repository.add_brief(
            client_id=as_uuid(client_id) if client_id else None,
            idea_id=idea.id if idea else None,
            brief=brief_data,
            evidence=build_evidence(signals),
            source_date_range=build_source_date_range(signals),
            industry=industry,
            status=BriefStatus.DRAFT.value,
            created_by=user_id,
        )

    async def regenerate_brief_angle(
        self,
        brief_id: str,
        instruction: str,
        user_id: Optional[str] = None,
    ) -> BriefResult:
        """New draft from the same evidence; the old brief becomes superseded."""
        old = self.repository.get_brief(brief_id)
        if old is None:
            return BriefResult(success=False, error=NotFoundError("Brief", brief_id))

        try:
            check_brief_transition(old.status, BriefStatus.SUPERSEDED.value)
            signals = self.repository.get_signals_by_ids(e["signal_id"] for e in old.evidence or [])
            if not signals:
                raise ValidationError("No signals found")
            signals.sort(key=lambda s: -s.upvotes)

            idea = self.repository.get_opportunity(old.idea_id) if old.idea_id else None
            new_brief = await self._create_brief(
                signals,
                idea=idea,
                industry=old.industry,
                client_id=str(old.client_id) if old.client_id else None,
                instruction=instruction,
                user_id=user_id,
            )

            old.status = BriefStatus.SUPERSEDED.value
            old.superseded_by = new_brief.id
            old.updated_at = utcnow()
            self.repository.commit()
        except ViralHubError as e:
            self.repository.rollback()
            logger.warning(f"Regenerating brief {brief_id} failed: {e.message}")
            return BriefResult(success=False, error=e, old_brief_id=str(old.id))
        except SQLAlchemyError as e:
            self.repository.rollback()
            logger.error(f"Failed to supersede brief {brief_id}: {e}")
            return BriefResult(
                success=False, error=UpstreamGenerationError("Failed to store brief"), old_brief_id=str(brief_id),
            )

        logger.info(f"Brief {old.id} superseded by {new_brief.id}")
        return BriefResult(success=True, brief=new_brief, old_brief_id=str(old.id))

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def approve_brief(self, brief_id: str, approver_id: Optional[str] = None) -> Brief:
        brief = self.get_brief(brief_id)
        check_brief_transition(brief.status, BriefStatus.APPROVED.value)

        brief.status = BriefStatus.APPROVED.value
        brief.approved_by = approver_id
        brief.approved_at = utcnow()
        self.repository.commit()

        logger.info(f"Brief {brief.id} approved by {approver_id}")
        return brief

    def reject_brief(self, brief_id: str, reason: Optional[str] = None) -> Brief:
        brief = self.get_brief(brief_id)
        check_brief_transition(brief.status, BriefStatus.REJECTED.value)

        brief.status = BriefStatus.REJECTED.value
        brief.rejection_reason = reason
        self.repository.commit()

        logger.info(f"Brief {brief.id} rejected")
        return brief

    # -------------------------------------------------------------------------
    # Channel content
    # -------------------------------------------------------------------------

    async def generate_content_from_brief(
        self,
        brief_id: str,
        channel: str,
        user_id: Optional[str] = None,
        options: Optional[GenerationOptions] = None,
    ) -> BriefContentResult:
        options = options or GenerationOptions()

        brief = self.repository.get_brief(brief_id)
        if brief is None:
            return BriefContentResult(success=False, error=NotFoundError("Brief", brief_id))
        if brief.status != BriefStatus.APPROVED.value:
            return BriefContentResult(
                success=False, error=ValidationError("Brief must be approved before generating content"),
            )
        if channel not in CONTENT_TASKS:
            return BriefContentResult(success=False, error=ValidationError(f"Invalid channel: {channel}"))
        if self.llm is None:
            return BriefContentResult(success=False, error=UpstreamGenerationError("AI generation is not configured"))

        _, context = self._client_context(str(brief.client_id) if brief.client_id else None)
        context = context or ClientContext()
        content = brief.brief or {}
        idea = self.repository.get_opportunity(brief.idea_id) if brief.idea_id else None

        template = get_template(CONTENT_TASKS[channel])
        prompt = template.render(ContentPromptContext(
            channel=channel,
            topic=idea.topic if idea else content.get("key_claim", ""),
            industry=context.industry or brief.industry or "",
            target_audience=options.target_audience or context.target_audience or DEFAULT_AUDIENCE,
            core_tension=content.get("core_tension"),
            our_angle=content.get("our_angle"),
            key_claim=content.get("key_claim"),
            proof_points=[f"{i}. {point}" for i, point in enumerate(content.get("proof_points", []), 1)],
            why_now=content.get("why_now"),
            no_go_claims=content.get("no_go_claims", []),
            tone_of_voice=context.tone_of_voice or DEFAULT_TONE,
            brand_voice=context.brand_voice,
            video_length=(options.video_length or DEFAULT_VIDEO_LENGTH) if channel == "youtube" else None,
            word_count=(options.word_count or DEFAULT_BRIEF_WORD_COUNT) if channel == "blog" else None,
        ))

        result = await self.llm.generate_json(template.task, prompt, system=template.system)
        if not result.success:
            logger.error(f"Content generation from brief {brief.id} ({channel}) failed: {result.errors}")
            return BriefContentResult(
                success=False, error=UpstreamGenerationError("AI generation failed", {"errors": result.errors}),
            )

        try:
            generation = self.repository.add_brief_generation(
                brief_id=brief.id,
                channel=channel,
                version=self.repository.next_brief_generation_version(brief.id, channel),
                output=result.data,
                model_id=result.model,
                tokens=result.usage.to_dict() if result.usage else {},
                created_by=user_id,
            )
            self.repository.commit()
        except SQLAlchemyError as e:
            self.repository.rollback()
            logger.error(f"Failed to store generation for brief {brief.id}: {e}")
            return BriefContentResult(success=False, error=UpstreamGenerationError("Failed to store generation"))

        logger.info(f"Brief {brief.id}: {channel} v{generation.version} generated")
        return BriefContentResult(success=True, generation=generation)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_brief(self, brief_id: str) -> Brief:
        brief = self.repository.get_brief(brief_id)
        if brief is None:
            raise NotFoundError("Brief", brief_id)
        return brief

    def list_briefs(self, filters: Optional[BriefFilters] = None) -> List[Brief]:
        filters = filters or BriefFilters()
        if filters.status and filters.status not in {s.value for s in BriefStatus}:
            raise ValidationError(f"Invalid status: {filters.status}")
        return self.repository.list_briefs(
            client_id=filters.client_id,
            status=filters.status,
            idea_id=filters.idea_id,
            limit=filters.limit,
        )

    def get_brief_generations(self, brief_id: str) -> List[BriefGeneration]:
        return self.repository.list_brief_generations(brief_id)


# =============================================================================
# SERIALIZATION
# =============================================================================

def serialize_brief(brief: Brief, generations: Optional[List[BriefGeneration]] = None) -> Dict[str, Any]:
    data = {
        "id": str(brief.id),
        "clientId": str(brief.client_id) if brief.client_id else None,
        "ideaId": str(brief.idea_id) if brief.idea_id else None,
        "brief": brief.brief,
        "evidence": brief.evidence or [],
        "sourceDateRange": brief.source_date_range,
        "industry": brief.industry,
        "status": brief.status,
        "approvedBy": brief.approved_by,
        "approvedAt": brief.approved_at.isoformat() if brief.approved_at else None,
        "rejectionReason": brief.rejection_reason,
        "supersededBy": str(brief.superseded_by) if brief.superseded_by else None,
        "createdBy": brief.created_by,
        "createdAt": brief.created_at.isoformat() if brief.created_at else None,
        "updatedAt": brief.updated_at.isoformat() if brief.updated_at else None,
    }
    if generations is not None:
        data["generations"] = [serialize_brief_generation(g) for g in generations]
    return data


def serialize_brief_generation(generation: BriefGeneration) -> Dict[str, Any]:
    return {
        "id": str(generation.id),
        "briefId": str(generation.brief_id),
        "channel": generation.channel,
        "version": generation.version,
        "output": generation.output,
        "modelId": generation.model_id,
        "tokens": generation.tokens or {},
        "createdAt": generation.created_at.isoformat() if generation.created_at else None,
    }
