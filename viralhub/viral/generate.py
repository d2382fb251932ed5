"""
Viral Content Generation

Generates channel content packages for an opportunity:
- instagram -> viral_ig_package (carousel, reel script, caption)
- youtube   -> viral_youtube_script
- blog      -> viral_blog_outline (then viral_blog_draft on request)

Channels run concurrently, each under its own timeout. One channel failing
never discards the others.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from viralhub.database import Generation, Opportunity, OpportunityStatus, Signal, ViralRepository
from viralhub.exceptions import InvalidTransitionError, NotFoundError, UpstreamGenerationError, ViralHubError
from viralhub.llm import BlogDraftPromptContext, ContentPromptContext, LLMClient, ParseResult, get_template
from viralhub.utils import get_settings
from .opportunities import CACHE_PATTERN, validate_status_transition
from .schemas import GenerationOptions

logger = logging.getLogger(__name__)

CHANNEL_TASKS = {
    "instagram": "viral_ig_package",
    "youtube": "viral_youtube_script",
    "blog": "viral_blog_outline",
}
BLOG_DRAFT_TASK = "viral_blog_draft"

DEFAULT_AUDIENCE = "General audience"
DEFAULT_VIDEO_LENGTH = "8-10 minutes"
DEFAULT_WORD_COUNT = 1500
SOURCE_CONTEXT_SIGNALS = 5


def channel_from_task(task: str) -> str:
    if "ig" in task.split("_") or "instagram" in task:
        return "instagram"
    if "youtube" in task:
        return "youtube"
    return "blog"


def prepare_source_context(signals: List[Signal]) -> str:
    """Numbered summary of the top signals for content prompts."""
    summaries = []
    for i, signal in enumerate(signals[:SOURCE_CONTEXT_SIGNALS], 1):
        lines = [
            f'{i}. "{signal.title}" ({signal.upvotes} upvotes, {signal.comments} comments)',
            f"   Source: r/{signal.community or 'unknown'}",
        ]
        if signal.raw_excerpt:
            lines.append(f"   Summary: {signal.raw_excerpt[:200]}...")
        summaries.append("\n".join(lines))
    return "\n\n".join(summaries)


@dataclass
class GenerateRequest:
    opportunity_id: str
    channels: List[str]
    user_id: Optional[str] = None
    options: GenerationOptions = field(default_factory=GenerationOptions)


@dataclass
class GenerateResult:
    success: bool
    generations: List[Generation] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    error: Optional[ViralHubError] = None


class ContentGenerator:
    """
    Args:
        repository: Data access
        llm: Claude client
        timeout: Seconds allowed per channel (defaults to LLM_TIMEOUT)
        cache: Optional cache invalidated when an opportunity status changes
    """

    def __init__(
        self,
        repository: ViralRepository,
        llm: LLMClient,
        timeout: Optional[float] = None,
        cache=None,
    ):
        self.repository = repository
        self.llm = llm
        self.timeout = timeout or get_settings().LLM_TIMEOUT
        self.cache = cache

    async def generate_content_packages(self, request: GenerateRequest) -> GenerateResult:
        opportunity = self.repository.get_opportunity(request.opportunity_id)
        if opportunity is None:
            return GenerateResult(success=False, error=NotFoundError("Opportunity", request.opportunity_id))

        channels = list(dict.fromkeys(request.channels))
        signals = self.repository.get_signals_by_ids(opportunity.source_signal_ids or [])
        signals.sort(key=lambda s: -s.upvotes)
        source_context = prepare_source_context(signals)

        outcomes = await asyncio.gather(*(
            self._generate_channel(opportunity, channel, source_context, request.options)
            for channel in channels
        ))

        result = GenerateResult(success=False)
        for channel, outcome in zip(channels, outcomes):
            if isinstance(outcome, str):
                result.errors.append(outcome)
                continue
            try:
                generation = self.repository.add_generation(
                    opportunity_id=opportunity.id,
                    task=CHANNEL_TASKS[channel],
                    output=outcome.data,
                    model_id=outcome.model,
                    tokens=outcome.usage.to_dict() if outcome.usage else {},
                    created_by=request.user_id,
                )
                self.repository.commit()
                result.generations.append(generation)
            except SQLAlchemyError as e:
                self.repository.rollback()
                logger.error(f"Failed to store {channel} generation for {opportunity.id}: {e}")
                result.errors.append(f"Storage error for {channel}: {e}")

        if result.generations:
            await self._mark_generated(opportunity)

        result.success = len(result.errors) < len(channels)
        if not result.success:
            result.error = UpstreamGenerationError("Content generation failed", {"errors": result.errors})

        logger.info(
            f"Opportunity {opportunity.id}: {len(result.generations)}/{len(channels)} channels generated"
        )
        return result

    async def _generate_channel(
        self,
        opportunity: Opportunity,
        channel: str,
        source_context: str,
        options: GenerationOptions,
    ):
        """Returns the ParseResult, or an error message for this channel."""
        template = get_template(CHANNEL_TASKS[channel])
        prompt = template.render(ContentPromptContext(
            channel=channel,
            topic=opportunity.topic,
            industry=opportunity.industry,
            target_audience=options.target_audience or DEFAULT_AUDIENCE,
            angle=opportunity.angle,
            hook=opportunity.hook,
            source_context=source_context,
            video_length=(options.video_length or DEFAULT_VIDEO_LENGTH) if channel == "youtube" else None,
            word_count=(options.word_count or DEFAULT_WORD_COUNT) if channel == "blog" else None,
        ))

        try:
            result: ParseResult = await asyncio.wait_for(
                self.llm.generate_json(template.task, prompt, system=template.system),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"{channel} generation for {opportunity.id} timed out after {self.timeout}s")
            return f"Generation error for {channel}: timed out after {self.timeout}s"
        except Exception as e:
            logger.error(f"{channel} generation for {opportunity.id} failed: {e}")
            return f"Generation error for {channel}: {e}"

        if not result.success:
            return f"Generation error for {channel}: {'; '.join(result.errors) or 'Generation failed'}"
        return result

    async def _mark_generated(self, opportunity: Opportunity) -> None:
        try:
            changed = validate_status_transition(opportunity.status, OpportunityStatus.GENERATED.value)
        except InvalidTransitionError:
            logger.info(f"Opportunity {opportunity.id} stays {opportunity.status}")
            return
        if not changed:
            return

        self.repository.set_opportunity_status(opportunity, OpportunityStatus.GENERATED.value)
        self.repository.commit()
        if self.cache is not None:
            await self.cache.invalidate(CACHE_PATTERN)

    async def generate_blog_draft(
        self,
        opportunity_id: str,
        outline_generation_id: str,
        user_id: Optional[str] = None,
    ) -> GenerateResult:
        """Full blog post from a stored outline generation."""
        opportunity = self.repository.get_opportunity(opportunity_id)
        if opportunity is None:
            return GenerateResult(success=False, error=NotFoundError("Opportunity", opportunity_id))

        outline_generation = self.repository.get_generation(outline_generation_id)
        if outline_generation is None or outline_generation.opportunity_id != opportunity.id:
            return GenerateResult(success=False, error=NotFoundError("Outline generation", outline_generation_id))

        outline = outline_generation.output or {}
        titles = outline.get("titles") or []
        secondary = outline.get("secondary_keywords") or []

        template = get_template(BLOG_DRAFT_TASK)
        prompt = template.render(BlogDraftPromptContext(
            topic=opportunity.topic,
            title=titles[0] if titles else "Untitled",
            outline=json.dumps(outline.get("outline", []), indent=2),
            primary_keyword=outline.get("primary_keyword") or None,
            secondary_keywords=list(secondary) if isinstance(secondary, list) else [],
            word_count=int(outline.get("estimated_word_count") or DEFAULT_WORD_COUNT),
            target_audience=DEFAULT_AUDIENCE,
        ))

        try:
            result = await asyncio.wait_for(
                self.llm.generate_json(template.task, prompt, system=template.system),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            message = f"Draft generation timed out after {self.timeout}s"
            logger.error(f"{message} for {opportunity.id}")
            return GenerateResult(success=False, errors=[message], error=UpstreamGenerationError(message))

        if not result.success:
            logger.error(f"Blog draft for {opportunity.id} failed: {result.errors}")
            return GenerateResult(
                success=False,
                errors=result.errors,
                error=UpstreamGenerationError("Draft generation failed", {"errors": result.errors}),
            )

        try:
            generation = self.repository.add_generation(
                opportunity_id=opportunity.id,
                task=BLOG_DRAFT_TASK,
                output=result.data,
                model_id=result.model,
                tokens=result.usage.to_dict() if result.usage else {},
                created_by=user_id,
            )
            self.repository.commit()
        except SQLAlchemyError as e:
            self.repository.rollback()
            logger.error(f"Failed to store blog draft for {opportunity.id}: {e}")
            return GenerateResult(success=False, error=UpstreamGenerationError("Failed to store generation"))

        return GenerateResult(success=True, generations=[generation])

    def get_generations_for_opportunity(self, opportunity_id: str) -> List[Dict[str, Any]]:
        return [serialize_generation(g) for g in self.repository.list_generations(opportunity_id)]


def serialize_generation(generation: Generation) -> Dict[str, Any]:
    return {
        "id": str(generation.id),
        "opportunityId": str(generation.opportunity_id),
        "channel": channel_from_task(generation.task),
        "task": generation.task,
        "output": generation.output,
        "modelId": generation.model_id,
        "tokens": generation.tokens or {},
        "createdAt": generation.created_at.isoformat() if generation.created_at else None,
    }
