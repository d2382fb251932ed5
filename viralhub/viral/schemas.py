"""
Viral Hub Schemas

Pydantic models for validating AI output and API request bodies.

- CanonicalBrief: the five-field brief an LLM must return
- EnhancementResponse: AI rewrite of opportunity angles
- BuildConfig / SeoOptions: opportunity build parameters
- Request bodies for briefs, generation and ingestion

Request models accept both snake_case and camelCase keys.
"""

from typing import Annotated, List, Literal, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ChannelName = Literal["youtube", "instagram", "blog"]
SearchIntent = Literal["informational", "commercial", "transactional"]

ProofPoint = Annotated[str, Field(min_length=5, max_length=200)]


def _canonical_uuid(value: str) -> str:
    try:
        return str(UUID(value))
    except ValueError:
        raise ValueError("must be a UUID")


# Ids stay strings downstream; malformed ones fail validation instead of matching nothing
UuidStr = Annotated[str, AfterValidator(_canonical_uuid)]


class CamelModel(BaseModel):
    """Accepts camelCase aliases alongside field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# AI OUTPUT
# =============================================================================

class SearchContext(BaseModel):
    """Searcher-facing framing included in SEO-driven briefs."""
    searcher_question: str = Field(..., max_length=300)
    competitive_gap: str = Field(..., max_length=300)
    our_differentiator: str = Field(..., max_length=200)
    primary_query: str
    intent: SearchIntent
    avoid: List[str] = Field(default_factory=list)


class CanonicalBrief(BaseModel):
    """
    Five-field brief, readable in under a minute.

    Proof points must reference the source discussions; no-go claims
    come from the client's brand guardrails.
    """
    core_tension: str = Field(..., min_length=10, max_length=500)
    our_angle: str = Field(..., min_length=10, max_length=300)
    key_claim: str = Field(..., min_length=10, max_length=200)
    proof_points: List[ProofPoint] = Field(..., min_length=2, max_length=6)
    why_now: str = Field(..., min_length=10, max_length=300)
    no_go_claims: List[str] = Field(default_factory=list)

    search_context: Optional[SearchContext] = None
    recommended_channel: Optional[ChannelName] = None
    channel_rationale: Optional[str] = Field(default=None, max_length=200)


class EvidenceItem(BaseModel):
    signal_id: str
    url: str
    title: str
    excerpt: Optional[str] = None
    subreddit: Optional[str] = None
    upvotes: Optional[int] = None
    comments: Optional[int] = None


class EnhancedOpportunity(BaseModel):
    topic: Optional[str] = None
    angle: str
    hook: str
    reasoning: str


class EnhancementResponse(BaseModel):
    enhanced: List[EnhancedOpportunity] = Field(default_factory=list)


# =============================================================================
# OPPORTUNITY BUILD
# =============================================================================

class ExistingContentItem(CamelModel):
    url: str
    title: str = ""
    keywords: List[str] = Field(default_factory=list)


class SeoOptions(CamelModel):
    enabled: bool = False
    site_url: Optional[str] = None
    enforce_gates: bool = True
    existing_clusters: List[str] = Field(default_factory=list)
    existing_content: List[ExistingContentItem] = Field(default_factory=list)
    competitors: List[str] = Field(default_factory=list)


class BuildConfig(CamelModel):
    """Parameters for one opportunity build."""
    industry: str = Field(..., min_length=1)
    client_id: Optional[UuidStr] = None
    channels: List[ChannelName] = Field(..., min_length=1)
    limit: int = Field(default=10, ge=1, le=50)
    days: int = Field(default=7, ge=1, le=30)
    use_ai: bool = Field(default=False, alias="useAI")
    seo: SeoOptions = Field(default_factory=SeoOptions, alias="seoOptions")

    @field_validator("channels")
    @classmethod
    def dedupe_channels(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class StatusUpdateRequest(BaseModel):
    status: str


# =============================================================================
# GENERATION
# =============================================================================

class GenerationOptions(CamelModel):
    target_audience: Optional[str] = None
    video_length: Optional[str] = None
    word_count: Optional[int] = Field(default=None, ge=100, le=10000)


class GenerateContentRequest(CamelModel):
    """Either a channel fan-out or a blog draft from an outline."""
    channels: List[ChannelName] = Field(default_factory=list)
    options: GenerationOptions = Field(default_factory=GenerationOptions)
    action: Optional[Literal["generate_draft"]] = None
    outline_generation_id: Optional[str] = None

    @field_validator("channels")
    @classmethod
    def dedupe_channels(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


# =============================================================================
# BRIEFS
# =============================================================================

class GenerateBriefRequest(CamelModel):
    idea_id: Optional[UuidStr] = None
    signal_ids: List[UuidStr] = Field(default_factory=list)
    industry: Optional[str] = None
    client_id: Optional[UuidStr] = None
    instruction: Optional[str] = Field(default=None, max_length=500)


class BriefActionRequest(CamelModel):
    action: Literal["approve", "reject"]
    reason: Optional[str] = Field(default=None, max_length=1000)


class RegenerateAngleRequest(CamelModel):
    instruction: str = Field(
        default="Take a different, more contrarian angle on the same evidence",
        min_length=5,
        max_length=500,
    )


class BriefContentRequest(CamelModel):
    channel: ChannelName
    options: GenerationOptions = Field(default_factory=GenerationOptions)


# =============================================================================
# INGESTION
# =============================================================================

class RedditIngestOptions(CamelModel):
    subreddits: Optional[List[str]] = None
    query: Optional[str] = None
    sort: Literal["hot", "top", "new", "rising"] = "hot"
    time_filter: Literal["hour", "day", "week", "month", "year", "all"] = "day"
    limit: int = Field(default=25, ge=1, le=100)


class IngestRequest(CamelModel):
    industry: str = Field(..., min_length=1)
    reddit: Optional[RedditIngestOptions] = None
