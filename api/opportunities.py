"""
Viral Opportunities API

Endpoints:
- GET /api/viral/opportunities - List opportunities (cached)
- POST /api/viral/opportunities/build - Build opportunities from stored signals
- GET /api/viral/opportunities/{id} - Opportunity with its signals and generations
- PATCH /api/viral/opportunities/{id} - Move an opportunity through its statuses
- POST /api/viral/opportunities/{id}/generate - Channel content or a blog draft
- POST /api/viral/signals/ingest - Fetch and store Reddit signals
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from viralhub.auth import AuthenticatedUser, RateLimitPreset, enforce_rate_limit, get_current_user, require_internal_role
from viralhub.cache import Cache
from viralhub.database import ViralRepository
from viralhub.exceptions import ValidationError
from viralhub.llm import LLMClient
from viralhub.viral import (
    BuildConfig,
    ContentGenerator,
    GenerateContentRequest,
    GenerateRequest,
    OpportunityBuilder,
    OpportunityFilters,
    get_opportunity_with_signals,
    ingest_signals,
    list_opportunities,
    serialize_generation,
    serialize_opportunity,
    serialize_signal,
    update_opportunity_status,
)
from viralhub.viral.schemas import IngestRequest, StatusUpdateRequest
from viralhub.viral.sources import FetchConfig, RedditSource

from .deps import get_cache, get_llm, get_optional_llm, get_reddit_source, get_repository

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/viral",
    tags=["Viral Opportunities"],
    dependencies=[Depends(get_current_user)],
)


# =============================================================================
# OPPORTUNITIES
# =============================================================================

@router.get("/opportunities")
async def get_opportunities(
    industry: Optional[str] = None,
    channel: Optional[str] = None,
    status: Optional[str] = None,
    client_id: Optional[str] = Query(None, alias="clientId"),
    limit: int = Query(20, ge=1, le=100),
    repository: ViralRepository = Depends(get_repository),
    cache: Cache = Depends(get_cache),
):
    filters = OpportunityFilters(
        client_id=client_id,
        industry=industry,
        channel=channel,
        status=status,
        limit=limit,
    )
    data = await list_opportunities(repository, cache, filters)
    return {"data": data, "count": len(data)}


@router.post(
    "/opportunities/build",
    dependencies=[Depends(enforce_rate_limit(RateLimitPreset.HEAVY))],
)
async def build_opportunities(
    config: BuildConfig,
    user: AuthenticatedUser = Depends(require_internal_role),
    repository: ViralRepository = Depends(get_repository),
    cache: Cache = Depends(get_cache),
    llm: Optional[LLMClient] = Depends(get_optional_llm),
):
    logger.info(f"Build requested by {user.id} for {config.industry} ({', '.join(config.channels)})")
    builder = OpportunityBuilder(repository, cache, llm=llm if config.use_ai else None)
    result = await builder.build(config)

    response = {
        "success": result.success,
        "data": [serialize_opportunity(o) for o in result.opportunities],
        "count": len(result.opportunities),
        "seoSummary": result.seo_summary,
    }
    if result.errors:
        response["errors"] = result.errors
    return response


@router.get("/opportunities/{opportunity_id}")
async def get_opportunity(
    opportunity_id: str,
    repository: ViralRepository = Depends(get_repository),
):
    detail = get_opportunity_with_signals(repository, opportunity_id)
    return {
        "opportunity": serialize_opportunity(detail.opportunity),
        "signals": [serialize_signal(s) for s in detail.signals],
        "generations": [serialize_generation(g) for g in detail.generations],
    }


@router.patch("/opportunities/{opportunity_id}")
async def patch_opportunity(
    opportunity_id: str,
    body: StatusUpdateRequest,
    user: AuthenticatedUser = Depends(require_internal_role),
    repository: ViralRepository = Depends(get_repository),
    cache: Cache = Depends(get_cache),
):
    opportunity = await update_opportunity_status(repository, cache, opportunity_id, body.status)
    return {"id": str(opportunity.id), "status": opportunity.status}


@router.post(
    "/opportunities/{opportunity_id}/generate",
    dependencies=[Depends(enforce_rate_limit(RateLimitPreset.AI_GENERATE))],
)
async def generate_opportunity_content(
    opportunity_id: str,
    body: GenerateContentRequest,
    user: AuthenticatedUser = Depends(require_internal_role),
    repository: ViralRepository = Depends(get_repository),
    cache: Cache = Depends(get_cache),
    llm: LLMClient = Depends(get_llm),
):
    generator = ContentGenerator(repository, llm, cache=cache)

    if body.action == "generate_draft":
        if not body.outline_generation_id:
            raise ValidationError("outlineGenerationId is required for generate_draft")
        result = await generator.generate_blog_draft(opportunity_id, body.outline_generation_id, user.id)
    else:
        if not body.channels:
            raise ValidationError("At least one channel is required")
        result = await generator.generate_content_packages(GenerateRequest(
            opportunity_id=opportunity_id,
            channels=body.channels,
            user_id=user.id,
            options=body.options,
        ))

    if not result.success:
        raise result.error

    response = {
        "success": True,
        "data": [serialize_generation(g) for g in result.generations],
    }
    if result.errors:
        response["errors"] = result.errors
    return response


# =============================================================================
# SIGNALS
# =============================================================================

@router.post(
    "/signals/ingest",
    dependencies=[Depends(enforce_rate_limit(RateLimitPreset.HEAVY))],
)
async def ingest(
    body: IngestRequest,
    user: AuthenticatedUser = Depends(require_internal_role),
    repository: ViralRepository = Depends(get_repository),
    source: RedditSource = Depends(get_reddit_source),
):
    if body.reddit:
        config = FetchConfig(
            industry=body.industry,
            subreddits=body.reddit.subreddits or ["all"],
            query=body.reddit.query,
            sort=body.reddit.sort,
            time_filter=body.reddit.time_filter,
            limit=body.reddit.limit,
        )
    else:
        # Without options, search Reddit for the industry itself
        config = FetchConfig(industry=body.industry, subreddits=["all"], query=body.industry)

    result = await ingest_signals(repository, source, config)
    response = {"success": result.success, "data": result.to_dict()}
    if result.errors:
        response["errors"] = result.errors
    return response
