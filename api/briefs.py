"""
Canonical Briefs API

Endpoints:
- GET /api/viral/briefs - List briefs
- POST /api/viral/briefs - Generate a draft brief from an idea or signals
- GET /api/viral/briefs/{id} - Brief with its generated content
- PATCH /api/viral/briefs/{id} - Approve or reject
- POST /api/viral/briefs/{id}/regenerate-angle - New angle, old brief superseded
- POST /api/viral/briefs/{id}/generate-content - Channel content from an approved brief
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from viralhub.auth import AuthenticatedUser, RateLimitPreset, enforce_rate_limit, get_current_user, require_internal_role
from viralhub.database import ViralRepository
from viralhub.llm import LLMClient
from viralhub.viral import BriefFilters, BriefService, GenerateBriefRequest, serialize_brief
from viralhub.viral.briefs import serialize_brief_generation
from viralhub.viral.schemas import BriefActionRequest, BriefContentRequest, RegenerateAngleRequest

from .deps import get_optional_llm, get_repository

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api/viral/briefs",
    tags=["Viral Briefs"],
    dependencies=[Depends(get_current_user)],
)


def get_brief_service(
    repository: ViralRepository = Depends(get_repository),
    llm: Optional[LLMClient] = Depends(get_optional_llm),
) -> BriefService:
    return BriefService(repository, llm)


@router.get("")
async def get_briefs(
    status: Optional[str] = None,
    client_id: Optional[str] = Query(None, alias="clientId"),
    idea_id: Optional[str] = Query(None, alias="ideaId"),
    limit: int = Query(20, ge=1, le=100),
    service: BriefService = Depends(get_brief_service),
):
    briefs = service.list_briefs(BriefFilters(client_id=client_id, status=status, idea_id=idea_id, limit=limit))
    return {"data": [serialize_brief(b) for b in briefs], "count": len(briefs)}


@router.post(
    "",
    dependencies=[Depends(enforce_rate_limit(RateLimitPreset.AI_GENERATE))],
)
async def create_brief(
    body: GenerateBriefRequest,
    user: AuthenticatedUser = Depends(require_internal_role),
    service: BriefService = Depends(get_brief_service),
):
    result = await service.generate_brief(body, user_id=user.id)
    if not result.success:
        raise result.error
    return {"success": True, "data": serialize_brief(result.brief)}


@router.get("/{brief_id}")
async def get_brief(
    brief_id: str,
    service: BriefService = Depends(get_brief_service),
):
    brief = service.get_brief(brief_id)
    return {"data": serialize_brief(brief, service.get_brief_generations(brief.id))}


@router.patch("/{brief_id}")
async def review_brief(
    brief_id: str,
    body: BriefActionRequest,
    user: AuthenticatedUser = Depends(require_internal_role),
    service: BriefService = Depends(get_brief_service),
):
    if body.action == "approve":
        brief = service.approve_brief(brief_id, approver_id=user.id)
    else:
        brief = service.reject_brief(brief_id, reason=body.reason)
    return {"success": True, "data": serialize_brief(brief)}


@router.post(
    "/{brief_id}/regenerate-angle",
    dependencies=[Depends(enforce_rate_limit(RateLimitPreset.AI_GENERATE))],
)
async def regenerate_angle(
    brief_id: str,
    body: RegenerateAngleRequest = RegenerateAngleRequest(),
    user: AuthenticatedUser = Depends(require_internal_role),
    service: BriefService = Depends(get_brief_service),
):
    result = await service.regenerate_brief_angle(brief_id, body.instruction, user_id=user.id)
    if not result.success:
        raise result.error
    return {"success": True, "data": serialize_brief(result.brief), "oldBriefId": result.old_brief_id}


@router.post(
    "/{brief_id}/generate-content",
    dependencies=[Depends(enforce_rate_limit(RateLimitPreset.AI_GENERATE))],
)
async def generate_content(
    brief_id: str,
    body: BriefContentRequest,
    user: AuthenticatedUser = Depends(require_internal_role),
    service: BriefService = Depends(get_brief_service),
):
    result = await service.generate_content_from_brief(brief_id, body.channel, user_id=user.id, options=body.options)
    if not result.success:
        raise result.error
    return {"success": True, "data": serialize_brief_generation(result.generation)}
