"""
Shared FastAPI dependencies for the Viral Hub routers.

Tests override these with `app.dependency_overrides`.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from viralhub.cache import Cache, create_cache
from viralhub.database import ViralRepository, get_db
from viralhub.exceptions import UpstreamGenerationError
from viralhub.llm import LLMClient
from viralhub.viral.sources import RedditSource

logger = logging.getLogger(__name__)


def get_repository(db: Session = Depends(get_db)) -> ViralRepository:
    return ViralRepository(db)


@lru_cache(maxsize=1)
def get_cache() -> Cache:
    """Process-wide cache for the configured backend."""
    return create_cache()


@lru_cache(maxsize=1)
def _llm_client() -> LLMClient:
    return LLMClient()


def get_optional_llm() -> Optional[LLMClient]:
    """Claude client, or None when no API key is configured."""
    try:
        return _llm_client()
    except ValueError:
        logger.warning("ANTHROPIC_API_KEY not set - AI features disabled")
        return None


def get_llm(llm: Optional[LLMClient] = Depends(get_optional_llm)) -> LLMClient:
    if llm is None:
        raise UpstreamGenerationError("AI generation is not configured")
    return llm


async def get_reddit_source():
    """Reddit source scoped to one request."""
    async with RedditSource() as source:
        yield source
