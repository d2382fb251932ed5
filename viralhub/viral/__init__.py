"""
Viral Opportunity Pipeline

signals -> spam filter -> keyword clusters -> scores -> opportunities
        -> canonical briefs -> channel content

Modules:
- sources / ingest: fetch and store signals
- spam, keywords, scoring: pure pipeline stages
- seo_intelligence: search demand, strategic gates, channel viability
- opportunities: build, rank, persist and move opportunities
- briefs: canonical briefs and content from approved briefs
- generate: per-channel content packages
"""

from .spam import is_spam, filter_spam
from .keywords import SignalCluster, extract_keywords, count_overlap, are_cluster_mates, cluster_signals
from .scoring import SCORE_CAPS, ScoreBreakdown, SeasonalEvent, score_cluster, summarize_scores
from .schemas import (
    CanonicalBrief,
    BuildConfig,
    SeoOptions,
    GenerationOptions,
    GenerateContentRequest,
    GenerateBriefRequest,
)
from .ingest import IngestResult, ingest_signals
from .opportunities import (
    OpportunityBuilder,
    BuildResult,
    OpportunityFilters,
    validate_status_transition,
    update_opportunity_status,
    list_opportunities,
    get_opportunity_with_signals,
    serialize_opportunity,
    serialize_signal,
)
from .briefs import BriefService, BriefResult, BriefContentResult, BriefFilters, serialize_brief
from .generate import ContentGenerator, GenerateRequest, GenerateResult, channel_from_task, serialize_generation

__all__ = [
    "is_spam",
    "filter_spam",
    "SignalCluster",
    "extract_keywords",
    "count_overlap",
    "are_cluster_mates",
    "cluster_signals",
    "SCORE_CAPS",
    "ScoreBreakdown",
    "SeasonalEvent",
    "score_cluster",
    "summarize_scores",
    "CanonicalBrief",
    "BuildConfig",
    "SeoOptions",
    "GenerationOptions",
    "GenerateContentRequest",
    "GenerateBriefRequest",
    "IngestResult",
    "ingest_signals",
    "OpportunityBuilder",
    "BuildResult",
    "OpportunityFilters",
    "validate_status_transition",
    "update_opportunity_status",
    "list_opportunities",
    "get_opportunity_with_signals",
    "serialize_opportunity",
    "serialize_signal",
    "BriefService",
    "BriefResult",
    "BriefContentResult",
    "BriefFilters",
    "serialize_brief",
    "ContentGenerator",
    "GenerateRequest",
    "GenerateResult",
    "channel_from_task",
    "serialize_generation",
]
