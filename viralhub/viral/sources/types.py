"""
Signal Source Types

Provider-neutral shapes, so new sources (YouTube, TikTok, ...) plug in
without touching ingestion or scoring.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

MAX_EXCERPT_LENGTH = 500


@dataclass
class SignalMetrics:
    upvotes: int = 0
    comments: int = 0
    upvote_ratio: Optional[float] = None
    velocity: float = 0.0     # upvotes per hour since posting

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upvotes": self.upvotes,
            "comments": self.comments,
            "upvote_ratio": self.upvote_ratio,
            "velocity": self.velocity,
        }


@dataclass
class NormalizedSignal:
    """A content item in source-neutral form, ready to store."""
    source_type: str
    external_id: str
    url: str
    title: str
    author: Optional[str] = None
    community: Optional[str] = None
    created_at_external: Optional[datetime] = None
    metrics: SignalMetrics = field(default_factory=SignalMetrics)
    raw_excerpt: Optional[str] = None
    industry: Optional[str] = None


@dataclass
class FetchConfig:
    industry: Optional[str] = None
    subreddits: List[str] = field(default_factory=lambda: ["all"])
    query: Optional[str] = None
    sort: str = "hot"            # hot, top, new, rising
    time_filter: str = "day"     # hour, day, week, month, year, all
    limit: int = 25


@dataclass
class FetchResult:
    signals: List[NormalizedSignal] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class SignalSource(Protocol):
    source_type: str

    async def fetch_signals(self, config: FetchConfig) -> FetchResult:
        ...


def calculate_velocity(score: float, age_hours: float) -> float:
    """Upvotes per hour; the raw score when age is not positive."""
    if age_hours > 0:
        return round(score / age_hours, 2)
    return score


def truncate_excerpt(text: Optional[str], max_length: int = MAX_EXCERPT_LENGTH) -> Optional[str]:
    if not text:
        return None
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text
