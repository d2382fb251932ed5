"""Signal sources."""

from .types import (
    SignalMetrics,
    NormalizedSignal,
    FetchConfig,
    FetchResult,
    SignalSource,
    calculate_velocity,
    truncate_excerpt,
    MAX_EXCERPT_LENGTH,
)
from .reddit import RedditSource, RedditError, RetryConfig, should_skip_post, normalize_post

__all__ = [
    "SignalMetrics",
    "NormalizedSignal",
    "FetchConfig",
    "FetchResult",
    "SignalSource",
    "calculate_velocity",
    "truncate_excerpt",
    "MAX_EXCERPT_LENGTH",
    "RedditSource",
    "RedditError",
    "RetryConfig",
    "should_skip_post",
    "normalize_post",
]
