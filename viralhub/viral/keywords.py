"""
Keyword Extraction and Signal Clustering

Keywords are lowercased alphanumeric tokens longer than two characters that
are not stopwords. Two signals are cluster-mates when their keyword sets
overlap enough; clusters are the connected components of that relation,
so membership never depends on the order signals arrive in.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

logger = logging.getLogger(__name__)

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "must", "shall", "can", "it", "its", "this", "that", "these",
    "those", "i", "you", "he", "she", "we", "they", "my", "your", "his", "her",
    "our", "their", "what", "which", "who", "whom", "how", "why", "when", "where",
    "just", "like", "get", "got", "really", "very", "so", "now", "new", "more",
    "no", "not", "any", "all", "some", "about", "out", "up", "down", "into",
})

MIN_KEYWORD_LENGTH = 3
DEFAULT_MIN_OVERLAP = 2
SHORT_KEYWORD_SET = 3
HIGH_ENGAGEMENT_THRESHOLD = 100

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def extract_keywords(text: Optional[str]) -> Set[str]:
    """Extract the keyword set of a piece of text."""
    if not text:
        return set()

    normalized = _NON_ALNUM.sub(" ", text.lower())
    return {
        token for token in normalized.split()
        if len(token) >= MIN_KEYWORD_LENGTH and token not in STOPWORDS
    }


def count_overlap(a: Set[str], b: Set[str]) -> int:
    """Number of keywords present in both sets."""
    return len(a & b)


def are_cluster_mates(a: Set[str], b: Set[str], min_overlap: int = DEFAULT_MIN_OVERLAP) -> bool:
    """
    Pairwise cluster relation.

    Short keyword sets (<= 3) only need a single shared keyword; the size
    check uses the smaller set so the relation stays symmetric.
    """
    overlap = count_overlap(a, b)
    if overlap >= min_overlap:
        return True
    return overlap >= 1 and min(len(a), len(b)) <= SHORT_KEYWORD_SET


# =============================================================================
# CLUSTERING
# =============================================================================

@dataclass
class SignalCluster:
    """A group of signals connected by keyword overlap."""
    signals: List[Any]
    keywords: List[str]
    total_engagement: int = 0
    standalone: bool = False

    @property
    def size(self) -> int:
        return len(self.signals)

    @property
    def signal_ids(self) -> List[str]:
        return [str(s.id) for s in self.signals]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signal_ids": self.signal_ids,
            "keywords": self.keywords,
            "total_engagement": self.total_engagement,
            "standalone": self.standalone,
        }


class _UnionFind:
    """Disjoint sets over indices 0..n-1 with path compression."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        if self.rank[ra] < self.rank[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        if self.rank[ra] == self.rank[rb]:
            self.rank[ra] += 1


def _rank_keywords(keyword_sets: Sequence[Set[str]]) -> List[str]:
    """Keywords ordered by member frequency, ties alphabetical."""
    counts: Counter = Counter()
    for keywords in keyword_sets:
        counts.update(keywords)
    return [kw for kw, _ in sorted(counts.items(), key=lambda item: (-item[1], item[0]))]


def _member_sort_key(signal: Any):
    return (-(signal.upvotes or 0), str(signal.id))


def _make_cluster(members: List[Any], keyword_sets: List[Set[str]], standalone: bool) -> SignalCluster:
    ordered = sorted(zip(members, keyword_sets), key=lambda pair: _member_sort_key(pair[0]))
    return SignalCluster(
        signals=[m for m, _ in ordered],
        keywords=_rank_keywords([k for _, k in ordered]),
        total_engagement=sum(m.upvotes or 0 for m in members),
        standalone=standalone,
    )


def cluster_signals(
    signals: Iterable[Any],
    min_overlap: int = DEFAULT_MIN_OVERLAP,
    high_engagement_threshold: int = HIGH_ENGAGEMENT_THRESHOLD,
) -> List[SignalCluster]:
    """
    Group signals into clusters.

    Signals with `high_engagement_threshold`+ upvotes stand alone. The rest
    are joined by union-find over every cluster-mate pair.

    Args:
        signals: Objects exposing `id`, `title` and `upvotes`
        min_overlap: Shared keywords needed to link two signals
        high_engagement_threshold: Upvotes at which a signal stands alone

    Returns:
        Clusters sorted by total engagement (desc), then first signal id
    """
    standalone: List[SignalCluster] = []
    pool: List[Any] = []
    pool_keywords: List[Set[str]] = []

    for signal in signals:
        keywords = extract_keywords(signal.title)
        if (signal.upvotes or 0) >= high_engagement_threshold:
            standalone.append(_make_cluster([signal], [keywords], standalone=True))
        else:
            pool.append(signal)
            pool_keywords.append(keywords)

    uf = _UnionFind(len(pool))
    for i in range(len(pool)):
        for j in range(i + 1, len(pool)):
            if are_cluster_mates(pool_keywords[i], pool_keywords[j], min_overlap):
                uf.union(i, j)

    components: Dict[int, List[int]] = {}
    for i in range(len(pool)):
        components.setdefault(uf.find(i), []).append(i)

    clustered = [
        _make_cluster([pool[i] for i in idx], [pool_keywords[i] for i in idx], standalone=False)
        for idx in components.values()
    ]

    clusters = standalone + clustered
    clusters.sort(key=lambda c: (-c.total_engagement, str(c.signals[0].id)))

    logger.debug(
        f"Clustered {len(pool) + len(standalone)} signals into {len(clusters)} clusters "
        f"({len(standalone)} standalone)"
    )
    return clusters
