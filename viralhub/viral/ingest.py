"""
Signal Ingestion

Fetches from a signal source, drops spam, and stores the rest:
- new (source_type, external_id): inserted
- stored within the last 6 hours: skipped
- older: metrics refreshed, content left untouched
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from viralhub.database import ViralRepository
from viralhub.utils import as_naive_utc, utcnow
from .sources import FetchConfig, NormalizedSignal, SignalSource
from .spam import filter_spam

logger = logging.getLogger(__name__)

CACHE_HOURS = 6
MAX_TITLE_LENGTH = 500


@dataclass
class IngestedSignal:
    id: str
    source_type: str
    external_id: str
    title: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_type": self.source_type,
            "external_id": self.external_id,
            "title": self.title,
            "url": self.url,
        }


@dataclass
class IngestResult:
    success: bool = True
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    spam: int = 0
    errors: List[str] = field(default_factory=list)
    signals: List[IngestedSignal] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "spam": self.spam,
            "signals": [s.to_dict() for s in self.signals],
        }


async def ingest_signals(
    repository: ViralRepository,
    source: SignalSource,
    config: FetchConfig,
) -> IngestResult:
    """
    Fetch and store signals for an industry.

    A source failure or a single bad row is recorded in `errors`; the run
    only fails when nothing at all was stored.
    """
    result = IngestResult()
    fetched: List[NormalizedSignal] = []

    try:
        fetch_result = await source.fetch_signals(config)
        fetched = fetch_result.signals
        result.errors.extend(f"{source.source_type.title()} error: {e}" for e in fetch_result.errors)
    except Exception as e:
        logger.error(f"Signal source {source.source_type} failed: {e}")
        result.errors.append(f"{source.source_type.title()} error: {e}")

    kept, rejected = filter_spam(fetched)
    result.spam = len(rejected)
    if rejected:
        logger.info(f"Dropped {len(rejected)} spam signals")

    for signal in kept:
        try:
            outcome, stored_id = _store_signal(repository, signal, config.industry)
            repository.commit()
        except SQLAlchemyError as e:
            repository.rollback()
            logger.error(f"Failed to store signal {signal.external_id}: {e}")
            result.errors.append(f"Store error for {signal.external_id}: {e}")
            continue

        if outcome == "inserted":
            result.inserted += 1
            result.signals.append(IngestedSignal(
                id=stored_id,
                source_type=signal.source_type,
                external_id=signal.external_id,
                title=signal.title,
                url=signal.url,
            ))
        elif outcome == "updated":
            result.updated += 1
        else:
            result.skipped += 1

    if result.errors and result.inserted == 0 and result.updated == 0:
        result.success = False

    logger.info(
        f"Ingest for {config.industry}: {result.inserted} inserted, {result.updated} updated, "
        f"{result.skipped} skipped, {result.spam} spam, {len(result.errors)} errors"
    )
    return result


def _store_signal(repository: ViralRepository, signal: NormalizedSignal, industry: Optional[str]):
    existing = repository.get_signal_by_external_id(signal.source_type, signal.external_id)

    if existing is not None:
        fetched_at = as_naive_utc(existing.fetched_at) if existing.fetched_at else None
        if fetched_at and utcnow() - fetched_at < timedelta(hours=CACHE_HOURS):
            return "skipped", str(existing.id)
        repository.refresh_signal_metrics(existing, signal.metrics.to_dict())
        return "updated", str(existing.id)

    stored = repository.add_signal(
        source_type=signal.source_type,
        external_id=signal.external_id,
        url=signal.url,
        title=signal.title[:MAX_TITLE_LENGTH],
        author=signal.author,
        community=signal.community,
        created_at_external=signal.created_at_external,
        metrics=signal.metrics.to_dict(),
        raw_excerpt=signal.raw_excerpt,
        industry=industry or signal.industry,
    )
    return "inserted", str(stored.id)
