"""
Repository Layer - Clean Interface for Data Operations

Wraps a SQLAlchemy session so services receive their store explicitly
(injected) instead of opening sessions themselves. Methods flush; callers
decide when to commit.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from viralhub.utils import utcnow
from .models import (
    Client, Signal, Opportunity, Generation, Brief, BriefGeneration,
    Alert, ShopifyDailyMetric, GoogleAdsDailyMetric,
)

logger = logging.getLogger(__name__)

IdLike = Union[str, UUID]


def as_uuid(value: IdLike) -> Optional[UUID]:
    """Parse an id; None when it is not a valid UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        return None


class ViralRepository:
    """Data access for signals, opportunities, briefs, alerts and metrics."""

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def _get(self, model, obj_id: IdLike):
        uid = as_uuid(obj_id)
        if uid is None:
            return None
        return self.session.get(model, uid)

    # =========================================================================
    # CLIENTS
    # =========================================================================

    def get_client(self, client_id: IdLike) -> Optional[Client]:
        return self._get(Client, client_id)

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def get_signals_since(self, industry: str, since: datetime, limit: int = 200) -> List[Signal]:
        """Most recently fetched signals for an industry."""
        stmt = (
            select(Signal)
            .where(Signal.industry == industry, Signal.fetched_at >= since)
            .order_by(Signal.fetched_at.desc(), Signal.id)
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def get_signals_by_ids(self, ids: Iterable[IdLike]) -> List[Signal]:
        uuids = [u for u in (as_uuid(i) for i in ids) if u is not None]
        if not uuids:
            return []
        return list(self.session.scalars(select(Signal).where(Signal.id.in_(uuids))))

    def get_signal_by_external_id(self, source_type: str, external_id: str) -> Optional[Signal]:
        stmt = select(Signal).where(Signal.source_type == source_type, Signal.external_id == external_id)
        return self.session.scalars(stmt).first()

    def add_signal(self, **fields) -> Signal:
        signal = Signal(**fields)
        self.session.add(signal)
        self.session.flush()
        return signal

    def refresh_signal_metrics(self, signal: Signal, metrics: Dict[str, Any]) -> Signal:
        """Only metrics and fetch time change; content stays as first stored."""
        signal.metrics = dict(metrics)
        signal.fetched_at = utcnow()
        self.session.flush()
        return signal

    # =========================================================================
    # OPPORTUNITIES
    # =========================================================================

    def add_opportunities(self, records: List[Dict[str, Any]]) -> List[Opportunity]:
        opportunities = [Opportunity(**record) for record in records]
        self.session.add_all(opportunities)
        self.session.flush()
        return opportunities

    def get_opportunity(self, opportunity_id: IdLike) -> Optional[Opportunity]:
        return self._get(Opportunity, opportunity_id)

    def list_opportunities(
        self,
        client_id: Optional[IdLike] = None,
        industry: Optional[str] = None,
        channel: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
    ) -> List[Opportunity]:
        stmt = select(Opportunity)
        if client_id:
            stmt = stmt.where(Opportunity.client_id == as_uuid(client_id))
        if industry:
            stmt = stmt.where(Opportunity.industry == industry)
        if channel:
            stmt = stmt.where(Opportunity.channel == channel)
        if status:
            stmt = stmt.where(Opportunity.status == status)
        stmt = stmt.order_by(Opportunity.score.desc(), Opportunity.created_at.desc()).limit(limit)
        return list(self.session.scalars(stmt))

    def recent_opportunity_topics(self, industry: str, since: datetime) -> List[str]:
        stmt = select(Opportunity.topic).where(
            Opportunity.industry == industry,
            Opportunity.created_at >= since,
        )
        return list(self.session.scalars(stmt))

    def set_opportunity_status(self, opportunity: Opportunity, status: str) -> Opportunity:
        opportunity.status = status
        opportunity.updated_at = utcnow()
        self.session.flush()
        return opportunity

    # =========================================================================
    # GENERATIONS
    # =========================================================================

    def add_generation(self, **fields) -> Generation:
        generation = Generation(**fields)
        self.session.add(generation)
        self.session.flush()
        return generation

    def get_generation(self, generation_id: IdLike) -> Optional[Generation]:
        return self._get(Generation, generation_id)

    def list_generations(self, opportunity_id: IdLike) -> List[Generation]:
        stmt = (
            select(Generation)
            .where(Generation.opportunity_id == as_uuid(opportunity_id))
            .order_by(Generation.created_at.desc())
        )
        return list(self.session.scalars(stmt))

    # =========================================================================
    # BRIEFS
    # =========================================================================

    def add_brief(self, **fields) -> Brief:
        brief = Brief(**fields)
        self.session.add(brief)
        self.session.flush()
        return brief

    def get_brief(self, brief_id: IdLike) -> Optional[Brief]:
        return self._get(Brief, brief_id)

    def list_briefs(
        self,
        client_id: Optional[IdLike] = None,
        status: Optional[str] = None,
        idea_id: Optional[IdLike] = None,
        limit: int = 50,
    ) -> List[Brief]:
        stmt = select(Brief)
        if client_id:
            stmt = stmt.where(Brief.client_id == as_uuid(client_id))
        if status:
            stmt = stmt.where(Brief.status == status)
        if idea_id:
            stmt = stmt.where(Brief.idea_id == as_uuid(idea_id))
        stmt = stmt.order_by(Brief.created_at.desc()).limit(limit)
        return list(self.session.scalars(stmt))

    def next_brief_generation_version(self, brief_id: IdLike, channel: str) -> int:
        stmt = select(func.max(BriefGeneration.version)).where(
            BriefGeneration.brief_id == as_uuid(brief_id),
            BriefGeneration.channel == channel,
        )
        current = self.session.scalar(stmt)
        return (current or 0) + 1

    def add_brief_generation(self, **fields) -> BriefGeneration:
        generation = BriefGeneration(**fields)
        self.session.add(generation)
        self.session.flush()
        return generation

    def list_brief_generations(self, brief_id: IdLike) -> List[BriefGeneration]:
        stmt = (
            select(BriefGeneration)
            .where(BriefGeneration.brief_id == as_uuid(brief_id))
            .order_by(BriefGeneration.channel, BriefGeneration.version.desc())
        )
        return list(self.session.scalars(stmt))

    # =========================================================================
    # ALERTS
    # =========================================================================

    def get_alert(self, alert_id: IdLike) -> Optional[Alert]:
        return self._get(Alert, alert_id)

    def get_alert_by_fingerprint(self, fingerprint: str) -> Optional[Alert]:
        return self.session.scalars(select(Alert).where(Alert.fingerprint == fingerprint)).first()

    def add_alert(self, **fields) -> Alert:
        """Insert an alert; raises IntegrityError on duplicate fingerprint."""
        alert = Alert(**fields)
        self.session.add(alert)
        self.session.flush()
        return alert

    def list_alerts(
        self,
        client_id: Optional[IdLike] = None,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        limit: int = 50,
    ) -> List[Alert]:
        stmt = select(Alert)
        if client_id:
            stmt = stmt.where(Alert.client_id == as_uuid(client_id))
        if status:
            stmt = stmt.where(Alert.status == status)
        if severity:
            stmt = stmt.where(Alert.severity == severity)
        stmt = stmt.order_by(Alert.detected_at.desc()).limit(limit)
        return list(self.session.scalars(stmt))

    # =========================================================================
    # COMMERCE / ADS METRICS
    # =========================================================================

    def get_shopify_daily_metrics(self, store_id: str, since: date) -> List[ShopifyDailyMetric]:
        stmt = (
            select(ShopifyDailyMetric)
            .where(ShopifyDailyMetric.store_id == store_id, ShopifyDailyMetric.date >= since)
            .order_by(ShopifyDailyMetric.date)
        )
        return list(self.session.scalars(stmt))

    def upsert_shopify_daily_metric(self, store_id: str, day: date, **values) -> ShopifyDailyMetric:
        stmt = select(ShopifyDailyMetric).where(
            ShopifyDailyMetric.store_id == store_id, ShopifyDailyMetric.date == day,
        )
        row = self.session.scalars(stmt).first()
        if row is None:
            row = ShopifyDailyMetric(store_id=store_id, date=day)
            self.session.add(row)
        for key, value in values.items():
            setattr(row, key, value)
        self.session.flush()
        return row

    def get_google_ads_daily_metrics(self, customer_id: str, since: date) -> List[GoogleAdsDailyMetric]:
        stmt = (
            select(GoogleAdsDailyMetric)
            .where(GoogleAdsDailyMetric.customer_id == customer_id, GoogleAdsDailyMetric.date >= since)
            .order_by(GoogleAdsDailyMetric.date)
        )
        return list(self.session.scalars(stmt))
