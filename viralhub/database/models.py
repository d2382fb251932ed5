"""
SQLAlchemy Models for Viral Hub

Design Principles:
1. Flat relational tables keyed by UUID
2. Status fields are plain strings; transitions are enforced in code
3. Signals are immutable once stored (only metrics refresh)
4. Briefs are append-only: new versions supersede, never overwrite
5. Alerts are deduplicated by a unique fingerprint
"""

import enum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Date, Text,
    ForeignKey, Index, CheckConstraint, UniqueConstraint,
    JSON, Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

from viralhub.utils import utcnow

Base = declarative_base()


# =============================================================================
# ENUMS
# =============================================================================

class Channel(enum.Enum):
    """Content channel an opportunity targets"""
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    BLOG = "blog"


class OpportunityStatus(enum.Enum):
    """Lifecycle of an opportunity (forward only, archive from anywhere)"""
    NEW = "new"
    SHORTLISTED = "shortlisted"
    GENERATED = "generated"
    ARCHIVED = "archived"


class BriefStatus(enum.Enum):
    """Lifecycle of a canonical brief"""
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class AlertSeverity(enum.Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertStatus(enum.Enum):
    """Detector only creates OPEN; the rest are manual actions"""
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


# =============================================================================
# CLIENTS
# =============================================================================

class Client(Base):
    """Agency client; integration settings live in the JSON blob"""
    __tablename__ = "clients"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)

    # Validated through viralhub.integrations.parse_client_settings
    settings = Column(JSON, default=dict)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# =============================================================================
# VIRAL PIPELINE
# =============================================================================

class Signal(Base):
    """Normalized external content item (Reddit post, etc.)"""
    __tablename__ = "viral_signals"

    id = Column(Uuid, primary_key=True, default=uuid4)

    source_type = Column(String(50), nullable=False)   # reddit
    external_id = Column(String(255), nullable=False)
    url = Column(String(2000))
    title = Column(String(500), nullable=False)
    author = Column(String(255))
    community = Column(String(255))                    # subreddit
    created_at_external = Column(DateTime)
    raw_excerpt = Column(Text)
    industry = Column(String(255), index=True)

    # {"upvotes", "comments", "upvote_ratio", "velocity"}
    metrics = Column(JSON, default=dict)

    fetched_at = Column(DateTime, default=utcnow, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("source_type", "external_id", name="uq_signal_source_external"),
        Index("idx_signals_industry_fetched", "industry", "fetched_at"),
    )

    @property
    def upvotes(self) -> int:
        return int((self.metrics or {}).get("upvotes") or 0)

    @property
    def comments(self) -> int:
        return int((self.metrics or {}).get("comments") or 0)

    @property
    def velocity(self) -> float:
        return float((self.metrics or {}).get("velocity") or 0)


class Opportunity(Base):
    """Scored, channel-targeted content idea derived from a signal cluster"""
    __tablename__ = "viral_opportunities"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True)

    industry = Column(String(255), nullable=False)
    channel = Column(String(20), nullable=False)
    topic = Column(String(500), nullable=False)
    angle = Column(Text)
    hook = Column(Text)
    reasoning = Column(Text)

    score = Column(Integer, nullable=False, default=0)
    score_breakdown = Column(JSON, default=dict)
    source_signal_ids = Column(JSON, default=list)   # list of signal UUID strings
    seo_data = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default=OpportunityStatus.NEW.value)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    generations = relationship("Generation", back_populates="opportunity", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("score >= 0 AND score <= 100", name="ck_opportunity_score_range"),
        Index("idx_opportunities_filters", "industry", "channel", "status"),
    )


class Generation(Base):
    """Content package generated for an opportunity + channel"""
    __tablename__ = "viral_generations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    opportunity_id = Column(Uuid, ForeignKey("viral_opportunities.id"), nullable=False, index=True)

    task = Column(String(100), nullable=False)   # viral_ig_package, viral_youtube_script, ...
    output = Column(JSON, default=dict)
    model_id = Column(String(100))
    tokens = Column(JSON, default=dict)
    created_by = Column(String(64))

    created_at = Column(DateTime, default=utcnow)

    opportunity = relationship("Opportunity", back_populates="generations")


class Brief(Base):
    """Canonical content brief (append-only versions)"""
    __tablename__ = "canonical_briefs"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True)
    idea_id = Column(Uuid, ForeignKey("viral_opportunities.id"), nullable=True)

    brief = Column(JSON, nullable=False)
    evidence = Column(JSON, default=list)
    source_date_range = Column(JSON, nullable=True)   # {"from": iso, "to": iso}
    industry = Column(String(255))

    status = Column(String(20), nullable=False, default=BriefStatus.DRAFT.value, index=True)
    approved_by = Column(String(64))
    approved_at = Column(DateTime)
    rejection_reason = Column(Text)
    superseded_by = Column(Uuid, ForeignKey("canonical_briefs.id"), nullable=True)
    created_by = Column(String(64))

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    generations = relationship("BriefGeneration", back_populates="brief", cascade="all, delete-orphan")


class BriefGeneration(Base):
    """Channel content produced from an approved brief, versioned per channel"""
    __tablename__ = "brief_generations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    brief_id = Column(Uuid, ForeignKey("canonical_briefs.id"), nullable=False, index=True)

    channel = Column(String(20), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    output = Column(JSON, default=dict)
    model_id = Column(String(100))
    tokens = Column(JSON, default=dict)
    created_by = Column(String(64))

    created_at = Column(DateTime, default=utcnow)

    brief = relationship("Brief", back_populates="generations")

    __table_args__ = (
        UniqueConstraint("brief_id", "channel", "version", name="uq_brief_generation_version"),
    )


# =============================================================================
# MONITORING
# =============================================================================

class Alert(Base):
    """Anomaly alert; one row per fingerprint"""
    __tablename__ = "alerts"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True, index=True)

    type = Column(String(50), nullable=False)       # performance
    channel = Column(String(50), nullable=False)    # shopify, google_ads
    check_id = Column(String(100), nullable=False)  # shopify_revenue_crash
    severity = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=AlertStatus.OPEN.value)

    title = Column(String(500), nullable=False)
    short_description = Column(Text)
    impact = Column(Text)
    suggested_actions = Column(JSON, default=list)
    details = Column(JSON, default=dict)

    fingerprint = Column(String(500), nullable=False, unique=True)

    detected_at = Column(DateTime, default=utcnow)
    acknowledged_at = Column(DateTime)
    resolved_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ShopifyDailyMetric(Base):
    """Daily Shopify aggregates written by the sync job"""
    __tablename__ = "shopify_daily_metrics"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True)
    store_id = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)

    total_revenue = Column(Float, default=0.0)
    total_orders = Column(Integer, default=0)
    refund_count = Column(Integer, default=0)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("store_id", "date", name="uq_shopify_store_date"),
    )


class GoogleAdsDailyMetric(Base):
    """Daily Google Ads account aggregates"""
    __tablename__ = "google_ads_daily_metrics"

    id = Column(Uuid, primary_key=True, default=uuid4)
    client_id = Column(Uuid, ForeignKey("clients.id"), nullable=True)
    customer_id = Column(String(64), nullable=False)
    date = Column(Date, nullable=False)

    conversions = Column(Float, default=0.0)
    cost = Column(Float, default=0.0)
    clicks = Column(Integer, default=0)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("customer_id", "date", name="uq_google_ads_customer_date"),
    )
