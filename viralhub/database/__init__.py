"""
Viral Hub Database Layer

Usage:
    from viralhub.database import init_db, get_session_factory, ViralRepository

    init_db()

    with get_session_factory()() as db:
        repo = ViralRepository(db)
        signals = repo.get_signals_since("marketing", since)
"""

from .models import (
    Base,
    Client,
    Signal,
    Opportunity,
    Generation,
    Brief,
    BriefGeneration,
    Alert,
    ShopifyDailyMetric,
    GoogleAdsDailyMetric,
    Channel,
    OpportunityStatus,
    BriefStatus,
    AlertSeverity,
    AlertStatus,
)
from .session import (
    get_database_url,
    create_db_engine,
    get_engine,
    get_session_factory,
    get_db,
    init_db,
    check_db_connection,
)
from .repository import ViralRepository, as_uuid

__all__ = [
    "Base",
    "Client",
    "Signal",
    "Opportunity",
    "Generation",
    "Brief",
    "BriefGeneration",
    "Alert",
    "ShopifyDailyMetric",
    "GoogleAdsDailyMetric",
    "Channel",
    "OpportunityStatus",
    "BriefStatus",
    "AlertSeverity",
    "AlertStatus",
    "get_database_url",
    "create_db_engine",
    "get_engine",
    "get_session_factory",
    "get_db",
    "init_db",
    "check_db_connection",
    "ViralRepository",
    "as_uuid",
]
