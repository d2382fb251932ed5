"""
Alert Engine

Turns detected anomalies into alert rows, one per fingerprint
(`{source}:{type}:{entity}:{YYYY-MM-DD}`), so re-running a check on the same
day never creates duplicates. The detector only inserts; acknowledge and
resolve are manual actions.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from viralhub.database.models import Alert, AlertSeverity, AlertStatus
from viralhub.database.repository import IdLike, ViralRepository, as_uuid
from viralhub.exceptions import (
    InsufficientDataError, InvalidTransitionError, NotFoundError, ValidationError,
)
from viralhub.utils import utcnow
from .anomalies import Anomaly, DailyMetrics, build_fingerprint, detect_anomalies
from .google_ads import DailyConversions, PerformanceDropCheck

if TYPE_CHECKING:
    from viralhub.integrations.config import GoogleAdsSettings, ShopifySettings

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 14
MANUAL_STATUSES = {AlertStatus.ACKNOWLEDGED.value, AlertStatus.RESOLVED.value}


@dataclass
class AlertInput:
    """Everything needed to insert one alert."""
    client_id: Optional[UUID]
    channel: str
    check_id: str
    severity: str
    title: str
    fingerprint: str
    short_description: str = ""
    impact: str = ""
    suggested_actions: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    type: str = "performance"


@dataclass
class AlertResult:
    created: bool
    alert_id: Optional[UUID] = None
    skipped: bool = False
    skip_reason: Optional[str] = None


@dataclass
class CheckRunResult:
    """Outcome of one monitoring run for a client."""
    client_id: Optional[UUID]
    channel: str
    anomalies_detected: int = 0
    alerts_created: int = 0
    duplicates: int = 0
    skipped_reason: Optional[InsufficientDataError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clientId": str(self.client_id) if self.client_id else None,
            "channel": self.channel,
            "anomaliesDetected": self.anomalies_detected,
            "alertsCreated": self.alerts_created,
            "duplicates": self.duplicates,
            "skipped": self.skipped_reason is not None,
        }


class AlertEngine:
    """Inserts deduplicated alerts."""

    def __init__(self, repository: ViralRepository):
        self.repository = repository

    def create_alert(self, alert_input: AlertInput) -> AlertResult:
        existing = self.repository.get_alert_by_fingerprint(alert_input.fingerprint)
        if existing is not None:
            logger.info(f"Alert already exists for {alert_input.fingerprint}, skipping")
            return AlertResult(created=False, alert_id=existing.id, skipped=True, skip_reason="duplicate")

        try:
            alert = self.repository.add_alert(
                client_id=alert_input.client_id,
                type=alert_input.type,
                channel=alert_input.channel,
                check_id=alert_input.check_id,
                severity=alert_input.severity,
                status=AlertStatus.OPEN.value,
                title=alert_input.title,
                short_description=alert_input.short_description,
                impact=alert_input.impact,
                suggested_actions=alert_input.suggested_actions,
                details=alert_input.details,
                fingerprint=alert_input.fingerprint,
                detected_at=utcnow(),
            )
            self.repository.commit()
        except IntegrityError:
            # Lost a race with a concurrent run for the same fingerprint
            self.repository.rollback()
            logger.info(f"Concurrent insert for {alert_input.fingerprint}, treating as duplicate")
            return AlertResult(created=False, skipped=True, skip_reason="duplicate")

        logger.info(f"Created {alert.severity} alert {alert.check_id} ({alert.id})")
        return AlertResult(created=True, alert_id=alert.id)


def _anomaly_to_alert(
    anomaly: Anomaly,
    client_id: Optional[UUID],
    channel: str,
    entity_id: str,
    today: date,
) -> AlertInput:
    return AlertInput(
        client_id=client_id,
        channel=channel,
        check_id=f"{channel}_{anomaly.type}",
        severity=anomaly.severity,
        title=anomaly.title,
        short_description=anomaly.description,
        impact=anomaly.impact,
        suggested_actions=list(anomaly.suggested_actions),
        details={
            "anomaly_type": anomaly.type,
            "current_value": anomaly.current_value,
            "previous_value": anomaly.previous_value,
            "change_percent": anomaly.change_percent,
            "entity_id": entity_id,
        },
        fingerprint=build_fingerprint(channel, anomaly.type, entity_id, today),
    )


def _record(engine: AlertEngine, result: CheckRunResult, alert_input: AlertInput) -> None:
    outcome = engine.create_alert(alert_input)
    if outcome.created:
        result.alerts_created += 1
    else:
        result.duplicates += 1


# =============================================================================
# CHECK RUNNERS
# =============================================================================

def run_shopify_anomaly_check(
    repository: ViralRepository,
    client_id: Optional[IdLike],
    settings: "ShopifySettings",
    today: Optional[date] = None,
) -> CheckRunResult:
    """Detect store anomalies over the last 14 days (ending yesterday) and alert."""
    today = today or utcnow().date()
    client_uuid = as_uuid(client_id) if client_id else None
    result = CheckRunResult(client_id=client_uuid, channel="shopify")

    rows = [
        row for row in repository.get_shopify_daily_metrics(
            settings.store_id, today - timedelta(days=LOOKBACK_DAYS),
        )
        if row.date < today
    ]
    points = [
        DailyMetrics(
            date=row.date,
            total_revenue=row.total_revenue or 0.0,
            total_orders=row.total_orders or 0,
            refund_count=row.refund_count or 0,
        )
        for row in rows
    ]

    detection = detect_anomalies(points, settings.to_thresholds())
    if detection.skipped:
        result.skipped_reason = detection.skipped_reason
        return result

    result.anomalies_detected = len(detection.anomalies)
    engine = AlertEngine(repository)
    for anomaly in detection.anomalies:
        _record(engine, result, _anomaly_to_alert(anomaly, client_uuid, "shopify", settings.store_id, today))

    logger.info(
        f"Shopify check for store {settings.store_id}: "
        f"{result.anomalies_detected} anomalies, {result.alerts_created} alerts created"
    )
    return result


def run_google_ads_check(
    repository: ViralRepository,
    client_id: Optional[IdLike],
    settings: "GoogleAdsSettings",
    today: Optional[date] = None,
) -> CheckRunResult:
    """Conversion drop check for a Google Ads account."""
    today = today or utcnow().date()
    client_uuid = as_uuid(client_id) if client_id else None
    result = CheckRunResult(client_id=client_uuid, channel="google_ads")

    rows = repository.get_google_ads_daily_metrics(
        settings.customer_id, today - timedelta(days=LOOKBACK_DAYS),
    )
    points = [
        DailyConversions(date=row.date, conversions=row.conversions or 0.0, cost=row.cost or 0.0, clicks=row.clicks or 0)
        for row in rows
    ]

    detection = PerformanceDropCheck(thresholds=settings.to_thresholds()).run(points, today)
    if detection.skipped:
        result.skipped_reason = detection.skipped_reason
        return result

    result.anomalies_detected = len(detection.anomalies)
    engine = AlertEngine(repository)
    for anomaly in detection.anomalies:
        _record(engine, result, _anomaly_to_alert(anomaly, client_uuid, "google_ads", settings.customer_id, today))

    return result


# =============================================================================
# MANUAL ACTIONS
# =============================================================================

def list_alerts(
    repository: ViralRepository,
    client_id: Optional[IdLike] = None,
    status: Optional[str] = None,
    severity: Optional[str] = None,
    limit: int = 50,
) -> List[Alert]:
    if status and status not in {s.value for s in AlertStatus}:
        raise ValidationError(f"Invalid alert status: {status}")
    if severity and severity not in {s.value for s in AlertSeverity}:
        raise ValidationError(f"Invalid alert severity: {severity}")
    return repository.list_alerts(client_id=client_id, status=status, severity=severity, limit=limit)


def update_alert_status(repository: ViralRepository, alert_id: IdLike, status: str) -> Alert:
    """Acknowledge or resolve an alert. Resolved alerts stay resolved."""
    if status not in MANUAL_STATUSES:
        raise ValidationError(f"Invalid alert status: {status}")

    alert = repository.get_alert(alert_id)
    if alert is None:
        raise NotFoundError("Alert", str(alert_id))

    if alert.status == status:
        return alert
    if alert.status == AlertStatus.RESOLVED.value:
        raise InvalidTransitionError("alert", alert.status, status)

    now = utcnow()
    alert.status = status
    if status == AlertStatus.ACKNOWLEDGED.value:
        alert.acknowledged_at = now
    else:
        alert.resolved_at = now
    alert.updated_at = now
    repository.commit()

    logger.info(f"Alert {alert.id} -> {status}")
    return alert


def serialize_alert(alert: Alert) -> Dict[str, Any]:
    return {
        "id": str(alert.id),
        "clientId": str(alert.client_id) if alert.client_id else None,
        "type": alert.type,
        "channel": alert.channel,
        "checkId": alert.check_id,
        "severity": alert.severity,
        "status": alert.status,
        "title": alert.title,
        "shortDescription": alert.short_description,
        "impact": alert.impact,
        "suggestedActions": alert.suggested_actions or [],
        "details": alert.details or {},
        "fingerprint": alert.fingerprint,
        "detectedAt": alert.detected_at.isoformat() if alert.detected_at else None,
        "acknowledgedAt": alert.acknowledged_at.isoformat() if alert.acknowledged_at else None,
        "resolvedAt": alert.resolved_at.isoformat() if alert.resolved_at else None,
    }
