"""
Shopify Anomaly Detection

Compares the last 7 daily points with the 7 before them:

- revenue_crash / revenue_drop   (critical / high)
- orders_crash / orders_drop     (critical / high)
- aov_drop                       (medium)
- high_refund_rate               (high, needs >= 10 orders this week)

Thresholds are percentages. Fewer than 14 points, or a previous week below
the order baseline, yields no anomalies with an InsufficientDataError reason.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from viralhub.exceptions import InsufficientDataError

logger = logging.getLogger(__name__)

WINDOW_DAYS = 7
MIN_POINTS = WINDOW_DAYS * 2
MIN_REFUND_ORDERS = 10


@dataclass
class AnomalyThresholds:
    """Drop thresholds in percent."""
    revenue_drop_warning: float = 20
    revenue_drop_critical: float = 40
    orders_drop_warning: float = 25
    orders_drop_critical: float = 50
    aov_drop_warning: float = 15
    high_refund_rate: float = 10
    min_baseline: int = 10


@dataclass
class DailyMetrics:
    """One day of store aggregates."""
    date: date
    total_revenue: float = 0.0
    total_orders: int = 0
    refund_count: int = 0


@dataclass
class Anomaly:
    type: str
    severity: str
    title: str
    description: str
    impact: str
    current_value: float
    previous_value: float
    change_percent: float
    suggested_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "current_value": self.current_value,
            "previous_value": self.previous_value,
            "change_percent": self.change_percent,
            "suggested_actions": list(self.suggested_actions),
        }


@dataclass
class DetectionResult:
    anomalies: List[Anomaly] = field(default_factory=list)
    skipped_reason: Optional[InsufficientDataError] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


def percent_change(current: float, previous: float) -> float:
    """Change in percent; 0 when there is no previous value."""
    if not previous:
        return 0.0
    return (current - previous) / previous * 100


def round_percent(value: float) -> int:
    """Whole percent, halves rounded up."""
    return int(math.floor(value + 0.5))


def build_fingerprint(source: str, anomaly_type: str, entity_id: str, day: date) -> str:
    """Dedup key: one alert per source, type, entity and day."""
    return f"{source}:{anomaly_type}:{entity_id}:{day.isoformat()}"


def _insufficient(message: str, **details) -> DetectionResult:
    logger.debug(f"Anomaly detection skipped: {message}")
    return DetectionResult(skipped_reason=InsufficientDataError(message, details))


def detect_anomalies(
    points: Sequence[DailyMetrics],
    thresholds: Optional[AnomalyThresholds] = None,
) -> DetectionResult:
    """
    Detect week-over-week anomalies.

    Args:
        points: Daily metrics, any order
        thresholds: Percent thresholds (defaults if omitted)

    Returns:
        DetectionResult with anomalies, or a skip reason
    """
    thresholds = thresholds or AnomalyThresholds()
    ordered = sorted(points, key=lambda p: p.date)

    if len(ordered) < MIN_POINTS:
        return _insufficient("Not enough data points for comparison", points=len(ordered))

    last_week = ordered[-WINDOW_DAYS:]
    previous_week = ordered[-MIN_POINTS:-WINDOW_DAYS]

    last_revenue = sum(p.total_revenue or 0 for p in last_week)
    previous_revenue = sum(p.total_revenue or 0 for p in previous_week)
    last_orders = sum(p.total_orders or 0 for p in last_week)
    previous_orders = sum(p.total_orders or 0 for p in previous_week)
    last_refunds = sum(p.refund_count or 0 for p in last_week)

    if previous_orders < thresholds.min_baseline:
        return _insufficient(
            "Previous week orders below minimum baseline",
            previous_orders=previous_orders,
            min_baseline=thresholds.min_baseline,
        )

    revenue_change = percent_change(last_revenue, previous_revenue)
    orders_change = percent_change(last_orders, previous_orders)
    last_aov = last_revenue / last_orders if last_orders else 0.0
    previous_aov = previous_revenue / previous_orders if previous_orders else 0.0
    aov_change = percent_change(last_aov, previous_aov)
    refund_rate = last_refunds / last_orders * 100 if last_orders else 0.0

    anomalies: List[Anomaly] = []

    # Revenue
    revenue_impact = f"From {previous_revenue:.0f} to {last_revenue:.0f} per week"
    revenue_description = f"Revenue is down {abs(revenue_change):.0f}% compared to last week"
    if revenue_change <= -thresholds.revenue_drop_critical:
        anomalies.append(Anomaly(
            type="revenue_crash",
            severity="critical",
            title="Revenue crash detected",
            description=revenue_description,
            impact=revenue_impact,
            current_value=last_revenue,
            previous_value=previous_revenue,
            change_percent=revenue_change,
            suggested_actions=[
                "Verify the store is working correctly",
                "Check that payments are being processed",
                "Look for stock problems",
                "Review price changes or competitor actions",
            ],
        ))
    elif revenue_change <= -thresholds.revenue_drop_warning:
        anomalies.append(Anomaly(
            type="revenue_drop",
            severity="high",
            title="Significant revenue drop",
            description=revenue_description,
            impact=revenue_impact,
            current_value=last_revenue,
            previous_value=previous_revenue,
            change_percent=revenue_change,
            suggested_actions=[
                "Analyze which product categories declined",
                "Check for seasonal factors",
                "See whether marketing campaigns were paused",
                "Compare conversion rate with the previous period",
            ],
        ))

    # Orders
    orders_impact = f"From {previous_orders} to {last_orders} orders per week"
    orders_description = f"Order count is down {abs(orders_change):.0f}%"
    if orders_change <= -thresholds.orders_drop_critical:
        anomalies.append(Anomaly(
            type="orders_crash",
            severity="critical",
            title="Orders crash detected",
            description=orders_description,
            impact=orders_impact,
            current_value=last_orders,
            previous_value=previous_orders,
            change_percent=orders_change,
            suggested_actions=[
                "Check that checkout works",
                "Look for technical problems",
                "Analyze traffic to the store",
                "Test the full purchase flow",
            ],
        ))
    elif orders_change <= -thresholds.orders_drop_warning:
        anomalies.append(Anomaly(
            type="orders_drop",
            severity="high",
            title="Significant orders drop",
            description=orders_description,
            impact=orders_impact,
            current_value=last_orders,
            previous_value=previous_orders,
            change_percent=orders_change,
            suggested_actions=[
                "Analyze conversion rate per channel",
                "Check bounce rate on product pages",
                "Review reported UX problems",
            ],
        ))

    # Average order value
    if aov_change <= -thresholds.aov_drop_warning:
        anomalies.append(Anomaly(
            type="aov_drop",
            severity="medium",
            title="Average order value dropped",
            description=f"Average order value is down {abs(aov_change):.0f}%",
            impact=f"From {previous_aov:.2f} to {last_aov:.2f} per order",
            current_value=last_aov,
            previous_value=previous_aov,
            change_percent=aov_change,
            suggested_actions=[
                "Analyze which products are selling",
                "Check for active discount campaigns",
                "Review cross-sell and upsell performance",
                "Compare product mix with the previous period",
            ],
        ))

    # Refunds
    if refund_rate >= thresholds.high_refund_rate and last_orders >= MIN_REFUND_ORDERS:
        anomalies.append(Anomaly(
            type="high_refund_rate",
            severity="high",
            title="High refund rate",
            description=f"{refund_rate:.1f}% of orders are refunded",
            impact=f"{last_refunds} refunds on {last_orders} orders this week",
            current_value=refund_rate,
            previous_value=thresholds.high_refund_rate,
            change_percent=refund_rate - thresholds.high_refund_rate,
            suggested_actions=[
                "Analyze refund reasons per product",
                "Check product descriptions and photos",
                "Look for quality problems",
                "Compare with the industry average",
            ],
        ))

    if anomalies:
        logger.info(f"Detected {len(anomalies)} anomalies: {[a.type for a in anomalies]}")

    return DetectionResult(anomalies=anomalies)
