"""
Google Ads Performance Drop Check

Conversions over the last 7 days against the 7 before:

- previous period without conversions -> nothing to compare, skip
- zero current conversions           -> critical ("no conversions")
- drop >= critical threshold (50%)   -> critical
- drop >= warning threshold (25%)    -> high
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Optional, Sequence

from viralhub.exceptions import InsufficientDataError
from .anomalies import Anomaly, DetectionResult, round_percent

logger = logging.getLogger(__name__)


@dataclass
class PerformanceDropThresholds:
    """Conversion drop thresholds in percent."""
    warning: float = 25
    critical: float = 50


@dataclass
class DailyConversions:
    date: date
    conversions: float = 0.0
    cost: float = 0.0
    clicks: int = 0


@dataclass
class PeriodTotals:
    conversions: float = 0.0
    cost: float = 0.0
    clicks: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"conversions": self.conversions, "cost": self.cost, "clicks": self.clicks}


def _totals(points: Sequence[DailyConversions]) -> PeriodTotals:
    totals = PeriodTotals()
    for point in points:
        totals.conversions += point.conversions or 0
        totals.cost += point.cost or 0
        totals.clicks += point.clicks or 0
    return totals


@dataclass
class PerformanceDropCheck:
    """Week-over-week conversion drop for one Google Ads account."""

    thresholds: PerformanceDropThresholds = field(default_factory=PerformanceDropThresholds)
    check_id: str = "performance_drop"

    def run(self, points: Sequence[DailyConversions], today: date) -> DetectionResult:
        """
        Args:
            points: Daily conversions covering at least the last 14 days
            today: Reference day; the current period ends yesterday
        """
        current_start = today - timedelta(days=7)
        previous_start = today - timedelta(days=14)

        current = _totals([p for p in points if current_start <= p.date < today])
        previous = _totals([p for p in points if previous_start <= p.date < current_start])

        if previous.conversions == 0:
            logger.debug("No conversions in previous period, skipping check")
            return DetectionResult(skipped_reason=InsufficientDataError(
                "No conversions in previous period to compare against",
                {"current_conversions": current.conversions},
            ))

        change = (current.conversions - previous.conversions) / previous.conversions * 100
        change_percent = round_percent(change)

        if current.conversions == 0:
            logger.warning(f"No conversions in current period (previous: {previous.conversions:.0f})")
            return DetectionResult(anomalies=[Anomaly(
                type=self.check_id,
                severity="critical",
                title="Google Ads: no conversions",
                description=f"0 conversions in the last 7 days (was {previous.conversions:.0f} the week before)",
                impact=(
                    f"There were no conversions in the last 7 days against "
                    f"{previous.conversions:.0f} the previous week."
                ),
                current_value=0,
                previous_value=previous.conversions,
                change_percent=-100,
                suggested_actions=[
                    "Verify conversion tracking works",
                    "Check that campaigns are active and have budget",
                    "Review whether bids are set too low",
                    "Check that landing pages load",
                ],
            )])

        if change <= -self.thresholds.critical:
            severity, title = "critical", "Google Ads: severe performance drop"
            actions = [
                "Analyze which campaigns dropped the most",
                "Check whether budget limits were reached",
                "Look for negative quality score changes",
                "Compare with seasonal patterns",
            ]
        elif change <= -self.thresholds.warning:
            severity, title = "high", "Google Ads: performance drop"
            actions = [
                "See which campaigns or ad groups dropped the most",
                "Check whether this fits a seasonal pattern",
                "Review recent campaign changes",
                "Monitor the trend over the coming days",
            ]
        else:
            logger.debug(f"No performance drop detected ({change_percent}%)")
            return DetectionResult()

        logger.info(f"Conversion drop {change_percent}% ({severity})")
        return DetectionResult(anomalies=[Anomaly(
            type=self.check_id,
            severity=severity,
            title=title,
            description=f"Conversions {change_percent}% compared to last week",
            impact=(
                f"Conversions went from {previous.conversions:.1f} to "
                f"{current.conversions:.1f} ({change_percent}%)"
            ),
            current_value=current.conversions,
            previous_value=previous.conversions,
            change_percent=change_percent,
            suggested_actions=actions,
        )])
