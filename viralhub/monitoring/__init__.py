"""
Monitoring - anomaly detection and deduplicated alerting.
"""

from .anomalies import (
    AnomalyThresholds,
    DailyMetrics,
    Anomaly,
    DetectionResult,
    detect_anomalies,
    build_fingerprint,
    percent_change,
)
from .google_ads import (
    PerformanceDropThresholds,
    DailyConversions,
    PerformanceDropCheck,
)
from .alerts import (
    AlertInput,
    AlertResult,
    AlertEngine,
    CheckRunResult,
    run_shopify_anomaly_check,
    run_google_ads_check,
    list_alerts,
    update_alert_status,
    serialize_alert,
)

__all__ = [
    "AnomalyThresholds",
    "DailyMetrics",
    "Anomaly",
    "DetectionResult",
    "detect_anomalies",
    "build_fingerprint",
    "percent_change",
    "PerformanceDropThresholds",
    "DailyConversions",
    "PerformanceDropCheck",
    "AlertInput",
    "AlertResult",
    "AlertEngine",
    "CheckRunResult",
    "run_shopify_anomaly_check",
    "run_google_ads_check",
    "list_alerts",
    "update_alert_status",
    "serialize_alert",
]
