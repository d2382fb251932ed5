"""
Tests for the alert engine and monitoring check runners.
"""

from datetime import date, timedelta

import pytest

from viralhub.database import GoogleAdsDailyMetric
from viralhub.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from viralhub.integrations import GoogleAdsSettings, ShopifySettings
from viralhub.monitoring import (
    AlertEngine,
    AlertInput,
    list_alerts,
    run_google_ads_check,
    run_shopify_anomaly_check,
    serialize_alert,
    update_alert_status,
)

TODAY = date(2026, 3, 10)


def seed_store(repository, store_id="store-1", last_week_revenue=500.0, last_week_orders=5):
    for offset in range(1, 15):
        recent = offset <= 7
        repository.upsert_shopify_daily_metric(
            store_id,
            TODAY - timedelta(days=offset),
            total_revenue=last_week_revenue if recent else 1000.0,
            total_orders=last_week_orders if recent else 10,
            refund_count=0,
        )
    repository.commit()


def seed_ads(repository, customer_id="123-456", previous=10.0, current=3.0):
    for offset in range(1, 15):
        repository.session.add(GoogleAdsDailyMetric(
            customer_id=customer_id,
            date=TODAY - timedelta(days=offset),
            conversions=current if offset <= 7 else previous,
            cost=50.0,
            clicks=200,
        ))
    repository.commit()


def alert_input(fingerprint="shopify:revenue_crash:store-1:2026-03-10", severity="critical"):
    return AlertInput(
        client_id=None,
        channel="shopify",
        check_id="shopify_revenue_crash",
        severity=severity,
        title="Revenue crash detected",
        fingerprint=fingerprint,
    )


class TestAlertEngine:

    def test_creates_open_alert(self, repository):
        result = AlertEngine(repository).create_alert(alert_input())

        assert result.created is True
        alert = repository.get_alert(result.alert_id)
        assert alert.status == "open"
        assert alert.detected_at is not None

    def test_same_fingerprint_is_duplicate(self, repository):
        engine = AlertEngine(repository)
        first = engine.create_alert(alert_input())

        second = engine.create_alert(alert_input())

        assert second.created is False
        assert second.skip_reason == "duplicate"
        assert second.alert_id == first.alert_id
        assert len(list_alerts(repository)) == 1


class TestShopifyCheck:

    def test_creates_alerts_once_per_day(self, repository, add_client):
        client = add_client(settings={"shopify": {"storeId": "store-1"}})
        seed_store(repository)
        settings = ShopifySettings(store_id="store-1")

        first = run_shopify_anomaly_check(repository, str(client.id), settings, today=TODAY)
        second = run_shopify_anomaly_check(repository, str(client.id), settings, today=TODAY)

        assert (first.anomalies_detected, first.alerts_created, first.duplicates) == (2, 2, 0)
        assert (second.alerts_created, second.duplicates) == (0, 2)
        alerts = list_alerts(repository, client_id=str(client.id))
        assert {a.check_id for a in alerts} == {"shopify_revenue_crash", "shopify_orders_crash"}
        assert {a.fingerprint for a in alerts} == {
            "shopify:revenue_crash:store-1:2026-03-10",
            "shopify:orders_crash:store-1:2026-03-10",
        }

    def test_next_day_alerts_again(self, repository):
        seed_store(repository)
        settings = ShopifySettings(store_id="store-1")
        run_shopify_anomaly_check(repository, None, settings, today=TODAY)

        # Tomorrow's window ends with today's row
        repository.upsert_shopify_daily_metric("store-1", TODAY, total_revenue=500.0, total_orders=5)
        repository.commit()
        result = run_shopify_anomaly_check(repository, None, settings, today=TODAY + timedelta(days=1))

        assert result.alerts_created == result.anomalies_detected > 0

    def test_skips_without_history(self, repository):
        result = run_shopify_anomaly_check(repository, None, ShopifySettings(store_id="empty"), today=TODAY)

        assert result.to_dict() == {
            "clientId": None,
            "channel": "shopify",
            "anomaliesDetected": 0,
            "alertsCreated": 0,
            "duplicates": 0,
            "skipped": True,
        }

    def test_client_thresholds_apply(self, repository):
        seed_store(repository, last_week_revenue=900.0, last_week_orders=10)

        lenient = run_shopify_anomaly_check(repository, None, ShopifySettings(store_id="store-1"), today=TODAY)
        strict = run_shopify_anomaly_check(
            repository, None, ShopifySettings(store_id="store-1", revenueDropWarning=5), today=TODAY,
        )

        assert lenient.anomalies_detected == 0
        assert strict.anomalies_detected == 1


class TestGoogleAdsCheck:

    def test_conversion_drop_alert(self, repository):
        seed_ads(repository)

        result = run_google_ads_check(repository, None, GoogleAdsSettings(customer_id="123-456"), today=TODAY)

        assert result.alerts_created == 1
        [alert] = list_alerts(repository, severity="critical")
        assert alert.check_id == "google_ads_performance_drop"
        assert alert.fingerprint == "google_ads:performance_drop:123-456:2026-03-10"
        assert alert.details["change_percent"] == -70

    def test_no_previous_conversions(self, repository):
        seed_ads(repository, previous=0.0, current=0.0)

        result = run_google_ads_check(repository, None, GoogleAdsSettings(customer_id="123-456"), today=TODAY)

        assert result.skipped_reason is not None
        assert list_alerts(repository) == []


class TestManualActions:

    def _alert(self, repository):
        return repository.get_alert(AlertEngine(repository).create_alert(alert_input()).alert_id)

    def test_acknowledge_then_resolve(self, repository):
        alert = self._alert(repository)

        acknowledged = update_alert_status(repository, str(alert.id), "acknowledged")
        assert acknowledged.acknowledged_at is not None

        resolved = update_alert_status(repository, str(alert.id), "resolved")
        assert resolved.status == "resolved"
        assert resolved.resolved_at is not None

    def test_resolved_is_terminal(self, repository):
        alert = self._alert(repository)
        update_alert_status(repository, str(alert.id), "resolved")

        with pytest.raises(InvalidTransitionError):
            update_alert_status(repository, str(alert.id), "acknowledged")
        assert update_alert_status(repository, str(alert.id), "resolved").status == "resolved"

    def test_only_manual_statuses(self, repository):
        alert = self._alert(repository)

        with pytest.raises(ValidationError):
            update_alert_status(repository, str(alert.id), "open")

    def test_unknown_alert(self, repository):
        with pytest.raises(NotFoundError):
            update_alert_status(repository, "00000000-0000-0000-0000-000000000004", "resolved")

    def test_list_filters_validated(self, repository):
        with pytest.raises(ValidationError):
            list_alerts(repository, status="snoozed")
        with pytest.raises(ValidationError):
            list_alerts(repository, severity="urgent")

    def test_serialized_shape(self, repository):
        data = serialize_alert(self._alert(repository))

        assert data["checkId"] == "shopify_revenue_crash"
        assert data["status"] == "open"
        assert data["suggestedActions"] == []
        assert data["resolvedAt"] is None
