"""Tests for supplier reliability scoring."""

from datetime import datetime, timedelta, timezone

import pytest

from config import load_config
from supplier import SupplierAlert, SupplierData, SupplierScoring
from util import parse_iso

AS_OF = datetime(2026, 2, 26, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="module")
def scoring():
    return SupplierScoring(load_config().service("supplier"))


def _supplier(**overrides):
    values = dict(
        supplier_id="SUP-TEST",
        total_orders=100,
        fulfilled_orders=100,
        on_time_orders=100,
        defective_orders=0,
        avg_lead_time_days=10.0,
        lead_time_std_dev=2.0,
        categories=("electronics",),
        regions=("europe",),
        active_alerts=(),
    )
    values.update(overrides)
    return SupplierData(**values)


def _alert(severity, probability=0.5, alert_type="logistics"):
    return SupplierAlert(alert_type, severity, probability, f"{alert_type} alert", "2026-02-25T00:00:00.000Z")


class TestSynthesize:
    """Test synthesized supplier histories."""

    def test_deterministic(self, scoring):
        assert scoring.synthesize("SUP-001", AS_OF) == scoring.synthesize("SUP-001", AS_OF)

    def test_dependent_counts_capped(self, scoring):
        for i in range(50):
            data = scoring.synthesize(f"SUP-{i:03d}", AS_OF)
            assert 10 <= data.total_orders <= 509
            assert data.fulfilled_orders <= data.total_orders
            assert data.on_time_orders <= data.fulfilled_orders
            assert data.defective_orders <= data.fulfilled_orders

    def test_lead_time_ranges(self, scoring):
        for i in range(30):
            data = scoring.synthesize(f"SUP-{i:03d}", AS_OF)
            assert 3 <= data.avg_lead_time_days <= 28
            assert 1 <= data.lead_time_std_dev <= 9

    def test_categories_and_regions_distinct(self, scoring):
        for i in range(30):
            data = scoring.synthesize(f"SUP-{i:03d}", AS_OF)
            assert 1 <= len(data.categories) <= 3
            assert len(set(data.categories)) == len(data.categories)
            assert 1 <= len(data.regions) <= 2
            assert len(set(data.regions)) == len(data.regions)

    def test_explicit_category_and_region(self, scoring):
        data = scoring.synthesize("SUP-001", AS_OF, "chemicals", "africa")
        assert data.categories == ("chemicals",)
        assert data.regions == ("africa",)

    def test_filters_do_not_change_history(self, scoring):
        plain = scoring.synthesize("SUP-001", AS_OF)
        filtered = scoring.synthesize("SUP-001", AS_OF, "chemicals", "africa")
        assert plain.total_orders == filtered.total_orders
        assert plain.avg_lead_time_days == filtered.avg_lead_time_days

    def test_alerts_within_window(self, scoring):
        for i in range(30):
            data = scoring.synthesize(f"SUP-{i:03d}", AS_OF)
            assert len(data.active_alerts) <= 3
            for alert in data.active_alerts:
                detected = parse_iso(alert.detected_at)
                assert AS_OF - timedelta(days=7) <= detected <= AS_OF
                assert 0 <= alert.probability <= 1

    def test_alert_times_follow_as_of(self, scoring):
        later = AS_OF + timedelta(days=30)
        for i in range(30):
            first = scoring.synthesize(f"SUP-{i:03d}", AS_OF)
            second = scoring.synthesize(f"SUP-{i:03d}", later)
            assert [a.type for a in first.active_alerts] == [a.type for a in second.active_alerts]
            for a, b in zip(first.active_alerts, second.active_alerts):
                assert parse_iso(b.detected_at) - parse_iso(a.detected_at) == timedelta(days=30)


class TestRates:
    def test_rates(self, scoring):
        data = _supplier(total_orders=200, fulfilled_orders=150, on_time_orders=120, defective_orders=3)
        assert scoring.fill_rate(data) == 0.75
        assert scoring.on_time_rate(data) == 0.8
        assert scoring.defect_rate(data) == 0.02

    def test_zero_denominators(self, scoring):
        data = _supplier(total_orders=0, fulfilled_orders=0, on_time_orders=0)
        assert scoring.fill_rate(data) == 0.0
        assert scoring.on_time_rate(data) == 0.0
        assert scoring.defect_rate(data) == 0.0
        assert scoring.confidence(data) == 0.0

    def test_confidence_full(self, scoring):
        data = _supplier(total_orders=1000, fulfilled_orders=1000, on_time_orders=1000)
        assert scoring.confidence(data) == 1.0

    def test_confidence_grows_with_orders(self, scoring):
        small = scoring.confidence(_supplier(total_orders=10, fulfilled_orders=10, on_time_orders=10))
        large = scoring.confidence(_supplier(total_orders=500, fulfilled_orders=500, on_time_orders=500))
        assert small < large


class TestScore:
    """Test supplier_score(), grades and risk factors."""

    def test_perfect_supplier(self, scoring):
        data = _supplier()
        score = scoring.supplier_score(data)
        assert score == 100.0
        assert scoring.reliability_grade(score) == "A"

    def test_serious_alerts_penalized(self, scoring):
        data = _supplier(active_alerts=(_alert("high"), _alert("critical"), _alert("low")))
        # alert factor 100 - 2 * 25 = 50, weighted 0.10
        assert scoring.supplier_score(data) == 95.0

    def test_score_bounded(self, scoring):
        for i in range(30):
            data = scoring.synthesize(f"SUP-{i:03d}", AS_OF)
            assert 0 <= scoring.supplier_score(data) <= 100

    @pytest.mark.parametrize("score, grade", [
        (90, "A"),
        (89.99, "B"),
        (75, "B"),
        (60, "C"),
        (40, "D"),
        (39.99, "F"),
    ])
    def test_grade_boundaries(self, scoring, score, grade):
        assert scoring.reliability_grade(score) == grade

    def test_no_risk_factors_for_clean_supplier(self, scoring):
        assert scoring.risk_factors(_supplier()) == []

    def test_low_fill_rate(self, scoring):
        factors = scoring.risk_factors(_supplier(fulfilled_orders=40, on_time_orders=40))
        assert factors[0]["factor"] == "low_fill_rate"
        assert factors[0]["severity"] == "high"
        assert factors[0]["description"] == "Fill rate is 40%, below 80% threshold"

    def test_late_deliveries(self, scoring):
        factors = scoring.risk_factors(_supplier(on_time_orders=70))
        assert [f["factor"] for f in factors] == ["late_deliveries"]
        assert factors[0]["severity"] == "medium"

    def test_high_defect_rate(self, scoring):
        factors = scoring.risk_factors(_supplier(defective_orders=20))
        assert [f["factor"] for f in factors] == ["high_defect_rate"]
        assert factors[0]["severity"] == "high"
        assert factors[0]["description"] == "Defect rate is 20.0%, above 5% threshold"

    def test_limited_history(self, scoring):
        factors = scoring.risk_factors(_supplier(total_orders=5, fulfilled_orders=5, on_time_orders=5))
        assert [f["factor"] for f in factors] == ["limited_history"]
        assert factors[0]["severity"] == "low"

    def test_alert_factors(self, scoring):
        data = _supplier(active_alerts=(_alert("critical", alert_type="weather"), _alert("medium")))
        factors = scoring.risk_factors(data)
        assert [f["factor"] for f in factors] == ["active_weather_alert"]
        assert factors[0]["severity"] == "high"


class TestLeadTime:
    def test_forecast(self, scoring):
        forecast = scoring.lead_time_forecast(_supplier(avg_lead_time_days=10.0, lead_time_std_dev=2.0), 365)
        assert forecast["lead_time_p50"] == 10.0
        assert forecast["lead_time_p95"] == 13.29
        assert forecast["drift_direction"] == "improving"
        assert forecast["drift_magnitude"] == 0.2
        assert forecast["historical_variance"] == 4.0

    def test_p95_not_below_p50(self, scoring):
        for i in range(30):
            forecast = scoring.lead_time_forecast(scoring.synthesize(f"SUP-{i:03d}", AS_OF), 30)
            assert forecast["lead_time_p95"] >= forecast["lead_time_p50"]
            assert 0 <= forecast["drift_magnitude"] <= 1

    @pytest.mark.parametrize("std_dev, direction", [
        (3.0, "degrading"),
        (1.5, "improving"),
        (1.0, "stable"),
    ])
    def test_drift_direction(self, scoring, std_dev, direction):
        forecast = scoring.lead_time_forecast(_supplier(avg_lead_time_days=10.0, lead_time_std_dev=std_dev), 30)
        assert forecast["drift_direction"] == direction

    def test_short_horizon_smaller_drift(self, scoring):
        data = _supplier(avg_lead_time_days=10.0, lead_time_std_dev=5.0)
        assert scoring.lead_time_forecast(data, 30)["drift_magnitude"] < scoring.lead_time_forecast(data, 365)["drift_magnitude"]


class TestDisruptionAlerts:
    def test_alert_shape(self, scoring):
        data = _supplier(active_alerts=(_alert("high", 0.4),))
        alerts = scoring.disruption_alerts(data)
        assert alerts == [{
            "supplierId": "SUP-TEST",
            "alert_type": "logistics",
            "severity": "high",
            "disruption_probability": 0.4,
            "affected_categories": ["electronics"],
            "affected_regions": ["europe"],
            "detected_at": "2026-02-25T00:00:00.000Z",
            "description": "logistics alert",
        }]

    def test_risk_tolerance_thresholds(self, scoring):
        data = _supplier(active_alerts=(_alert("low", 0.05), _alert("low", 0.1), _alert("low", 0.3), _alert("low", 0.6)))
        alerts = scoring.disruption_alerts(data)
        assert len(scoring.filter_by_risk_tolerance(alerts, "low")) == 3
        assert len(scoring.filter_by_risk_tolerance(alerts, "medium")) == 2
        assert len(scoring.filter_by_risk_tolerance(alerts, "high")) == 1
