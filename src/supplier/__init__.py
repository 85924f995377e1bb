"""Supplier reliability scoring.

Synthesizes order history and active alerts per supplier id, then derives
fill/on-time/defect rates, a weighted reliability score with letter grade,
lead-time forecasts and filtered disruption alerts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from config import ServiceConfig
from freshness import blended_confidence
from scoring import ScoreFactor, coefficient_of_variation, composite_score, upper_percentile
from synth import Stream, capped
from util import round_half_up, to_iso_millis


@dataclass(frozen=True)
class SupplierAlert:
    type: str
    severity: str
    probability: float
    description: str
    detected_at: str


@dataclass(frozen=True)
class SupplierData:
    """Order history and alert state for one supplier.

    Attributes:
        supplier_id: Supplier identifier
        total_orders: Orders placed
        fulfilled_orders: Orders fulfilled (<= total_orders)
        on_time_orders: Fulfilled orders delivered on time (<= fulfilled_orders)
        defective_orders: Fulfilled orders with defects (<= fulfilled_orders)
        avg_lead_time_days: Mean lead time
        lead_time_std_dev: Lead time standard deviation
        categories: Product categories supplied
        regions: Regions served
        active_alerts: Current disruption alerts
    """

    supplier_id: str
    total_orders: int
    fulfilled_orders: int
    on_time_orders: int
    defective_orders: int
    avg_lead_time_days: float
    lead_time_std_dev: float
    categories: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    active_alerts: tuple[SupplierAlert, ...] = field(default_factory=tuple)


def _rate(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return round_half_up(numerator / denominator, 2)


class SupplierScoring:
    """Reliability scoring, forecasting and alerting for suppliers."""

    def __init__(self, config: ServiceConfig):
        self.config = config
        self._grade_scale = config.scale("reliability_grade")
        self._drift_scale = config.scale("drift_direction")

    # ------------------------------------------------------------------ #
    # Synthesis
    # ------------------------------------------------------------------ #

    def synthesize(
        self,
        supplier_id: str,
        as_of: datetime,
        category: Optional[str] = None,
        region: Optional[str] = None,
    ) -> SupplierData:
        """Generate a supplier's order history deterministically.

        Only alert detection times depend on ``as_of``; they fall within the
        configured window before it.
        """
        stream = Stream.for_key("supplier", supplier_id)
        s = self.config.setting

        total = stream.integer("total_orders", 10, 509)
        fulfilled = int(capped(math.floor(total * stream.uniform("fill_pct", 0.7, 1.0)), total))
        on_time = int(capped(math.floor(fulfilled * stream.uniform("on_time_pct", 0.6, 1.0)), fulfilled))
        defective = int(capped(math.floor(fulfilled * stream.uniform("defect_pct", 0.0, 0.15)), fulfilled))

        if category:
            categories = (category,)
        else:
            pool = self.config.pool("categories")
            categories = tuple(stream.distinct("categories", pool, stream.integer("category_count", 1, 3)))
        if region:
            regions = (region,)
        else:
            pool = self.config.pool("regions")
            regions = tuple(stream.distinct("regions", pool, stream.integer("region_count", 1, 2)))

        alerts = []
        window = timedelta(days=s("alert_window_days", 7))
        for i in range(stream.count("alert_count", s("max_alerts", 3))):
            alert_type = stream.choice(f"alert_type:{i}", self.config.pool("alert_types"))
            alerts.append(SupplierAlert(
                type=alert_type,
                severity=stream.choice(f"alert_severity:{i}", self.config.pool("alert_severities")),
                probability=stream.uniform(f"alert_probability:{i}", 0, 1, 2),
                description=f"{alert_type} disruption risk detected for supplier {supplier_id}",
                detected_at=to_iso_millis(as_of - window * stream.draw(f"alert_detected:{i}")),
            ))

        return SupplierData(
            supplier_id=supplier_id,
            total_orders=total,
            fulfilled_orders=fulfilled,
            on_time_orders=on_time,
            defective_orders=defective,
            avg_lead_time_days=stream.uniform("avg_lead_time", 3, 28, 2),
            lead_time_std_dev=stream.uniform("lead_time_std", 1, 9, 2),
            categories=categories,
            regions=regions,
            active_alerts=tuple(alerts),
        )

    # ------------------------------------------------------------------ #
    # Rates and confidence
    # ------------------------------------------------------------------ #

    def fill_rate(self, data: SupplierData) -> float:
        return _rate(data.fulfilled_orders, data.total_orders)

    def on_time_rate(self, data: SupplierData) -> float:
        return _rate(data.on_time_orders, data.fulfilled_orders)

    def defect_rate(self, data: SupplierData) -> float:
        return _rate(data.defective_orders, data.fulfilled_orders)

    def confidence(self, data: SupplierData) -> float:
        if data.total_orders == 0:
            return 0.0
        return blended_confidence(
            data.total_orders,
            self.config.setting("confidence_reference_orders", 1000),
            data.fulfilled_orders / data.total_orders,
        )

    # ------------------------------------------------------------------ #
    # Scoring
    # ------------------------------------------------------------------ #

    def _serious_alerts(self, data: SupplierData) -> list[SupplierAlert]:
        return [a for a in data.active_alerts if a.severity in ("high", "critical")]

    def score_factors(self, data: SupplierData) -> list[ScoreFactor]:
        penalty = self.config.setting("alert_penalty_per_alert", 25)
        alert_score = max(0, 100 - len(self._serious_alerts(data)) * penalty)
        w = self.config.weight
        return [
            ScoreFactor("fill_rate", self.fill_rate(data) * 100, w("fill_rate")),
            ScoreFactor("on_time_rate", self.on_time_rate(data) * 100, w("on_time_rate")),
            ScoreFactor("defect_rate", (1 - self.defect_rate(data)) * 100, w("defect_rate")),
            ScoreFactor("alert_penalty", alert_score, w("alert_penalty")),
        ]

    def supplier_score(self, data: SupplierData) -> float:
        return composite_score(self.score_factors(data))

    def reliability_grade(self, score: float) -> str:
        return self._grade_scale.classify(score)

    def risk_factors(self, data: SupplierData) -> list[dict[str, str]]:
        s = self.config.setting
        factors = []

        fill_rate = self.fill_rate(data)
        if fill_rate < s("low_fill_rate", 0.8):
            factors.append({
                "factor": "low_fill_rate",
                "severity": "high" if fill_rate < s("severe_fill_rate", 0.5) else "medium",
                "description": f"Fill rate is {fill_rate * 100:.0f}%, below 80% threshold",
            })

        on_time_rate = self.on_time_rate(data)
        if on_time_rate < s("late_delivery_rate", 0.85):
            factors.append({
                "factor": "late_deliveries",
                "severity": "high" if on_time_rate < s("severe_late_delivery_rate", 0.6) else "medium",
                "description": f"On-time delivery rate is {on_time_rate * 100:.0f}%, below 85% threshold",
            })

        defect_rate = self.defect_rate(data)
        if defect_rate > s("high_defect_rate", 0.05):
            factors.append({
                "factor": "high_defect_rate",
                "severity": "high" if defect_rate > s("severe_defect_rate", 0.15) else "medium",
                "description": f"Defect rate is {defect_rate * 100:.1f}%, above 5% threshold",
            })

        if data.total_orders < s("limited_history_orders", 10):
            factors.append({
                "factor": "limited_history",
                "severity": "low",
                "description": f"Only {data.total_orders} orders on record, limited data for assessment",
            })

        for alert in self._serious_alerts(data):
            factors.append({
                "factor": f"active_{alert.type}_alert",
                "severity": "high" if alert.severity == "critical" else "medium",
                "description": alert.description,
            })
        return factors

    # ------------------------------------------------------------------ #
    # Lead time
    # ------------------------------------------------------------------ #

    def lead_time_forecast(self, data: SupplierData, horizon_days: int) -> dict[str, Any]:
        """Percentile forecast and drift estimate over a horizon.

        Drift direction is classified from the coefficient of variation;
        magnitude scales it by the share of a year the horizon covers.
        """
        p50 = round_half_up(data.avg_lead_time_days, 2)
        cv = coefficient_of_variation(data.avg_lead_time_days, data.lead_time_std_dev)
        horizon_factor = min(1.0, horizon_days / 365)
        return {
            "lead_time_p50": p50,
            "lead_time_p95": upper_percentile(data.avg_lead_time_days, data.lead_time_std_dev),
            "drift_direction": self._drift_scale.classify(cv),
            "drift_magnitude": round_half_up(min(1.0, cv * horizon_factor), 2),
            "historical_variance": round_half_up(data.lead_time_std_dev ** 2, 2),
        }

    # ------------------------------------------------------------------ #
    # Disruption alerts
    # ------------------------------------------------------------------ #

    def disruption_alerts(self, data: SupplierData) -> list[dict[str, Any]]:
        return [
            {
                "supplierId": data.supplier_id,
                "alert_type": alert.type,
                "severity": alert.severity,
                "disruption_probability": alert.probability,
                "affected_categories": list(data.categories),
                "affected_regions": list(data.regions),
                "detected_at": alert.detected_at,
                "description": alert.description,
            }
            for alert in data.active_alerts
        ]

    def filter_by_risk_tolerance(self, alerts: Sequence[dict], risk_tolerance: str) -> list[dict]:
        """Keep alerts whose probability meets the tolerance threshold."""
        threshold = self.config.pool("risk_tolerance")[risk_tolerance]
        return [a for a in alerts if a["disruption_probability"] >= threshold]
