"""Geo demand indices.

Demand for a service category in a geography is an index in [0, 200] with 100
as baseline. Every figure is keyed on (geo code, category) so repeated
queries agree with each other, including the comparable geos quoted
alongside another geo's index.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from config import ServiceConfig
from scoring import confidence_band
from synth import Stream
from util import clamp, iso_date, parse_iso, round_half_up, to_iso_millis


def _stream(geo_code: str, category: str) -> Stream:
    return Stream.for_key("demand", geo_code, category)


class DemandIndex:
    """Demand index, trend and anomaly computations."""

    def __init__(self, config: ServiceConfig):
        self.config = config
        self._max_index = config.setting("max_index", 200)

    def demand_index(self, geo_code: str, category: str, seasonality_mode: str = "adjusted") -> int:
        """Index in [0, max_index]; ``adjusted`` applies a seasonal swing."""
        stream = _stream(geo_code, category)
        index = round_half_up(stream.draw("index") * self._max_index, 0)
        if seasonality_mode == "adjusted":
            swing = self.config.setting("seasonal_swing", 20)
            adjustment = (stream.draw("seasonal") - 0.5) * swing
            index = round_half_up(clamp(index + adjustment, 0, self._max_index), 0)
        return int(index)

    def velocity(self, geo_code: str, category: str) -> float:
        span = self.config.setting("velocity_span", 30)
        return round_half_up((_stream(geo_code, category).draw("velocity") - 0.5) * span, 2)

    def confidence(self, geo_code: str, category: str) -> float:
        return _stream(geo_code, category).uniform("confidence", 0.5, 1.0, 2)

    def confidence_interval(self, demand_index: float, confidence: float) -> dict[str, int]:
        lower, upper = confidence_band(
            demand_index,
            confidence,
            self.config.setting("interval_max_width", 40),
            0,
            self._max_index,
        )
        return {"lower": lower, "upper": upper}

    def comparable_geos(self, geo_code: str, geo_type: str, category: str) -> list[dict[str, Any]]:
        pools = self.config.pool("comparable_geos")
        pool = [code for code in pools.get(geo_type, pools["zip"]) if code != geo_code]
        comparables = []
        for code in pool[: self.config.setting("comparable_count", 3)]:
            similarity = Stream.for_key("similarity", geo_code, code, category).uniform("similarity", 0.5, 1.0, 2)
            comparables.append({
                "geoCode": code,
                "demand_index": self.demand_index(code, category, "adjusted"),
                "similarity": similarity,
            })
        return comparables

    # ------------------------------------------------------------------ #
    # Trend
    # ------------------------------------------------------------------ #

    def trend_points(self, geo_code: str, category: str, lookback_window: str) -> list[dict[str, Any]]:
        """Chronological points ending at the reference date."""
        windows = self.config.pool("lookback_windows")
        window = windows.get(lookback_window, windows["30d"])
        days, step = int(window["days"]), int(window["step"])
        reference = parse_iso(self.config.setting("reference_date", "2026-02-26"))
        span = self.config.setting("point_velocity_span", 20)

        points = []
        for offset in range(days, -1, -step):
            date = iso_date(reference - timedelta(days=offset))
            stream = Stream.for_key("demand_day", geo_code, category, date)
            points.append({
                "date": date,
                "demand_index": int(round_half_up(stream.draw("index") * self._max_index, 0)),
                "velocity": round_half_up((stream.draw("velocity") - 0.5) * span, 2),
            })
        return points

    def trend_direction(self, geo_code: str, category: str, lookback_window: str) -> str:
        stream = Stream.for_key("demand_trend", geo_code, category, lookback_window)
        return stream.choice("direction", self.config.pool("trend_directions"))

    def trend_strength(self, geo_code: str, category: str, lookback_window: str) -> float:
        return Stream.for_key("demand_trend", geo_code, category, lookback_window).uniform("strength", 0, 1, 2)

    # ------------------------------------------------------------------ #
    # Anomalies
    # ------------------------------------------------------------------ #

    def anomalies(
        self,
        geo_code: str,
        geo_type: str,
        category: Optional[str] = None,
        threshold: float = 0.8,
    ) -> list[dict[str, Any]]:
        """Anomaly candidates per category whose confidence meets ``threshold``.

        Without a category, a fixed set of service categories is scanned.
        """
        categories = [category] if category else list(self.config.pool("anomaly_categories"))
        descriptions = self.config.pool("anomaly_types")
        anomaly_types = tuple(descriptions.keys())
        detected_at = to_iso_millis(parse_iso(self.config.setting("anomaly_detected_at")))

        found = []
        for cat in categories:
            stream = Stream.for_key("demand_anomaly", geo_code, geo_type, cat)
            for i in range(self.config.setting("anomaly_candidates", 3)):
                confidence = stream.uniform(f"confidence:{i}", 0, 1, 2)
                if confidence < threshold:
                    continue
                anomaly_type = stream.choice(f"type:{i}", anomaly_types)
                found.append({
                    "category": cat,
                    "anomaly_type": anomaly_type,
                    "severity": stream.choice(f"severity:{i}", self.config.pool("severities")),
                    "confidence": confidence,
                    "detected_at": detected_at,
                    "description": descriptions[anomaly_type],
                })
        return found
