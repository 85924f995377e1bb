"""Address risk intelligence.

Weighted risk factors, sanctions proximity, multi-hop exposure paths and
entity profiles for on-chain addresses. Addresses are keyed case-insensitively.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from config import ServiceConfig
from graph import ForwardShape, build_forward_graph
from scoring import ScoreFactor, composite_score, hop_decayed_mean
from synth import Stream
from util import parse_iso, round_half_up, to_iso_millis


def _stream(address: str) -> Stream:
    return Stream.for_key("address", address.lower())


class AddressRiskEngine:
    """Risk scoring, exposure paths and profiles for addresses."""

    def __init__(self, config: ServiceConfig):
        self.config = config
        self._level_scale = config.scale("risk_level")

    def risk_factors(self, address: str) -> list[ScoreFactor]:
        stream = _stream(address)
        descriptions = self.config.pool("factor_descriptions")
        return [
            ScoreFactor(
                name=name,
                score=stream.uniform(f"factor:{name}", 0, 100, 2),
                weight=self.config.weight(name),
                description=descriptions.get(name, ""),
            )
            for name in self.config.weights
        ]

    def risk_score(self, factors: Sequence[ScoreFactor]) -> float:
        return composite_score(factors)

    def risk_level(self, score: float) -> str:
        return self._level_scale.classify(score)

    def sanctions_proximity(self, address: str) -> float:
        """Proximity in [0, 1], skewed toward 0 by squaring the draw."""
        raw = _stream(address).draw("sanctions_proximity")
        return round_half_up(raw * raw, 2)

    def confidence(self, address: str) -> float:
        return _stream(address).uniform("confidence", 0.3, 0.95, 2)

    # ------------------------------------------------------------------ #
    # Exposure paths
    # ------------------------------------------------------------------ #

    def exposure_paths(self, address: str, max_hops: int, threshold: float) -> list[dict[str, Any]]:
        """Linear multi-hop path outward from the address.

        The hop count is seed-derived and never exceeds ``max_hops``. Edges
        below ``threshold`` are dropped; a threshold of 0 keeps all of them.
        """
        shape = ForwardShape(relationships=tuple(self.config.pool("relationships")), max_fanout=1)
        graph = build_forward_graph(address.lower(), max_hops, threshold, shape)
        return [
            {
                "from": e.source,
                "to": e.target,
                "relationship": e.relationship,
                "risk_contribution": e.contribution,
                "hop": e.hop,
            }
            for e in graph.edges
        ]

    def total_exposure(self, paths: Sequence[dict]) -> float:
        return hop_decayed_mean((p["risk_contribution"], p["hop"]) for p in paths)

    def highest_risk_path_score(self, paths: Sequence[dict]) -> float:
        return max((p["risk_contribution"] for p in paths), default=0.0)

    # ------------------------------------------------------------------ #
    # Entity profile
    # ------------------------------------------------------------------ #

    def entity_profile(self, address: str) -> dict[str, Any]:
        stream = _stream(address)
        s = self.config.setting
        first_start, first_end = (parse_iso(v) for v in self.config.pool("first_seen_window"))
        last_limit = parse_iso(self.config.pool("last_active_limit"))

        first_seen: datetime = stream.instant("first_seen", first_start, first_end)
        last_active: datetime = stream.instant("last_active", first_seen, last_limit)

        related = [
            "0x" + stream.hex(f"related:{i}")
            for i in range(stream.count("related_count", s("max_related_addresses", 4)))
        ]
        tag_count = stream.integer("tag_count", s("min_tags", 1), s("max_tags", 4))
        volume = stream.uniform("volume_30d", 0, s("max_volume_usd", 10_000_000))

        return {
            "address": address,
            "cluster_id": "cluster_" + stream.hex("cluster", 8),
            "entity_type": stream.choice("entity_type", self.config.pool("entity_types")),
            "related_addresses": related,
            "transaction_volume_30d": f"{volume:.2f}",
            "first_seen": to_iso_millis(first_seen),
            "last_active": to_iso_millis(last_active),
            "tags": stream.distinct("tags", self.config.pool("tags"), tag_count),
            "confidence": self.confidence(address),
        }
