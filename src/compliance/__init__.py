"""Compliance screening.

Synthesizes sanctions/PEP/watchlist matches for an entity name, traces an
ownership exposure chain behind an address and scores jurisdiction risk.
All outputs are deterministic functions of the request key.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from config import ServiceConfig
from graph import ForwardShape, build_forward_graph
from scoring import blend_max_mean
from seed import derive_seed
from synth import Stream
from util import clamp, round_half_up, to_iso_millis

# listedSince falls on the first of a month in this window
LISTING_WINDOW_START = datetime(2015, 1, 1, tzinfo=timezone.utc)
LISTING_WINDOW_YEARS = 10

JURISDICTION_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)
JURISDICTION_UPDATE_SPAN_DAYS = 29

_WHITESPACE = re.compile(r"\s+")


def name_match_score(entity_name: str, matched_name: str) -> float:
    """Similarity between two names in [0, 1].

    Case and surrounding whitespace are ignored. Identical names score 1.0,
    containment scores the length ratio, anything else scores token Jaccard
    overlap.
    """
    a = entity_name.lower().strip()
    b = matched_name.lower().strip()
    if a == b:
        return 1.0
    if a in b or b in a:
        shorter, longer = (a, b) if len(a) < len(b) else (b, a)
        return round_half_up(len(shorter) / len(longer), 2)
    tokens_a = _WHITESPACE.split(a)
    tokens_b = _WHITESPACE.split(b)
    union = set(tokens_a) | set(tokens_b)
    if not union:
        return 0.0
    intersection = [t for t in tokens_a if t in tokens_b]
    return round_half_up(len(intersection) / len(union), 2)


class ComplianceScreening:
    """Entity screening, exposure chains and jurisdiction risk."""

    def __init__(self, config: ServiceConfig):
        self.config = config
        self._status_scale = config.scale("screening_status")
        self._match_confidence_scale = config.scale("match_confidence")
        self._aggregate_scale = config.scale("aggregate_risk")
        self._jurisdiction_scale = config.scale("jurisdiction_risk")
        self._risk_levels = tuple(config.pool("risk_levels"))

    # ------------------------------------------------------------------ #
    # Screening
    # ------------------------------------------------------------------ #

    def generate_matches(self, entity_name: str, entity_type: str = "individual") -> list[dict[str, Any]]:
        """Synthesize 0-3 list matches for an entity name."""
        stream = Stream.for_key("screening", entity_name, entity_type)
        list_categories = self.config.pool("list_categories")
        categories = tuple(list_categories.keys())
        name_parts = _WHITESPACE.split(entity_name.strip())

        matches = []
        for i in range(stream.count("match_count", self.config.setting("max_matches", 3))):
            category = stream.choice(f"category:{i}", categories)
            list_name = stream.choice(f"list:{i}", list_categories[category])
            if stream.draw(f"variation:{i}") > 0.5 and len(name_parts) > 1:
                matched_name = " ".join(reversed(name_parts))
            else:
                matched_name = entity_name
            year = LISTING_WINDOW_START.year + stream.count(f"listed_year:{i}", LISTING_WINDOW_YEARS - 1)
            month = 1 + stream.count(f"listed_month:{i}", 11)
            matches.append({
                "listName": list_name,
                "matchedName": matched_name,
                "matchScore": name_match_score(entity_name, matched_name),
                "listCategory": category,
                "listedSince": to_iso_millis(datetime(year, month, 1, tzinfo=timezone.utc)),
            })
        return matches

    def screening_status(self, matches: Sequence[dict]) -> str:
        if not matches:
            return "clear"
        return self._status_scale.classify(max(m["matchScore"] for m in matches))

    def match_confidence(self, matches: Sequence[dict]) -> float:
        """Confidence in the screening verdict; an empty result is 1.0."""
        if not matches:
            return 1.0
        return self._match_confidence_scale.classify(max(m["matchScore"] for m in matches))

    def screening_confidence(self, matches: Sequence[dict], has_identifiers: bool, has_addresses: bool) -> float:
        s = self.config.setting
        value = s("screening_base_confidence", 0.5)
        if has_identifiers:
            value += s("identifier_bonus", 0.2)
        if has_addresses:
            value += s("address_bonus", 0.15)
        if matches:
            value += s("match_bonus", 0.1)
        return min(1.0, round_half_up(value, 2))

    def evidence_bundle(self, entity_name: str, matches: Sequence[dict], retrieved_at: datetime) -> list[dict[str, str]]:
        """Base database reference plus one item per leading match."""
        seed = derive_seed("evidence", entity_name)
        stamp = to_iso_millis(retrieved_at)
        items = [{
            "source": "Global Sanctions Database",
            "reference": f"GSD-{seed % 100000}",
            "retrievedAt": stamp,
        }]
        for i, match in enumerate(matches[: self.config.setting("max_evidence_items", 3)]):
            items.append({
                "source": match["listName"],
                "reference": f"REF-{(seed + i * 17) % 99999}",
                "retrievedAt": stamp,
            })
        return items

    # ------------------------------------------------------------------ #
    # Exposure chain
    # ------------------------------------------------------------------ #

    def exposure_chain(self, address: str, ownership_depth: int) -> list[dict[str, Any]]:
        """Ownership entities behind an address, 1-3 per depth level."""
        shape = ForwardShape(
            relationships=tuple(self.config.pool("relationships")),
            max_fanout=self.config.setting("max_entities_per_depth", 3),
            vary_depth=False,
            node_levels=self._risk_levels,
        )
        graph = build_forward_graph(address.lower(), ownership_depth, 0, shape)
        return [
            {
                "entity": edge.target,
                "relationship": edge.relationship,
                "riskLevel": node.attributes["level"],
                "depth": node.depth,
            }
            for node, edge in zip(graph.nodes, graph.edges)
        ]

    def aggregate_risk(self, chain: Sequence[dict]) -> str:
        """Blend the worst and the average risk level along a chain."""
        if not chain:
            return self._aggregate_scale.floor
        levels = [self._risk_levels.index(e["riskLevel"]) for e in chain]
        return self._aggregate_scale.classify(blend_max_mean(levels))

    # ------------------------------------------------------------------ #
    # Jurisdiction risk
    # ------------------------------------------------------------------ #

    def _industry_modifier(self, industry: str, low: int, high: int) -> int:
        return Stream.for_key("industry", industry).integer("modifier", low, high)

    def jurisdiction_risk_score(self, jurisdiction: str, industry: Optional[str] = None) -> float:
        """Base score by risk tier, shifted by an industry modifier, 0-100."""
        high_risk = self.config.pool("high_risk_jurisdictions")
        stream = Stream.for_key("jurisdiction", jurisdiction)
        s = self.config.setting
        if jurisdiction in high_risk:
            score = float(high_risk[jurisdiction]["base_score"])
            modifier = (-5, 4)
        elif jurisdiction in self.config.pool("medium_risk_jurisdictions"):
            base = s("medium_risk_base", 30)
            score = float(stream.integer("base", base, base + s("medium_risk_span", 24)))
            modifier = (-5, 4)
        else:
            base = s("low_risk_base", 5)
            score = float(stream.integer("base", base, base + s("low_risk_span", 19)))
            modifier = (-4, 3)
        if industry:
            score += self._industry_modifier(industry, *modifier)
        return clamp(round_half_up(score, 2), 0.0, 100.0)

    def jurisdiction_risk_level(self, score: float) -> str:
        return self._jurisdiction_scale.classify(score)

    def risk_factors(self, jurisdiction: str, industry: Optional[str] = None) -> list[dict[str, Any]]:
        stream = Stream.for_key("jurisdiction", jurisdiction)
        factors = []
        for entry in self.config.pool("jurisdiction_factors"):
            factors.append({
                "factor": entry["name"],
                "score": stream.integer(f"factor:{entry['name']}", entry["low"], entry["high"]),
                "description": entry["description"].format(jurisdiction=jurisdiction),
            })
        if industry:
            factors.append({
                "factor": f"Industry Risk: {industry}",
                "score": Stream.for_key("industry", industry).integer("score", 20, 69),
                "description": f"Sector-specific risk assessment for {industry} operating in {jurisdiction}",
            })
        return factors

    def sanctions_programs(self, jurisdiction: str) -> list[str]:
        high_risk = self.config.pool("high_risk_jurisdictions")
        if jurisdiction in high_risk:
            return list(high_risk[jurisdiction]["programs"])
        if jurisdiction in self.config.pool("medium_risk_jurisdictions"):
            return [f"{jurisdiction} Country Monitoring Program"]
        return []

    def last_updated(self, jurisdiction: str) -> str:
        days = Stream.for_key("jurisdiction", jurisdiction).count("last_updated", JURISDICTION_UPDATE_SPAN_DAYS)
        return to_iso_millis(JURISDICTION_EPOCH + timedelta(days=days))
