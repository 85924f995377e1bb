"""Regulatory change tracking.

Synthesizes rule deltas per jurisdiction, their impact on control frameworks
and rule-to-control mappings with gap status and remediation steps.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Optional

from config import ServiceConfig
from synth import Stream
from util import iso_date, parse_iso, round_half_up

NO_INDUSTRY = "__none__"


class RegulationTracker:
    """Deltas, impacts and control mappings for a jurisdiction."""

    def __init__(self, config: ServiceConfig):
        self.config = config

    def agencies(self, jurisdiction: str) -> tuple[str, ...]:
        agencies = self.config.pool("agencies")
        if jurisdiction in agencies:
            return tuple(agencies[jurisdiction])
        return tuple(self.config.pool("fallback_agencies"))

    def is_known(self, jurisdiction: str) -> bool:
        return jurisdiction in self.config.pool("known_jurisdictions")

    def _rule(self, stream: Stream, jurisdiction: str, i: int) -> tuple[str, str, str]:
        agency = stream.choice(f"agency:{i}", self.agencies(jurisdiction))
        number = str(stream.integer(f"rule_number:{i}", 100, 999))
        return f"{jurisdiction}-{agency}-{number}", agency, number

    def deltas(
        self,
        jurisdiction: str,
        since: str,
        industry: Optional[str] = None,
        source_priority: str = "all",
    ) -> list[dict[str, Any]]:
        """Rule changes published on or after ``since``.

        ``official`` keeps 60% of the synthesized changes (at least one).
        Effective dates always follow the publication date.
        """
        s = self.config.setting
        stream = Stream.for_key("deltas", jurisdiction, industry or NO_INDUSTRY, since)
        count = stream.integer("count", s("min_deltas", 3), s("max_deltas", 7))
        if source_priority == "official":
            count = max(1, math.floor(count * s("official_share", 0.6)))

        since_at: datetime = parse_iso(since)
        window = timedelta(days=s("publication_window_days", 180))
        deltas = []
        for i in range(count):
            rule_id, agency, number = self._rule(stream, jurisdiction, i)
            topic = stream.choice(f"topic:{i}", self.config.pool("rule_topics"))
            published = since_at + window * stream.draw(f"published:{i}")
            lag_days = stream.integer(f"effective_lag:{i}", s("min_effective_lag_days", 90), s("max_effective_lag_days", 270))
            deltas.append({
                "ruleId": rule_id,
                "title": f"{topic} ({agency})",
                "semantic_change_type": stream.choice(f"change_type:{i}", self.config.pool("change_types")),
                "summary": stream.choice(f"summary:{i}", self.config.pool("summaries")),
                "effective_date": iso_date(published + timedelta(days=lag_days)),
                "published_date": iso_date(published),
                "source_url": f"https://regulatory.gov/{jurisdiction.lower()}/{agency.lower()}/rules/{number}",
                "urgency_score": stream.integer(f"urgency:{i}", 0, 100),
            })
        return deltas

    def _frameworks(self, control_framework: str) -> list[str]:
        catalog = self.config.pool("framework_controls")
        if control_framework == "all":
            return list(catalog.keys())
        return [control_framework] if control_framework in catalog else []

    def impacts(
        self,
        jurisdiction: str,
        industry: Optional[str] = None,
        rule_id: Optional[str] = None,
        control_framework: str = "all",
    ) -> list[dict[str, Any]]:
        """Impact of current rules on control frameworks, optionally for one rule."""
        s = self.config.setting
        catalog = self.config.pool("framework_controls")
        stream = Stream.for_key("impacts", jurisdiction, industry or NO_INDUSTRY)
        count = stream.integer("count", s("min_impacts", 3), s("max_impacts", 6))

        impacts = []
        for i in range(count):
            this_rule, _, _ = self._rule(stream, jurisdiction, i)
            impact_level = stream.choice(f"impact_level:{i}", self.config.pool("impact_levels"))
            controls = []
            for framework in self._frameworks(control_framework):
                pool = catalog[framework]
                picked = stream.sample(f"controls:{i}:{framework}", pool, stream.integer(f"control_count:{i}:{framework}", 1, 3))
                controls.extend(f"{framework.upper()}-{c['id']}" for c in picked)
            summary = stream.choice(f"summary:{i}", self.config.pool("summaries"))
            impacts.append({
                "ruleId": this_rule,
                "title": f"Impact: {stream.choice(f'topic:{i}', self.config.pool('rule_topics'))}",
                "affected_controls": controls or ["GENERAL-001"],
                "impact_level": impact_level,
                "remediation_urgency": stream.choice(f"urgency:{i}", self.config.pool("remediation_urgencies")),
                "estimated_effort": stream.choice(f"effort:{i}", self.config.pool("estimated_efforts")),
                "description": f"{summary}. Affects {len(controls)} control(s) at {impact_level} level.",
            })

        if rule_id:
            return [impact for impact in impacts if impact["ruleId"] == rule_id]
        return impacts

    def control_mapping(self, rule_id: str, control_framework: str, jurisdiction: str) -> dict[str, Any]:
        """Map a rule onto 2-6 controls of one framework.

        Returns:
            Dict with mapped_controls, total_mapped and coverage_score
        """
        controls = self.config.pool("framework_controls").get(control_framework, ())
        stream = Stream.for_key("map_controls", rule_id, control_framework, jurisdiction)
        wanted = 2 + stream.count("mapped_count", max(min(5, len(controls)) - 1, 0))
        mapped = []
        for i, control in enumerate(stream.sample("controls", controls, wanted)):
            steps = stream.sample(
                f"steps:{i}",
                self.config.pool("remediation_templates"),
                stream.integer(f"step_count:{i}", 1, 3),
            )
            mapped.append({
                "controlId": f"{control_framework.upper()}-{control['id']}",
                "controlName": control["name"],
                "mapping_confidence": stream.uniform(f"confidence:{i}", 0.5, 1.0, 2),
                "gap_status": stream.choice(f"gap_status:{i}", self.config.pool("gap_statuses")),
                "remediation_steps": steps,
            })
        coverage = round_half_up(len(mapped) / len(controls), 2) if controls else 0.0
        return {
            "mapped_controls": mapped,
            "total_mapped": len(mapped),
            "coverage_score": min(1.0, coverage),
        }
