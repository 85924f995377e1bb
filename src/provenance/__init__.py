"""Data provenance: lineage, freshness SLAs and content hash verification."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Sequence

from config import ServiceConfig
from freshness import log_confidence, sla_status, staleness_ms
from graph import DatasetRecord, GraphNode, traverse_lineage
from seed import derive_seed
from util import digest_hex, epoch_millis, parse_iso, round_half_up, to_base36


class ProvenanceLedger:
    """Lineage graphs and integrity checks over dataset records."""

    def __init__(self, config: ServiceConfig):
        self.config = config

    def lineage(
        self,
        records: Sequence[DatasetRecord],
        dataset_id: str,
        max_depth: int,
        now: datetime,
    ) -> dict[str, Any]:
        """Source nodes and source->dataset edges behind a dataset."""
        graph = traverse_lineage(records, dataset_id, max_depth)
        return {
            "nodes": [{"sourceId": n.id, **n.attributes} for n in graph.nodes],
            "edges": [
                {"from": e.source, "to": e.target, "transformType": e.relationship}
                for e in graph.edges
            ],
            "lineage_score": self.lineage_score(graph.nodes, now),
        }

    def lineage_score(self, nodes: Sequence[GraphNode], now: datetime) -> float:
        """Mean per-source score mixing recency and data volume.

        Recency decays linearly to 0 over the configured horizon; volume
        saturates logarithmically.
        """
        if not nodes:
            return 0.0
        s = self.config.setting
        horizon = timedelta(days=s("recency_horizon_days", 365))
        recency_weight = s("recency_weight", 0.7)
        log_scale = s("volume_log_scale", 5)
        scores = []
        for node in nodes:
            age = max(timedelta(0), now - parse_iso(node.attributes["updatedAt"]))
            recency = max(0.0, 1 - age / horizon)
            volume = min(1.0, math.log10(node.attributes["dataPoints"] + 1) / log_scale)
            scores.append(recency * recency_weight + volume * (1 - recency_weight))
        return round_half_up(sum(scores) / len(scores), 2)

    def freshness_report(self, record: DatasetRecord, max_staleness_ms: int, now: datetime) -> dict[str, Any]:
        staleness = staleness_ms(parse_iso(record.last_updated), now)
        total_points = sum(source.data_points for source in record.sources)
        return {
            "staleness_ms": staleness,
            "sla_status": sla_status(staleness, max_staleness_ms),
            "lastUpdated": record.last_updated,
            "confidence": log_confidence(
                total_points, self.config.setting("confidence_reference_points", 10000)
            ),
        }

    def verify_hash(self, content: str, expected_hash: str, algorithm: str = "sha256") -> dict[str, Any]:
        """Hash content and compare with ``expected_hash`` ignoring case."""
        computed = digest_hex(content, algorithm)
        match = computed.lower() == expected_hash.lower()
        return {
            "verified": match,
            "computedHash": computed,
            "match": match,
            "bytesVerified": len(content.encode("utf-8")),
        }

    def attestation_ref(self, dataset_id: str, algorithm: str, computed_hash: str, issued_at: datetime) -> str:
        """Reference for a verification, stable for the same inputs."""
        stamp = to_base36(epoch_millis(issued_at))
        suffix = to_base36(derive_seed(dataset_id, algorithm, computed_hash, stamp))[:6]
        return f"att-{dataset_id}-{algorithm}-{stamp}-{suffix}"
