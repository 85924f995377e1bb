"""Data source interfaces and the in-memory synthetic implementation.

The request layer asks a data source whether a key exists before any scoring
runs. ``SyntheticDataSource`` answers from configuration and deterministic
synthesis, with no network access. Keys listed in ``missing`` (and the null
address) are reported as unknown.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol

from config import EngineConfig
from graph import DatasetRecord, SourceRecord
from identity import NULL_ADDRESS, AgentStats, ReputationScoring
from regulation import RegulationTracker
from supplier import SupplierData, SupplierScoring
from util import to_iso_millis

logger = logging.getLogger(__name__)


class ComplianceSource(Protocol):
    def address_exists(self, address: str) -> bool: ...

    def jurisdiction_supported(self, jurisdiction: str) -> bool: ...


class AddressSource(Protocol):
    def address_exists(self, address: str) -> bool: ...


class SupplierSource(Protocol):
    def get_supplier_data(
        self, supplier_id: str, as_of: datetime, category: Optional[str] = None, region: Optional[str] = None
    ) -> Optional[SupplierData]: ...

    def get_all_supplier_alerts(self, as_of: datetime, region: Optional[str] = None) -> list[SupplierData]: ...


class AgentSource(Protocol):
    def get_agent_stats(self, address: str) -> Optional[AgentStats]: ...


class RegulationSource(Protocol):
    def regulation_available(self, jurisdiction: str) -> bool: ...


class GeoSource(Protocol):
    def geo_exists(self, geo_code: str) -> bool: ...


class DatasetSource(Protocol):
    def get_dataset_record(self, dataset_id: str) -> Optional[DatasetRecord]: ...

    def get_all_records(self) -> list[DatasetRecord]: ...


def demo_datasets(now: datetime) -> list[DatasetRecord]:
    """Two-level demo lineage: ds-demo-002 is derived from ds-demo-001."""

    def ago(ms: int) -> str:
        return to_iso_millis(now - timedelta(milliseconds=ms))

    return [
        DatasetRecord(
            dataset_id="ds-demo-001",
            sources=(
                SourceRecord("src-weather-api", "api", ago(120_000), 5000, None, "ingest"),
                SourceRecord("src-sensor-db", "database", ago(180_000), 12000, None, "etl"),
            ),
            content="aggregated weather and sensor data payload",
            last_updated=ago(60_000),
        ),
        DatasetRecord(
            dataset_id="ds-demo-002",
            sources=(
                SourceRecord("src-derived-analytics", "derived", ago(300_000), 800, "ds-demo-001", "aggregation"),
            ),
            content="derived analytics dataset",
            last_updated=ago(240_000),
        ),
    ]


class SyntheticDataSource:
    """In-memory data source backed by deterministic synthesis.

    Satisfies every service's source interface.

    Args:
        config: Engine configuration (pools for suppliers, agents, regulation)
        datasets: Dataset records served for provenance lookups
        missing: Keys (addresses, ids, codes) to report as not found
    """

    def __init__(
        self,
        config: EngineConfig,
        datasets: Iterable[DatasetRecord] = (),
        missing: Iterable[str] = (),
    ):
        self._suppliers = SupplierScoring(config.service("supplier"))
        self._agents = ReputationScoring(config.service("identity"))
        self._regulation = RegulationTracker(config.service("regulation"))
        self._monitored = tuple(config.service("supplier").pool("monitored_suppliers"))
        self._datasets = {}
        for record in datasets:
            self._datasets.setdefault(record.dataset_id, record)
        self._missing = {key.lower() for key in missing}

    def _is_missing(self, key: str) -> bool:
        return key.lower() in self._missing

    def address_exists(self, address: str) -> bool:
        return address.lower() != NULL_ADDRESS and not self._is_missing(address)

    def jurisdiction_supported(self, jurisdiction: str) -> bool:
        return not self._is_missing(jurisdiction)

    def get_supplier_data(
        self,
        supplier_id: str,
        as_of: datetime,
        category: Optional[str] = None,
        region: Optional[str] = None,
    ) -> Optional[SupplierData]:
        if self._is_missing(supplier_id):
            return None
        return self._suppliers.synthesize(supplier_id, as_of, category, region)

    def get_all_supplier_alerts(self, as_of: datetime, region: Optional[str] = None) -> list[SupplierData]:
        """Monitored suppliers that currently have at least one alert."""
        suppliers = [
            self._suppliers.synthesize(supplier_id, as_of, None, region)
            for supplier_id in self._monitored
            if not self._is_missing(supplier_id)
        ]
        return [s for s in suppliers if s.active_alerts]

    def get_agent_stats(self, address: str) -> Optional[AgentStats]:
        if not self.address_exists(address):
            return None
        return self._agents.synthesize(address)

    def regulation_available(self, jurisdiction: str) -> bool:
        return self._regulation.is_known(jurisdiction) and not self._is_missing(jurisdiction)

    def geo_exists(self, geo_code: str) -> bool:
        return not self._is_missing(geo_code)

    def get_dataset_record(self, dataset_id: str) -> Optional[DatasetRecord]:
        record = self._datasets.get(dataset_id)
        if record is None:
            logger.debug("No dataset record for %s", dataset_id)
        return record

    def get_all_records(self) -> list[DatasetRecord]:
        return list(self._datasets.values())
