"""In-process request dispatcher.

Maps a route such as ``GET /v1/risk/score`` to a service operation:

1. Coerce and validate the parameters against the input schema
2. Ask the data source whether the requested key exists
3. Run the service and attach freshness
4. Validate the payload against the output schema

``handle`` never raises for request problems; it returns ``(status, body)``
with an ``{"error": {"code", "message"}}`` body instead.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from compliance import ComplianceScreening
from config import EngineConfig
from demand import DemandIndex
from freshness import compute_freshness
from identity import ReputationScoring
from provenance import ProvenanceLedger
from regulation import RegulationTracker
from risk import AddressRiskEngine
from schema import ValidationError, validate_input, validate_output
from supplier import SupplierScoring
from util import utc_now

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """Raised when the requested key is unknown to the data source."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# route -> (method, service, operation)
ROUTES: dict[str, tuple[str, str, str]] = {
    "/v1/screening/check": ("POST", "compliance", "screening_check"),
    "/v1/screening/exposure-chain": ("GET", "compliance", "exposure_chain"),
    "/v1/screening/jurisdiction-risk": ("GET", "compliance", "jurisdiction_risk"),
    "/v1/risk/score": ("POST", "risk", "score"),
    "/v1/risk/exposure-paths": ("GET", "risk", "exposure_paths"),
    "/v1/risk/entity-profile": ("GET", "risk", "entity_profile"),
    "/v1/suppliers/score": ("GET", "supplier", "score"),
    "/v1/suppliers/lead-time-forecast": ("GET", "supplier", "lead_time"),
    "/v1/suppliers/disruption-alerts": ("GET", "supplier", "disruption_alerts"),
    "/v1/identity/reputation": ("GET", "identity", "reputation"),
    "/v1/identity/history": ("GET", "identity", "history"),
    "/v1/identity/trust-breakdown": ("GET", "identity", "trust_breakdown"),
    "/v1/regulations/delta": ("GET", "regulation", "delta"),
    "/v1/regulations/impact": ("GET", "regulation", "impact"),
    "/v1/regulations/map-controls": ("POST", "regulation", "map_controls"),
    "/v1/demand/index": ("GET", "demand", "index"),
    "/v1/demand/trend": ("GET", "demand", "trend"),
    "/v1/demand/anomalies": ("GET", "demand", "anomalies"),
    "/v1/provenance/lineage": ("GET", "provenance", "lineage"),
    "/v1/provenance/freshness": ("GET", "provenance", "freshness"),
    "/v1/provenance/verify-hash": ("POST", "provenance", "verify_hash"),
}


def _error(status: int, code: str, message: str) -> tuple[int, dict[str, Any]]:
    return status, {"error": {"code": code, "message": message}}


def resolve_route(route: str) -> Optional[tuple[str, str]]:
    """Return (service, operation) for a route, or None if unknown.

    The route may carry a leading HTTP method; when it does, it must match.
    """
    parts = route.strip().split(None, 1)
    if len(parts) == 2:
        method, path = parts[0].upper(), parts[1].strip()
    else:
        method, path = None, parts[0] if parts else ""
    entry = ROUTES.get(path.rstrip("/") or path)
    if entry is None:
        return None
    expected, service, operation = entry
    if method is not None and method != expected:
        return None
    return service, operation


class ServiceAPI:
    """Dispatches routes to the services.

    Args:
        config: Engine configuration
        data_source: Object implementing every ``datasource`` protocol
        clock: Returns the current instant; fixes "now" for a request
    """

    def __init__(self, config: EngineConfig, data_source: Any, clock: Callable[[], datetime] = utc_now):
        self.config = config
        self.data_source = data_source
        self.clock = clock
        self.compliance = ComplianceScreening(config.service("compliance"))
        self.risk = AddressRiskEngine(config.service("risk"))
        self.supplier = SupplierScoring(config.service("supplier"))
        self.identity = ReputationScoring(config.service("identity"))
        self.regulation = RegulationTracker(config.service("regulation"))
        self.demand = DemandIndex(config.service("demand"))
        self.provenance = ProvenanceLedger(config.service("provenance"))

    def handle(self, route: str, params: Optional[Mapping[str, Any]] = None) -> tuple[int, dict[str, Any]]:
        resolved = resolve_route(route)
        if resolved is None:
            logger.info("No route for %s", route)
            return _error(404, "ROUTE_NOT_FOUND", f"No route for {route}")
        service, operation = resolved
        logger.debug("Dispatching %s to %s/%s", route, service, operation)

        try:
            request = validate_input(service, operation, params or {})
        except ValidationError as e:
            return _error(400, "VALIDATION_ERROR", str(e))

        now = self.clock()
        try:
            payload = getattr(self, f"_{service}_{operation}")(request, now)
        except NotFoundError as e:
            logger.info("%s/%s: %s", service, operation, e.message)
            return _error(404, e.code, e.message)

        threshold = self.config.service(service).staleness_threshold_seconds
        payload["freshness"] = compute_freshness(now, now, threshold).to_dict()

        try:
            validate_output(service, operation, payload)
        except ValidationError:
            logger.exception("Response for %s/%s failed output validation", service, operation)
            return _error(500, "INTERNAL_ERROR", "Response failed output validation")
        return 200, payload

    # ------------------------------------------------------------------ #
    # Existence checks
    # ------------------------------------------------------------------ #

    def _require_address(self, address: str) -> None:
        if not self.data_source.address_exists(address):
            raise NotFoundError("ADDRESS_NOT_FOUND", f"Address {address} not found")

    def _require_jurisdiction(self, jurisdiction: str, available: bool) -> None:
        if not available:
            raise NotFoundError("JURISDICTION_NOT_FOUND", f"Jurisdiction {jurisdiction} not found")

    def _require_geo(self, geo_code: str) -> None:
        if not self.data_source.geo_exists(geo_code):
            raise NotFoundError("GEO_NOT_FOUND", f"Geo {geo_code} not found")

    def _agent(self, address: str):
        stats = self.data_source.get_agent_stats(address)
        if stats is None:
            raise NotFoundError("AGENT_NOT_FOUND", f"Agent {address} not found")
        return stats

    def _supplier_data(self, supplier_id: str, now: datetime, category=None, region=None):
        data = self.data_source.get_supplier_data(supplier_id, now, category, region)
        if data is None:
            raise NotFoundError("SUPPLIER_NOT_FOUND", f"Supplier {supplier_id} not found")
        return data

    def _dataset(self, dataset_id: str):
        record = self.data_source.get_dataset_record(dataset_id)
        if record is None:
            raise NotFoundError("DATASET_NOT_FOUND", f"Dataset {dataset_id} not found")
        return record

    # ------------------------------------------------------------------ #
    # Compliance
    # ------------------------------------------------------------------ #

    def _compliance_screening_check(self, p: dict, now: datetime) -> dict[str, Any]:
        name = p["entityName"]
        matches = self.compliance.generate_matches(name, p["entityType"])
        return {
            "entityName": name,
            "screening_status": self.compliance.screening_status(matches),
            "match_confidence": self.compliance.match_confidence(matches),
            "matches": matches,
            "evidence_bundle": self.compliance.evidence_bundle(name, matches, now),
            "confidence": self.compliance.screening_confidence(
                matches, bool(p.get("identifiers")), bool(p.get("addresses"))
            ),
        }

    def _compliance_exposure_chain(self, p: dict, now: datetime) -> dict[str, Any]:
        address = p["address"]
        self._require_address(address)
        chain = self.compliance.exposure_chain(address, p["ownershipDepth"])
        return {
            "address": address,
            "chain": chain,
            "aggregate_risk": self.compliance.aggregate_risk(chain),
            "total_entities_scanned": len(chain),
        }

    def _compliance_jurisdiction_risk(self, p: dict, now: datetime) -> dict[str, Any]:
        code, industry = p["jurisdiction"], p.get("industry")
        self._require_jurisdiction(code, self.data_source.jurisdiction_supported(code))
        score = self.compliance.jurisdiction_risk_score(code, industry)
        return {
            "jurisdiction": code,
            "risk_score": score,
            "risk_level": self.compliance.jurisdiction_risk_level(score),
            "risk_factors": self.compliance.risk_factors(code, industry),
            "sanctions_programs": self.compliance.sanctions_programs(code),
            "last_updated": self.compliance.last_updated(code),
        }

    # ------------------------------------------------------------------ #
    # Address risk
    # ------------------------------------------------------------------ #

    def _risk_score(self, p: dict, now: datetime) -> dict[str, Any]:
        address = p["address"]
        self._require_address(address)
        factors = self.risk.risk_factors(address)
        score = self.risk.risk_score(factors)
        return {
            "address": address,
            "risk_score": score,
            "risk_level": self.risk.risk_level(score),
            "risk_factors": [f.to_dict() for f in factors],
            "sanctions_proximity": self.risk.sanctions_proximity(address),
            "confidence": self.risk.confidence(address),
        }

    def _risk_exposure_paths(self, p: dict, now: datetime) -> dict[str, Any]:
        address = p["address"]
        self._require_address(address)
        paths = self.risk.exposure_paths(address, p["maxHops"], p["threshold"])
        return {
            "address": address,
            "paths": paths,
            "total_exposure": self.risk.total_exposure(paths),
            "highest_risk_path_score": self.risk.highest_risk_path_score(paths),
        }

    def _risk_entity_profile(self, p: dict, now: datetime) -> dict[str, Any]:
        self._require_address(p["address"])
        return self.risk.entity_profile(p["address"])

    # ------------------------------------------------------------------ #
    # Supplier
    # ------------------------------------------------------------------ #

    def _supplier_score(self, p: dict, now: datetime) -> dict[str, Any]:
        data = self._supplier_data(p["supplierId"], now, p.get("category"), p.get("region"))
        score = self.supplier.supplier_score(data)
        return {
            "supplierId": data.supplier_id,
            "supplier_score": score,
            "reliability_grade": self.supplier.reliability_grade(score),
            "fill_rate": self.supplier.fill_rate(data),
            "on_time_rate": self.supplier.on_time_rate(data),
            "defect_rate": self.supplier.defect_rate(data),
            "risk_factors": self.supplier.risk_factors(data),
            "confidence": self.supplier.confidence(data),
        }

    def _supplier_lead_time(self, p: dict, now: datetime) -> dict[str, Any]:
        data = self._supplier_data(p["supplierId"], now, p.get("category"))
        horizon = p["horizonDays"]
        return {
            "supplierId": data.supplier_id,
            **self.supplier.lead_time_forecast(data, horizon),
            "forecast_window_days": horizon,
            "confidence": self.supplier.confidence(data),
        }

    def _supplier_disruption_alerts(self, p: dict, now: datetime) -> dict[str, Any]:
        """Alerts for one supplier, or for every monitored supplier.

        An unknown supplier id yields no alerts rather than a 404.
        """
        supplier_id, region = p.get("supplierId"), p.get("region")
        if supplier_id:
            data = self.data_source.get_supplier_data(supplier_id, now, None, region)
            suppliers = [data] if data is not None else []
        else:
            suppliers = self.data_source.get_all_supplier_alerts(now, region)
        alerts = []
        for data in suppliers:
            alerts.extend(self.supplier.disruption_alerts(data))
        alerts = self.supplier.filter_by_risk_tolerance(alerts, p["riskTolerance"])
        return {"alerts": alerts, "total_alerts": len(alerts)}

    # ------------------------------------------------------------------ #
    # Identity
    # ------------------------------------------------------------------ #

    def _identity_reputation(self, p: dict, now: datetime) -> dict[str, Any]:
        stats = self._agent(p["agentAddress"])
        return {
            "agentAddress": p["agentAddress"],
            "trustScore": self.identity.trust_score(stats),
            "completionRate": self.identity.completion_rate(stats),
            "disputeRate": self.identity.dispute_rate(stats),
            "totalTasks": stats.completed_tasks,
            "onchainIdentityState": self.identity.identity_state(stats),
            "confidence": self.identity.confidence(stats),
        }

    def _identity_history(self, p: dict, now: datetime) -> dict[str, Any]:
        stats = self._agent(p["agentAddress"])
        entries, total = self.identity.history(stats, p["limit"], p["offset"])
        return {"agentAddress": p["agentAddress"], "entries": entries, "total": total}

    def _identity_trust_breakdown(self, p: dict, now: datetime) -> dict[str, Any]:
        stats = self._agent(p["agentAddress"])
        return {
            "agentAddress": p["agentAddress"],
            "overallTrustScore": self.identity.trust_score(stats),
            "components": self.identity.trust_components(stats),
            "confidence": self.identity.confidence(stats),
        }

    # ------------------------------------------------------------------ #
    # Regulation
    # ------------------------------------------------------------------ #

    def _require_regulation(self, code: str) -> None:
        self._require_jurisdiction(code, self.data_source.regulation_available(code))

    def _regulation_delta(self, p: dict, now: datetime) -> dict[str, Any]:
        code = p["jurisdiction"]
        self._require_regulation(code)
        deltas = self.regulation.deltas(code, p["since"], p.get("industry"), p["source_priority"])
        return {"jurisdiction": code, "deltas": deltas, "total_changes": len(deltas)}

    def _regulation_impact(self, p: dict, now: datetime) -> dict[str, Any]:
        code = p["jurisdiction"]
        self._require_regulation(code)
        impacts = self.regulation.impacts(code, p.get("industry"), p.get("ruleId"), p["control_framework"])
        return {"jurisdiction": code, "impacts": impacts, "total_impacts": len(impacts)}

    def _regulation_map_controls(self, p: dict, now: datetime) -> dict[str, Any]:
        code = p["jurisdiction"]
        self._require_regulation(code)
        return {
            "ruleId": p["ruleId"],
            "control_framework": p["control_framework"],
            "jurisdiction": code,
            **self.regulation.control_mapping(p["ruleId"], p["control_framework"], code),
        }

    # ------------------------------------------------------------------ #
    # Demand
    # ------------------------------------------------------------------ #

    def _demand_index(self, p: dict, now: datetime) -> dict[str, Any]:
        geo_type, geo_code, category = p["geoType"], p["geoCode"], p["category"]
        self._require_geo(geo_code)
        index = self.demand.demand_index(geo_code, category, p["seasonalityMode"])
        confidence = self.demand.confidence(geo_code, category)
        return {
            "geoType": geo_type,
            "geoCode": geo_code,
            "category": category,
            "demand_index": index,
            "velocity": self.demand.velocity(geo_code, category),
            "confidence_interval": self.demand.confidence_interval(index, confidence),
            "comparable_geos": self.demand.comparable_geos(geo_code, geo_type, category),
            "confidence": confidence,
        }

    def _demand_trend(self, p: dict, now: datetime) -> dict[str, Any]:
        geo_code, category, window = p["geoCode"], p["category"], p["lookbackWindow"]
        self._require_geo(geo_code)
        return {
            "geoType": p["geoType"],
            "geoCode": geo_code,
            "category": category,
            "lookbackWindow": window,
            "data_points": self.demand.trend_points(geo_code, category, window),
            "trend_direction": self.demand.trend_direction(geo_code, category, window),
            "trend_strength": self.demand.trend_strength(geo_code, category, window),
        }

    def _demand_anomalies(self, p: dict, now: datetime) -> dict[str, Any]:
        geo_code = p["geoCode"]
        self._require_geo(geo_code)
        anomalies = self.demand.anomalies(geo_code, p["geoType"], p.get("category"), p["threshold"])
        return {
            "geoType": p["geoType"],
            "geoCode": geo_code,
            "anomalies": anomalies,
            "total_anomalies": len(anomalies),
        }

    # ------------------------------------------------------------------ #
    # Provenance
    # ------------------------------------------------------------------ #

    def _provenance_lineage(self, p: dict, now: datetime) -> dict[str, Any]:
        dataset_id = p["datasetId"]
        self._dataset(dataset_id)
        records = self.data_source.get_all_records()
        return {
            "datasetId": dataset_id,
            **self.provenance.lineage(records, dataset_id, p["maxDepth"], now),
        }

    def _provenance_freshness(self, p: dict, now: datetime) -> dict[str, Any]:
        record = self._dataset(p["datasetId"])
        return {
            "datasetId": record.dataset_id,
            **self.provenance.freshness_report(record, p["maxStalenessMs"], now),
        }

    def _provenance_verify_hash(self, p: dict, now: datetime) -> dict[str, Any]:
        record = self._dataset(p["datasetId"])
        algorithm = p["algorithm"]
        result = self.provenance.verify_hash(record.content, p["expectedHash"], algorithm)
        return {
            "datasetId": record.dataset_id,
            "verified": result["verified"],
            "computedHash": result["computedHash"],
            "algorithm": algorithm,
            "matchDetails": {
                "expectedHash": p["expectedHash"],
                "match": result["match"],
                "bytesVerified": result["bytesVerified"],
            },
            "attestation_ref": self.provenance.attestation_ref(
                record.dataset_id, algorithm, result["computedHash"], now
            ),
        }
