"""Configuration loading for the scoring engine.

Loads per-service weights, classification scales, synthesis pools and tuning
settings from ``config/engine.yaml``. Loaded configuration is frozen: mappings
become read-only and lists become tuples, so one instance can be shared by
every request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

import yaml

from freshness import DEFAULT_STALENESS_THRESHOLD_SECONDS
from scoring import Scale


# --------------------------------------------------------------------------- #
# Locations
# --------------------------------------------------------------------------- #

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "engine.yaml"

SERVICE_NAMES = (
    "compliance", "risk", "supplier", "identity",
    "regulation", "demand", "provenance",
)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


@dataclass(frozen=True)
class ServiceConfig:
    """Configuration for a single service.

    Attributes:
        name: Service name (compliance, risk, supplier, ...)
        staleness_threshold_seconds: Age after which responses are stale
        weights: Factor name -> weight for composite scores
        scales: Scale name -> {floor, thresholds | steps}
        pools: Enum lists and lookup tables used during synthesis
        settings: Scalar tuning values
    """

    name: str
    staleness_threshold_seconds: int = DEFAULT_STALENESS_THRESHOLD_SECONDS
    weights: Mapping[str, float] = field(default_factory=lambda: _EMPTY)
    scales: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    pools: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    settings: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    def weight(self, name: str) -> float:
        try:
            return float(self.weights[name])
        except KeyError:
            raise KeyError(f"No weight '{name}' configured for {self.name}") from None

    def pool(self, name: str) -> Any:
        try:
            return self.pools[name]
        except KeyError:
            raise KeyError(f"No pool '{name}' configured for {self.name}") from None

    def setting(self, name: str, default: Any = None) -> Any:
        return self.settings.get(name, default)

    def scale(self, name: str) -> Scale:
        """Build the named classification scale.

        A scale entry has a ``floor`` label and either ``thresholds``
        (label -> lower bound) or ``steps`` ([lower bound, label] pairs,
        for non-string labels).
        """
        try:
            entry = self.scales[name]
        except KeyError:
            raise KeyError(f"No scale '{name}' configured for {self.name}") from None
        if "steps" in entry:
            return Scale.from_pairs(entry["steps"], entry["floor"])
        return Scale.from_mapping(entry.get("thresholds", _EMPTY), entry["floor"])


@dataclass(frozen=True)
class EngineConfig:
    """All service configurations loaded from one file."""

    services: Mapping[str, ServiceConfig] = field(default_factory=lambda: _EMPTY)
    source: Optional[Path] = None

    def service(self, name: str) -> ServiceConfig:
        """Return a service's configuration.

        Raises:
            KeyError: If the service has no block in the loaded file
        """
        try:
            return self.services[name]
        except KeyError:
            raise KeyError(f"Service '{name}' is not configured") from None


def _service_from_dict(name: str, data: Mapping[str, Any], default_threshold: int) -> ServiceConfig:
    data = data or {}
    return ServiceConfig(
        name=name,
        staleness_threshold_seconds=int(data.get("staleness_threshold_seconds", default_threshold)),
        weights=_freeze(dict(data.get("weights") or {})),
        scales=_freeze(dict(data.get("scales") or {})),
        pools=_freeze(dict(data.get("pools") or {})),
        settings=_freeze(dict(data.get("settings") or {})),
    )


def load_config(config_path: Optional[Path] = None) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Args:
        config_path: Path to the YAML file, defaults to config/engine.yaml

    Returns:
        Frozen EngineConfig with one ServiceConfig per ``services`` entry

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the YAML is invalid or not a mapping
    """
    config_path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        content = config_path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config in {config_path}: top level must be a mapping")

    default_threshold = int(data.get("staleness_threshold_seconds", DEFAULT_STALENESS_THRESHOLD_SECONDS))
    services_data = data.get("services") or {}
    services = {
        name: _service_from_dict(name, block, default_threshold)
        for name, block in services_data.items()
    }
    return EngineConfig(services=MappingProxyType(services), source=config_path)
