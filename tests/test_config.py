"""Tests for config loading from engine.yaml."""

import pytest

from config import (
    DEFAULT_CONFIG_PATH,
    SERVICE_NAMES,
    EngineConfig,
    ServiceConfig,
    load_config,
)
from freshness import DEFAULT_STALENESS_THRESHOLD_SECONDS


class TestLoadConfig:
    """Test load_config() function."""

    def test_loads_from_yaml(self, tmp_path):
        """Should parse valid YAML into service configs."""
        config_file = tmp_path / "engine.yaml"
        config_file.write_text("""
staleness_threshold_seconds: 120
services:
  risk:
    weights:
      mixer_interaction: 0.6
      bridge_usage: 0.4
    scales:
      risk_level:
        floor: low
        thresholds: {high: 50}
    pools:
      tags: [a, b]
    settings:
      max_tags: 2
""")
        config = load_config(config_file)
        risk = config.service("risk")
        assert isinstance(config, EngineConfig)
        assert risk.staleness_threshold_seconds == 120
        assert risk.weight("mixer_interaction") == 0.6
        assert risk.pool("tags") == ("a", "b")
        assert risk.setting("max_tags") == 2
        assert risk.scale("risk_level").classify(50) == "high"
        assert config.source == config_file

    def test_service_threshold_overrides_default(self, tmp_path):
        config_file = tmp_path / "engine.yaml"
        config_file.write_text("""
staleness_threshold_seconds: 120
services:
  demand:
    staleness_threshold_seconds: 30
""")
        assert load_config(config_file).service("demand").staleness_threshold_seconds == 30

    def test_default_threshold_when_unset(self, tmp_path):
        config_file = tmp_path / "engine.yaml"
        config_file.write_text("services:\n  demand: {}\n")
        demand = load_config(config_file).service("demand")
        assert demand.staleness_threshold_seconds == DEFAULT_STALENESS_THRESHOLD_SECONDS

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "engine.yaml"
        config_file.write_text("")
        assert dict(load_config(config_file).services) == {}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.yaml")

    def test_invalid_yaml_raises(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("services: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(config_file)

    def test_non_mapping_raises(self, tmp_path):
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="top level must be a mapping"):
            load_config(config_file)

    def test_accepts_string_path(self, tmp_path):
        config_file = tmp_path / "engine.yaml"
        config_file.write_text("services:\n  risk: {}\n")
        assert load_config(str(config_file)).service("risk").name == "risk"


class TestBundledConfig:
    """The shipped config/engine.yaml covers every service."""

    def test_default_path_exists(self):
        assert DEFAULT_CONFIG_PATH.exists()

    def test_all_services_present(self):
        config = load_config()
        for name in SERVICE_NAMES:
            assert config.service(name).name == name

    def test_weights_sum_to_one(self):
        config = load_config()
        for name in ("risk", "supplier", "identity"):
            weights = config.service(name).weights
            assert sum(weights.values()) == pytest.approx(1.0)

    def test_supplier_weights(self):
        supplier = load_config().service("supplier")
        assert supplier.weight("fill_rate") == 0.35
        assert supplier.weight("on_time_rate") == 0.30
        assert supplier.weight("defect_rate") == 0.25
        assert supplier.weight("alert_penalty") == 0.10

    def test_jurisdiction_scale_boundary(self):
        scale = load_config().service("compliance").scale("jurisdiction_risk")
        assert scale.classify(80) == "critical"
        assert scale.classify(79) == "high"

    def test_numeric_label_scale(self):
        scale = load_config().service("compliance").scale("match_confidence")
        assert scale.classify(1.0) == 0.95
        assert scale.classify(0.1) == 0.4


class TestServiceConfig:
    """Test ServiceConfig lookups and immutability."""

    def test_missing_lookups_raise_key_error(self):
        config = ServiceConfig(name="empty")
        with pytest.raises(KeyError, match="No weight"):
            config.weight("x")
        with pytest.raises(KeyError, match="No pool"):
            config.pool("x")
        with pytest.raises(KeyError, match="No scale"):
            config.scale("x")

    def test_setting_default(self):
        assert ServiceConfig(name="empty").setting("missing", 7) == 7

    def test_unknown_service(self):
        with pytest.raises(KeyError, match="not configured"):
            load_config().service("weather")

    def test_frozen_mappings(self):
        risk = load_config().service("risk")
        with pytest.raises(TypeError):
            risk.weights["mixer_interaction"] = 1.0

    def test_frozen_dataclass(self):
        risk = load_config().service("risk")
        with pytest.raises(AttributeError):
            risk.name = "other"
