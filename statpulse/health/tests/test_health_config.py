"""
Tests for health config and endpoint registry.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from statpulse.health import config, endpoints
from statpulse.health.models import MetricKind, MetricSpec


def valid_endpoint(name="Structures", **overrides):
    endpoint = {
        "name": name,
        "url": f"https://nsi.example.org/rest/{name.lower()}",
        "metric": {
            "kind": "count",
            "label": "DataStructure count",
            "pattern": "DataStructure",
        },
    }
    endpoint.update(overrides)
    return endpoint


class TestLoadConfig:
    """Tests for load_config function."""

    @pytest.fixture
    def temp_dir(self):
        """Create temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def write(self, temp_dir, data, name="statpulse.json"):
        path = temp_dir / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    def test_defaults_without_config_file(self, temp_dir):
        with patch.object(config, "PROJECT_ROOT", temp_dir):
            health_config = config.load_config()

        assert health_config.settings == config.HealthSettings()
        assert health_config.endpoints == endpoints.DEFAULT_ENDPOINTS

    def test_default_lookup_prefers_main_file(self, temp_dir):
        (temp_dir / "configs").mkdir()
        self.write(
            temp_dir / "configs",
            {"settings": {"timeout_ms": 1000}},
            name="statpulse.json",
        )
        self.write(
            temp_dir / "configs",
            {"settings": {"timeout_ms": 2000}},
            name="statpulse.example.json",
        )

        with patch.object(config, "PROJECT_ROOT", temp_dir):
            health_config = config.load_config()

        assert health_config.settings.timeout_ms == 1000

    def test_default_values(self):
        settings = config.HealthSettings()
        assert settings.timeout_ms == 15000
        assert settings.max_log_entries == 200
        assert settings.anomaly_window == 10
        assert settings.anomaly_min_samples == 5
        assert settings.warning_factor == 2.0
        assert settings.critical_factor == 3.0

    def test_load_full_config(self, temp_dir):
        path = self.write(
            temp_dir,
            {
                "settings": {
                    "timeout_ms": 5000,
                    "max_log_entries": 50,
                    "warning_factor": 1.5,
                    "critical_factor": 2,
                },
                "endpoints": [
                    valid_endpoint("Structures"),
                    {
                        "name": "Data Query",
                        "url": "https://nsi.example.org/rest/data",
                        "metric": {"kind": "size_kb", "label": "Response size KB"},
                    },
                ],
            },
        )

        health_config = config.load_config(path)

        assert health_config.settings.timeout_ms == 5000
        assert health_config.settings.max_log_entries == 50
        assert health_config.settings.critical_factor == 2.0
        assert [e.name for e in health_config.endpoints] == [
            "Structures",
            "Data Query",
        ]
        assert health_config.endpoints[1].metric.kind is MetricKind.SIZE_KB

    def test_missing_endpoints_section_uses_defaults(self, temp_dir):
        path = self.write(temp_dir, {"settings": {}})
        assert config.load_config(path).endpoints == endpoints.DEFAULT_ENDPOINTS

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            config.load_config(str(temp_dir / "nope.json"))

    def test_invalid_json(self, temp_dir):
        path = temp_dir / "statpulse.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ValueError):
            config.load_config(str(path))

    def test_yaml_rejected(self, temp_dir):
        path = temp_dir / "statpulse.yaml"
        path.write_text("settings: {}", encoding="utf-8")
        with pytest.raises(ValueError):
            config.load_config(str(path))

    def test_invalid_endpoints_skipped(self, temp_dir):
        path = self.write(
            temp_dir,
            {
                "endpoints": [
                    valid_endpoint("Good"),
                    valid_endpoint("NoUrl", url=""),
                    valid_endpoint("BadKind", metric={"kind": "x", "label": "y"}),
                    valid_endpoint(
                        "NoPattern", metric={"kind": "count", "label": "n"}
                    ),
                    "not a dict",
                    valid_endpoint("Good"),
                ]
            },
        )

        health_config = config.load_config(path)

        assert [e.name for e in health_config.endpoints] == ["Good"]

    @pytest.mark.parametrize(
        "settings",
        [
            {"timeout_ms": 0},
            {"timeout_ms": "15000"},
            {"max_log_entries": -1},
            {"anomaly_min_samples": 11},
            {"anomaly_min_samples": 0},
            {"warning_factor": 3.0, "critical_factor": 2.0},
            {"warning_factor": True},
            {"log_path": 5},
            {"unknown": 1},
        ],
    )
    def test_invalid_settings(self, temp_dir, settings):
        path = self.write(temp_dir, {"settings": settings})
        with pytest.raises(ValueError):
            config.load_config(path)

    def test_with_overrides(self):
        settings = config.HealthSettings().with_overrides(
            timeout_ms=3000, log_path=None
        )
        assert settings.timeout_ms == 3000
        assert settings.log_path is None

    def test_with_overrides_validates(self):
        with pytest.raises(ValueError):
            config.HealthSettings().with_overrides(timeout_ms=-5)


class TestEndpointRegistry:
    """Tests for the endpoint registry and metric extractors."""

    def test_default_endpoints(self):
        names = [e.name for e in endpoints.DEFAULT_ENDPOINTS]
        assert names == ["Structures", "Data Query", "Codelists"]
        assert len(set(e.url for e in endpoints.DEFAULT_ENDPOINTS)) == 3

    def test_every_kind_has_extractor(self):
        assert set(endpoints.EXTRACTORS) == set(MetricKind)

    def test_count_metric(self):
        spec = MetricSpec(MetricKind.COUNT, "Codelist count", "Codelist")
        body = "<str:Codelist/><str:Codelist/><str:Codelist/>"

        metric = endpoints.extract_metric(spec, body)

        assert metric.label == "Codelist count"
        assert metric.value == 3

    def test_size_metric(self):
        spec = MetricSpec(MetricKind.SIZE_KB, "Response size KB")
        assert endpoints.extract_metric(spec, "é" * 512).value == 1.0

    def test_empty_metric(self):
        spec = MetricSpec(MetricKind.COUNT, "Codelist count", "Codelist")
        assert endpoints.empty_metric(spec).to_dict() == {
            "label": "Codelist count",
            "value": None,
        }
