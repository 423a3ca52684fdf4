"""
Health configuration - Loads and validates probe settings and endpoints.

Configuration is a JSON file with two optional sections. Anything missing
falls back to the compiled-in defaults.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from statpulse.health.endpoints import DEFAULT_ENDPOINTS, EXTRACTORS
from statpulse.health.models import EndpointDescriptor, MetricKind, MetricSpec

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent


# Configuration schema structure
# {
#   "settings": {
#     "timeout_ms": int,
#     "max_log_entries": int,
#     "anomaly_window": int,
#     "anomaly_min_samples": int,
#     "warning_factor": float,
#     "critical_factor": float,
#     "log_path": Optional[str]
#   },
#   "endpoints": [
#     {
#       "name": str,
#       "url": str,
#       "metric": {"kind": "count" | "size_kb", "label": str, "pattern": str}
#     }
#   ]
# }


@dataclass(frozen=True)
class HealthSettings:
    """Tunable constants for one health check run."""

    timeout_ms: int = 15_000
    max_log_entries: int = 200
    anomaly_window: int = 10
    anomaly_min_samples: int = 5
    warning_factor: float = 2.0
    critical_factor: float = 3.0
    log_path: Optional[str] = None

    def with_overrides(self, **overrides: Any) -> "HealthSettings":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return _validate_settings(_as_dict(replace(self, **changes)))


@dataclass(frozen=True)
class HealthConfig:
    """Validated settings plus the ordered endpoint registry."""

    settings: HealthSettings = field(default_factory=HealthSettings)
    endpoints: List[EndpointDescriptor] = field(
        default_factory=lambda: list(DEFAULT_ENDPOINTS)
    )


def load_config(config_path: Optional[str] = None) -> HealthConfig:
    """
    Load health check configuration from a JSON file.

    Args:
        config_path: Path to config file. If None, looks for
                     configs/statpulse.json, then configs/statpulse.example.json,
                     and otherwise uses the compiled-in defaults

    Returns:
        HealthConfig with validated settings and endpoints

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        ValueError: If the file or its settings are invalid
    """
    if config_path is None:
        main_path = PROJECT_ROOT / "configs" / "statpulse.json"
        example_path = PROJECT_ROOT / "configs" / "statpulse.example.json"

        if main_path.exists():
            config_path = str(main_path)
        elif example_path.exists():
            config_path = str(example_path)
            logger.warning(
                "Using example config file: %s. "
                "Create configs/statpulse.json for production.",
                example_path,
            )
        else:
            logger.info("No config file found, using built-in endpoints")
            return HealthConfig()

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if config_file.suffix in (".yaml", ".yml"):
        raise ValueError("Only JSON config files are supported")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a JSON object")

    settings = _validate_settings(data.get("settings", {}))

    if "endpoints" in data:
        endpoints = _validate_endpoints(data["endpoints"])
    else:
        endpoints = list(DEFAULT_ENDPOINTS)

    logger.info(
        "Loaded health config: %d endpoints configured from %s",
        len(endpoints),
        config_path,
    )

    return HealthConfig(settings=settings, endpoints=endpoints)


def _as_dict(settings: HealthSettings) -> Dict[str, Any]:
    return {
        "timeout_ms": settings.timeout_ms,
        "max_log_entries": settings.max_log_entries,
        "anomaly_window": settings.anomaly_window,
        "anomaly_min_samples": settings.anomaly_min_samples,
        "warning_factor": settings.warning_factor,
        "critical_factor": settings.critical_factor,
        "log_path": settings.log_path,
    }


def _validate_settings(raw: Any) -> HealthSettings:
    """
    Validate the settings section.

    Args:
        raw: Raw settings dict (missing keys take their defaults)

    Returns:
        HealthSettings

    Raises:
        ValueError: If a value has the wrong type or range
    """
    if not isinstance(raw, dict):
        raise ValueError("Field 'settings' must be a dict")

    unknown = set(raw) - set(_as_dict(HealthSettings()))
    if unknown:
        raise ValueError(f"Unknown settings: {sorted(unknown)}")

    defaults = HealthSettings()
    values = {
        "timeout_ms": raw.get("timeout_ms", defaults.timeout_ms),
        "max_log_entries": raw.get("max_log_entries", defaults.max_log_entries),
        "anomaly_window": raw.get("anomaly_window", defaults.anomaly_window),
        "anomaly_min_samples": raw.get(
            "anomaly_min_samples", defaults.anomaly_min_samples
        ),
        "warning_factor": raw.get("warning_factor", defaults.warning_factor),
        "critical_factor": raw.get("critical_factor", defaults.critical_factor),
        "log_path": raw.get("log_path", defaults.log_path),
    }

    for key in ("timeout_ms", "max_log_entries", "anomaly_window"):
        value = values[key]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"Setting '{key}' must be a positive int")

    min_samples = values["anomaly_min_samples"]
    if isinstance(min_samples, bool) or not isinstance(min_samples, int):
        raise ValueError("Setting 'anomaly_min_samples' must be an int")
    if not 1 <= min_samples <= values["anomaly_window"]:
        raise ValueError(
            "Setting 'anomaly_min_samples' must be between 1 and 'anomaly_window'"
        )

    for key in ("warning_factor", "critical_factor"):
        value = values[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"Setting '{key}' must be a number")
        if value <= 0:
            raise ValueError(f"Setting '{key}' must be positive")
        values[key] = float(value)

    if values["critical_factor"] < values["warning_factor"]:
        raise ValueError("'critical_factor' must not be below 'warning_factor'")

    if values["log_path"] is not None and not isinstance(values["log_path"], str):
        raise ValueError("Setting 'log_path' must be a string")

    return HealthSettings(**values)


def _validate_endpoints(raw: Any) -> List[EndpointDescriptor]:
    """
    Validate the endpoints section, skipping invalid entries.

    Args:
        raw: Raw list of endpoint dicts

    Returns:
        Endpoints in declared order

    Raises:
        ValueError: If the section is not a list
    """
    if not isinstance(raw, list):
        raise ValueError("Field 'endpoints' must be a list")

    endpoints: List[EndpointDescriptor] = []
    seen = set()
    for index, endpoint_config in enumerate(raw):
        try:
            endpoint = _validate_endpoint_config(index, endpoint_config)
            if endpoint.name in seen:
                raise ValueError(f"Duplicate endpoint name: {endpoint.name}")
        except ValueError as e:
            logger.error("Invalid config for endpoint #%d: %s", index, e)
            continue
        seen.add(endpoint.name)
        endpoints.append(endpoint)

    return endpoints


def _validate_endpoint_config(index: int, config: Dict[str, Any]) -> EndpointDescriptor:
    """
    Validate a single endpoint's configuration.

    Args:
        index: Position in the endpoints list (for messages)
        config: Raw configuration dict

    Returns:
        EndpointDescriptor

    Raises:
        ValueError: If config is invalid
    """
    if not isinstance(config, dict):
        raise ValueError(f"Config must be a dict for endpoint #{index}")

    for key in ("name", "url"):
        if key not in config:
            raise ValueError(f"Missing required field '{key}' for endpoint #{index}")
        if not isinstance(config[key], str) or not config[key].strip():
            raise ValueError(
                f"Field '{key}' must be a non-empty string for endpoint #{index}"
            )

    name = config["name"]
    metric_config = config.get("metric")
    if not isinstance(metric_config, dict):
        raise ValueError(f"Field 'metric' must be a dict for endpoint: {name}")

    try:
        kind = MetricKind(metric_config.get("kind"))
    except ValueError:
        valid_kinds = tuple(k.value for k in EXTRACTORS)
        raise ValueError(
            f"Field 'metric.kind' must be one of {valid_kinds} for endpoint: {name}"
        )

    label = metric_config.get("label")
    if not isinstance(label, str) or not label:
        raise ValueError(
            f"Field 'metric.label' must be a non-empty string for endpoint: {name}"
        )

    pattern = metric_config.get("pattern")
    if kind is MetricKind.COUNT and (not isinstance(pattern, str) or not pattern):
        raise ValueError(
            f"Field 'metric.pattern' is required for count metrics: {name}"
        )

    return EndpointDescriptor(
        name=name,
        url=config["url"],
        metric=MetricSpec(
            kind=kind,
            label=label,
            pattern=pattern if isinstance(pattern, str) else None,
        ),
    )
