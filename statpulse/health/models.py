"""
Health models - Data structures shared by the health check pipeline.

These dataclasses describe what is probed (EndpointDescriptor, MetricSpec)
and what a probe produces (ProbeResult, DomainMetric, AnomalyVerdict).
ProbeResult.to_dict() is the single place defining the health-log shape.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

MetricValue = Union[int, float, None]


class MetricKind(str, Enum):
    """Kinds of domain metric that can be derived from a response body."""

    COUNT = "count"
    SIZE_KB = "size_kb"


class Severity(str, Enum):
    """Anomaly severity levels."""

    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class MetricSpec:
    """
    Plain-data description of the domain metric for an endpoint.

    Attributes:
        kind: Which extractor to apply
        label: Human-readable label stored next to the value
        pattern: Literal text to count (required for MetricKind.COUNT)
    """

    kind: MetricKind
    label: str
    pattern: Optional[str] = None


@dataclass(frozen=True)
class EndpointDescriptor:
    """
    A single endpoint to probe.

    Attributes:
        name: Unique key used to correlate history in the log
        url: Fully-qualified public URL (no auth)
        metric: Domain metric derived from the response body
    """

    name: str
    url: str
    metric: MetricSpec


@dataclass
class DomainMetric:
    """Label/value pair produced by a metric extractor."""

    label: str
    value: MetricValue = None

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": self.value}


@dataclass
class AnomalyVerdict:
    """Outcome of comparing a response time against its rolling baseline."""

    detected: bool = False
    rolling_avg_ms: Optional[int] = None
    deviation_factor: Optional[float] = None
    severity: Optional[Severity] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.detected:
            return {"detected": False}
        return {
            "detected": True,
            "rollingAvgMs": self.rolling_avg_ms,
            "deviationFactor": self.deviation_factor,
            "severity": self.severity.value if self.severity else None,
        }


@dataclass
class ProbeResult:
    """
    Structured result of one probe against one endpoint.

    `anomaly` starts as not-detected and is replaced by the runner once
    the prior log has been consulted.
    """

    endpoint: str
    url: str
    timestamp: str
    extra_metric: DomainMetric
    status: Optional[int] = None
    ok: bool = False
    response_time_ms: Optional[int] = None
    content_type_valid: bool = False
    response_size_kb: Optional[float] = None
    anomaly: AnomalyVerdict = field(default_factory=AnomalyVerdict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the health-log representation (fixed key order)."""
        return {
            "endpoint": self.endpoint,
            "url": self.url,
            "timestamp": self.timestamp,
            "status": self.status,
            "ok": self.ok,
            "responseTimeMs": self.response_time_ms,
            "contentTypeValid": self.content_type_valid,
            "responseSizeKB": self.response_size_kb,
            "extraMetric": self.extra_metric.to_dict(),
            "anomaly": self.anomaly.to_dict(),
            "error": self.error,
        }
