"""
Health anomaly detection - Response time against a rolling baseline.

The baseline is recomputed from the health log on every run; nothing is
kept between runs except the log itself.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from statpulse.health.models import AnomalyVerdict, Severity

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 10
DEFAULT_MIN_SAMPLES = 5
DEFAULT_WARNING_FACTOR = 2.0
DEFAULT_CRITICAL_FACTOR = 3.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def baseline_samples(
    endpoint_name: str,
    history: Sequence[Dict[str, Any]],
    window: int = DEFAULT_WINDOW,
) -> List[int]:
    """
    Most recent response times usable as a baseline for an endpoint.

    Entries without a response time, or recorded with a transport error,
    are skipped so that outages never drag the baseline down.

    Args:
        endpoint_name: Endpoint name as stored in the log
        history: Log entries, oldest first
        window: Maximum number of samples to return

    Returns:
        Up to `window` response times in milliseconds, oldest first
    """
    samples = [
        entry["responseTimeMs"]
        for entry in history
        if entry.get("endpoint") == endpoint_name
        and _is_number(entry.get("responseTimeMs"))
        and not entry.get("error")
    ]
    return samples[-window:]


def _is_number(value: Any) -> bool:
    # hand-edited logs may hold strings or NaN; bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def detect_anomaly(
    endpoint_name: str,
    current_ms: Optional[int],
    history: Sequence[Dict[str, Any]],
    window: int = DEFAULT_WINDOW,
    min_samples: int = DEFAULT_MIN_SAMPLES,
    warning_factor: float = DEFAULT_WARNING_FACTOR,
    critical_factor: float = DEFAULT_CRITICAL_FACTOR,
) -> AnomalyVerdict:
    """
    Decide whether a response time is anomalous for an endpoint.

    Args:
        endpoint_name: Endpoint name as stored in the log
        current_ms: Response time of this run, None if the probe failed
        history: Log snapshot taken before this run
        window: Number of recent samples in the rolling average
        min_samples: Samples required before anything is flagged
        warning_factor: Deviation factor for a warning
        critical_factor: Deviation factor for a critical anomaly

    Returns:
        AnomalyVerdict
    """
    if current_ms is None:
        return AnomalyVerdict()

    samples = baseline_samples(endpoint_name, history, window)
    if len(samples) < min_samples:
        logger.debug(
            "%s: %d baseline samples, %d required",
            endpoint_name,
            len(samples),
            min_samples,
        )
        return AnomalyVerdict()

    rolling_avg_ms = round_half_up(sum(samples) / len(samples))
    if rolling_avg_ms == 0:
        return AnomalyVerdict()

    deviation_factor = round(current_ms / rolling_avg_ms, 2)

    if deviation_factor >= critical_factor:
        severity = Severity.CRITICAL
    elif deviation_factor >= warning_factor:
        severity = Severity.WARNING
    else:
        return AnomalyVerdict()

    return AnomalyVerdict(
        detected=True,
        rolling_avg_ms=rolling_avg_ms,
        deviation_factor=deviation_factor,
        severity=severity,
    )
