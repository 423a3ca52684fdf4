"""
Tests for health anomaly detection.
"""

import pytest

from statpulse.health import anomaly
from statpulse.health.models import AnomalyVerdict, Severity


def entry(name, response_time_ms, error=None):
    """Minimal log entry as stored in the health log."""
    return {
        "endpoint": name,
        "responseTimeMs": response_time_ms,
        "ok": error is None,
        "error": error,
    }


def history_of(name, times):
    return [entry(name, ms) for ms in times]


class TestBaselineSamples:
    """Tests for baseline_samples function."""

    def test_filters_by_endpoint(self):
        history = history_of("A", [100, 110]) + history_of("B", [900])
        assert anomaly.baseline_samples("A", history) == [100, 110]

    def test_excludes_null_response_times(self):
        history = [entry("A", 100), entry("A", None), entry("A", 120)]
        assert anomaly.baseline_samples("A", history) == [100, 120]

    def test_excludes_failed_checks(self):
        history = [entry("A", 100), entry("A", 15000, error="timed out")]
        assert anomaly.baseline_samples("A", history) == [100]

    @pytest.mark.parametrize(
        "bad_value",
        ["fast", "120", True, [100], {"ms": 1}, float("nan"), float("inf")],
    )
    def test_skips_non_numeric_response_times(self, bad_value):
        history = [entry("A", 100), entry("A", bad_value), entry("A", 120.5)]
        assert anomaly.baseline_samples("A", history) == [100, 120.5]

    def test_keeps_most_recent_window(self):
        history = history_of("A", range(1, 21))
        assert anomaly.baseline_samples("A", history, window=10) == list(
            range(11, 21)
        )


class TestDetectAnomaly:
    """Tests for detect_anomaly function."""

    def test_failed_check_never_detected(self):
        history = history_of("A", [100] * 10)
        assert anomaly.detect_anomaly("A", None, history) == AnomalyVerdict()

    @pytest.mark.parametrize("samples", [0, 1, 2, 3, 4])
    def test_no_detection_below_min_samples(self, samples):
        """Cold start: nothing fires before five qualifying samples."""
        history = history_of("A", [100] * samples)
        verdict = anomaly.detect_anomaly("A", 100000, history)
        assert verdict.detected is False

    def test_detection_at_min_samples(self):
        history = history_of("A", [100] * 5)
        verdict = anomaly.detect_anomaly("A", 200, history)
        assert verdict.detected is True
        assert verdict.severity is Severity.WARNING

    def test_critical_scenario(self):
        """Nine samples averaging 100ms and a 350ms reading is critical."""
        history = history_of("A", [90, 110, 90, 110, 90, 110, 90, 110, 100])

        verdict = anomaly.detect_anomaly("A", 350, history)

        assert verdict.detected is True
        assert verdict.rolling_avg_ms == 100
        assert verdict.deviation_factor == 3.5
        assert verdict.severity is Severity.CRITICAL

    @pytest.mark.parametrize(
        "current_ms,detected,severity",
        [
            (100, False, None),
            (199, False, None),
            (200, True, Severity.WARNING),
            (299, True, Severity.WARNING),
            (300, True, Severity.CRITICAL),
            (1000, True, Severity.CRITICAL),
        ],
    )
    def test_severity_thresholds(self, current_ms, detected, severity):
        history = history_of("A", [100] * 10)

        verdict = anomaly.detect_anomaly("A", current_ms, history)

        assert verdict.detected is detected
        assert verdict.severity == severity

    def test_uses_only_last_window(self):
        """Older samples outside the window do not affect the average."""
        history = history_of("A", [1000] * 10 + [100] * 10)

        verdict = anomaly.detect_anomaly("A", 250, history)

        assert verdict.rolling_avg_ms == 100
        assert verdict.severity is Severity.WARNING

    def test_null_entries_excluded_from_average(self):
        history = history_of("A", [100] * 5) + [entry("A", None)] * 5

        verdict = anomaly.detect_anomaly("A", 300, history)

        assert verdict.rolling_avg_ms == 100
        assert verdict.severity is Severity.CRITICAL

    def test_failed_entries_do_not_count_as_samples(self):
        history = history_of("A", [100] * 4) + [entry("A", 15000, "timed out")] * 4

        verdict = anomaly.detect_anomaly("A", 1000, history)

        assert verdict.detected is False

    def test_non_2xx_entries_count_as_samples(self):
        """Only transport failures are excluded; HTTP errors still baseline."""
        history = [
            {"endpoint": "A", "responseTimeMs": 100, "ok": False, "error": None}
        ] * 5

        verdict = anomaly.detect_anomaly("A", 300, history)

        assert verdict.detected is True

    def test_other_endpoints_ignored(self):
        history = history_of("B", [100] * 10)
        assert anomaly.detect_anomaly("A", 1000, history).detected is False

    def test_zero_average_not_detected(self):
        history = history_of("A", [0] * 5)
        assert anomaly.detect_anomaly("A", 50, history).detected is False

    def test_average_rounds_half_up(self):
        history = history_of("A", [100, 101, 100, 101, 100, 101])

        verdict = anomaly.detect_anomaly("A", 202, history)

        assert verdict.rolling_avg_ms == 101
        assert verdict.deviation_factor == 2.0

    def test_custom_thresholds(self):
        history = history_of("A", [100] * 3)

        verdict = anomaly.detect_anomaly(
            "A",
            160,
            history,
            min_samples=3,
            warning_factor=1.5,
            critical_factor=2.5,
        )

        assert verdict.severity is Severity.WARNING


class TestVerdictSerialization:
    """Tests for AnomalyVerdict.to_dict."""

    def test_not_detected(self):
        assert AnomalyVerdict().to_dict() == {"detected": False}

    def test_detected(self):
        verdict = AnomalyVerdict(
            detected=True,
            rolling_avg_ms=100,
            deviation_factor=3.5,
            severity=Severity.CRITICAL,
        )
        assert verdict.to_dict() == {
            "detected": True,
            "rollingAvgMs": 100,
            "deviationFactor": 3.5,
            "severity": "critical",
        }
