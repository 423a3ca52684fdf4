"""
Health runner - Orchestrates one health check cycle.

This module probes every endpoint, scores the results against the
existing log, persists them, and derives the process exit code.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from statpulse.health import config
from statpulse.health.anomaly import detect_anomaly
from statpulse.health.checks import probe_endpoint
from statpulse.health.config import HealthSettings
from statpulse.health.models import EndpointDescriptor, ProbeResult
from statpulse.health.store import HealthLogStore

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ALL_FAILED = 1

Prober = Callable[[EndpointDescriptor, int], ProbeResult]


@dataclass
class RunReport:
    """Outcome of one cycle."""

    results: List[ProbeResult] = field(default_factory=list)
    healthy: int = 0
    exit_code: int = EXIT_OK

    @property
    def total(self) -> int:
        return len(self.results)


def exit_code_for(results: Sequence[ProbeResult]) -> int:
    """
    Exit code for a set of results.

    Returns:
        EXIT_ALL_FAILED if no result is ok (including no results at all),
        EXIT_OK otherwise
    """
    if any(result.ok for result in results):
        return EXIT_OK
    return EXIT_ALL_FAILED


class HealthCheckRunner:
    """
    Runs one health check cycle over a fixed endpoint list.

    Endpoints are probed one after another, never concurrently, so that
    requests do not compete for the network and skew response times.
    """

    def __init__(
        self,
        endpoints: Sequence[EndpointDescriptor],
        settings: HealthSettings,
        store: HealthLogStore,
        prober: Optional[Prober] = None,
    ):
        """
        Args:
            endpoints: Endpoints in probing order
            settings: Timeout and anomaly thresholds
            store: Log store to read the baseline from and append to
            prober: Callable probing one endpoint with a timeout in ms
                    (default: probe_endpoint)
        """
        self.endpoints = list(endpoints)
        self.settings = settings
        self.store = store
        self.prober = prober or probe_endpoint

    def run(self) -> RunReport:
        """
        Execute the cycle.

        Returns:
            RunReport with the annotated results and the exit code

        Raises:
            OSError: If the log cannot be written
        """
        logger.info("=== StatPulse health check starting ===")

        results: List[ProbeResult] = []
        for endpoint in self.endpoints:
            results.append(self.prober(endpoint, self.settings.timeout_ms))

        # Snapshot taken before this run's results are appended, so the
        # current reading is never part of its own baseline.
        history = self.store.load()

        for result in results:
            self._annotate(result, history)

        self.store.save(list(history) + [result.to_dict() for result in results])

        healthy = sum(1 for result in results if result.ok)
        logger.info(
            "=== Health check complete - %d/%d endpoints healthy ===",
            healthy,
            len(results),
        )

        exit_code = exit_code_for(results)
        if exit_code != EXIT_OK:
            if results:
                logger.error("All endpoints failed - exiting with code %d", exit_code)
            else:
                logger.error("No endpoints configured - exiting with code %d", exit_code)

        return RunReport(results=results, healthy=healthy, exit_code=exit_code)

    def _annotate(self, result: ProbeResult, history: Sequence[dict]) -> None:
        current_ms = None if result.error else result.response_time_ms
        result.anomaly = detect_anomaly(
            result.endpoint,
            current_ms,
            history,
            window=self.settings.anomaly_window,
            min_samples=self.settings.anomaly_min_samples,
            warning_factor=self.settings.warning_factor,
            critical_factor=self.settings.critical_factor,
        )
        if result.anomaly.detected:
            logger.warning(
                "%s ANOMALY (%s): %.2fx rolling avg (%dms baseline, %dms actual)",
                result.endpoint,
                result.anomaly.severity.value,
                result.anomaly.deviation_factor,
                result.anomaly.rolling_avg_ms,
                result.response_time_ms,
            )


def run_health_check(
    config_path: Optional[str] = None,
    log_path: Optional[str] = None,
    timeout_ms: Optional[int] = None,
) -> int:
    """
    Run a health check cycle and return the exit code.

    Args:
        config_path: Path to config file (optional)
        log_path: Health log location, overriding the config
        timeout_ms: Per-request timeout, overriding the config

    Returns:
        Exit code: 0 if any endpoint is healthy, 1 if all failed

    Raises:
        Exception: Configuration and log write errors propagate
    """
    health_config = config.load_config(config_path)
    settings = health_config.settings.with_overrides(
        log_path=log_path, timeout_ms=timeout_ms
    )

    store = HealthLogStore(
        Path(settings.log_path) if settings.log_path else None,
        max_entries=settings.max_log_entries,
    )
    runner = HealthCheckRunner(health_config.endpoints, settings, store)
    return runner.run().exit_code
