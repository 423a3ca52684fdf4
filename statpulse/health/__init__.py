"""
Health module - Periodic probing of SDMX endpoints.

This module probes a fixed list of endpoints, flags response times that
deviate from their recent baseline, and keeps a capped JSON log of results.
"""

from statpulse.health.config import load_config
from statpulse.health.runner import run_health_check

__all__ = ["load_config", "run_health_check"]
