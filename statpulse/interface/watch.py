#!/usr/bin/env python3
"""
Health Watch CLI - Command-line interface for one health check run.

Usage:
    python -m statpulse.interface.watch [--config configs/statpulse.json]
                                        [--log-path data/health-log.json]
                                        [--timeout-ms 15000] [-v]

Exit codes:
    0: At least one endpoint is healthy
    1: Every endpoint failed, or the run itself failed
    130: Interrupted by the user
"""

import argparse
import logging
import sys
from typing import List, Optional

from statpulse.health import run_health_check


def setup_logging(verbose: bool = False) -> None:
    """
    Setup logging configuration.

    Args:
        verbose: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Probe SDMX endpoints and append the results to the health log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0    - At least one endpoint healthy
  1    - All endpoints failed, or the run failed
  130  - Interrupted

Examples:
  statpulse-check
  statpulse-check --config configs/statpulse.json
  statpulse-check --log-path /tmp/health-log.json --timeout-ms 5000 -v
        """,
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config file (default: configs/statpulse.json or built-in endpoints)",
    )

    parser.add_argument(
        "--log-path",
        default=None,
        help="Health log file (default: data/health-log.json)",
    )

    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Per-request timeout in milliseconds (default: 15000)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 (healthy), 1 (all failed or error), 130 (interrupted)
    """
    args = build_parser().parse_args(argv)

    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    try:
        exit_code = run_health_check(
            config_path=args.config,
            log_path=args.log_path,
            timeout_ms=args.timeout_ms,
        )
        logger.info("Health check completed with exit code: %d", exit_code)
        return exit_code
    except KeyboardInterrupt:
        logger.error("Health check interrupted by user")
        return 130
    except Exception as e:
        logger.error("Unhandled error: %s", e, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
