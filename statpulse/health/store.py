"""
Health store - Capped, append-only JSON log of probe results.

The log is read once at the start of a run and fully replaced once at
the end. A missing or corrupt file reads as an empty log.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 200
LOG_FILE_MODE = 0o644
DEFAULT_LOG_PATH = Path(__file__).parent.parent.parent / "data" / "health-log.json"


# Log file structure (newest last)
# [
#   {
#     "endpoint": str,
#     "url": str,
#     "timestamp": str,
#     "status": Optional[int],
#     "ok": bool,
#     "responseTimeMs": Optional[int],
#     "contentTypeValid": bool,
#     "responseSizeKB": Optional[float],
#     "extraMetric": {"label": str, "value": Optional[number]},
#     "anomaly": {"detected": bool, ...},
#     "error": Optional[str]
#   }
# ]


class HealthLogStore:
    """File-backed health log with a FIFO retention cap."""

    def __init__(
        self,
        log_path: Optional[Path] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """
        Args:
            log_path: JSON file to read and write. If None, uses
                      data/health-log.json under the project root
            max_entries: Number of most recent entries kept on save
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.log_path = Path(log_path) if log_path is not None else DEFAULT_LOG_PATH
        self.max_entries = max_entries

    def load(self) -> List[Dict[str, Any]]:
        """
        Load the log snapshot.

        Returns:
            Entries oldest first, or an empty list if the file is missing
            or does not hold a JSON array of objects
        """
        if not self.log_path.exists():
            logger.info("%s not found - starting fresh", self.log_path.name)
            return []

        try:
            with open(self.log_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(
                "Could not parse %s (%s) - resetting", self.log_path.name, e
            )
            return []

        if not isinstance(data, list):
            logger.warning(
                "%s is not an array - resetting to empty log", self.log_path.name
            )
            return []

        if not all(isinstance(entry, dict) for entry in data):
            logger.warning(
                "%s contains non-object entries - resetting to empty log",
                self.log_path.name,
            )
            return []

        logger.debug("Loaded %d log entries from %s", len(data), self.log_path)
        return data

    def save(self, entries: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Keep the newest max_entries entries and replace the log file.

        The file is written to a temporary sibling and renamed into place,
        so readers never see a partial log.

        Args:
            entries: Full log, oldest first

        Returns:
            The entries actually written

        Raises:
            OSError: If the log cannot be written
        """
        trimmed = list(entries)[-self.max_entries :]
        payload = json.dumps(trimmed, indent=2, ensure_ascii=False) + "\n"

        directory = self.log_path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.log_path.name}.", suffix=".tmp", dir=str(directory)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            # mkstemp creates the file as 0600
            os.chmod(tmp_name, LOG_FILE_MODE)
            os.replace(tmp_name, self.log_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(
            "Log saved - %d entries (max %d)", len(trimmed), self.max_entries
        )
        return trimmed
