"""
Date-partitioned human-readable log of fired alerts.
"""

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

from .keys import StorageError, sanitize_symbol

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".log"


def format_line(symbol: str, name: str, change_percent: float, timestamp: datetime) -> str:
    """Render one log line: ``[HH:MM:SS] SYMBOL (Name) ↑ N.NN%``."""
    arrow = "↑" if change_percent > 0 else "↓"
    return (
        f"[{timestamp.strftime('%H:%M:%S')}] {sanitize_symbol(symbol)} "
        f"({name}) {arrow} {abs(change_percent):.2f}%"
    )


class ActivityLog:
    """Append-only alert log, one file per calendar day."""

    def __init__(self, directory: Path, retention_days: int = 30):
        """
        Initialize activity log.

        Args:
            directory: Folder holding the ``YYYY-MM-DD.log`` files
            retention_days: Files older than this many days get deleted
        """
        self.directory = Path(directory)
        self.retention_days = retention_days
        self._last_cleanup: Optional[date] = None

    def path_for(self, day: date) -> Path:
        return self.directory / f"{day.isoformat()}{LOG_SUFFIX}"

    def append(
        self,
        symbol: str,
        name: str,
        change_percent: float,
        timestamp: datetime,
    ) -> Path:
        """
        Append an alert line to the log of ``timestamp``'s day.

        Raises:
            StorageError: If the line cannot be written
        """
        self._maybe_cleanup(timestamp.date())

        path = self.path_for(timestamp.date())
        line = format_line(symbol, name, change_percent, timestamp)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            raise StorageError("append activity log", symbol, str(e)) from e
        return path

    def cleanup(self, today: date) -> list[Path]:
        """
        Delete day files older than the retention window.

        Files whose name is not a ``YYYY-MM-DD.log`` date are left alone.
        Failures are logged, never raised.

        Returns:
            Paths that were removed
        """
        removed: list[Path] = []
        cutoff = today - timedelta(days=self.retention_days)
        try:
            candidates = list(self.directory.glob(f"*{LOG_SUFFIX}"))
        except OSError as e:
            logger.error(f"Cannot list activity logs in {self.directory}: {e}")
            return removed

        for path in candidates:
            try:
                day = date.fromisoformat(path.stem)
            except ValueError:
                continue
            if day >= cutoff:
                continue
            try:
                path.unlink()
                removed.append(path)
                logger.info(f"Removed old activity log {path.name}")
            except OSError as e:
                logger.error(f"Error removing old activity log {path}: {e}")

        return removed

    def _maybe_cleanup(self, today: date) -> None:
        # At most once per calendar day
        if self._last_cleanup == today:
            return
        self._last_cleanup = today
        if self.directory.exists():
            self.cleanup(today)
