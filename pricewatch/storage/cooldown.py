"""
Persisted alert cooldown cache.

The cache is a flat JSON object mapping symbol -> epoch milliseconds of the
last alert sent for that symbol. It is loaded once per check cycle, mutated
in memory and written back whole at the end of the cycle.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional

from .keys import StorageError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class CooldownCache:
    """File-backed symbol -> last alert timestamp map."""

    def __init__(self, path: Path, clock: Optional[Callable[[], int]] = None):
        """
        Initialize cooldown cache.

        Args:
            path: JSON file holding the cache
            clock: Callable returning the current epoch milliseconds
        """
        self.path = Path(path)
        self.clock = clock or now_ms

    def load(self) -> dict[str, int]:
        """
        Load the cache from disk.

        A missing, unreadable or corrupt file yields an empty map. The legacy
        shape ``{"date": ..., "alerts": {...}}`` is flattened.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Cooldown cache unreadable at {self.path}, starting empty: {e}")
            return {}

        return self._normalize(raw)

    def save(self, cache: dict[str, int]) -> None:
        """
        Overwrite the cache file with ``cache``.

        Raises:
            StorageError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(cache, f, indent=2, sort_keys=True)
        except OSError as e:
            raise StorageError("save cooldown cache", str(self.path), str(e)) from e

    def purge_expired(self, cache: dict[str, int], window_ms: int) -> dict[str, int]:
        """Return a copy of ``cache`` without entries older than ``window_ms``."""
        now = self.clock()
        return {
            symbol: timestamp
            for symbol, timestamp in cache.items()
            if now - timestamp <= window_ms
        }

    def is_active(self, cache: dict[str, int], symbol: str, window_ms: int) -> bool:
        """Whether ``symbol`` was alerted within the cooldown window."""
        timestamp = cache.get(symbol)
        if timestamp is None:
            return False
        return self.clock() - timestamp <= window_ms

    def _normalize(self, raw: Any) -> dict[str, int]:
        if not isinstance(raw, dict):
            logger.warning(f"Cooldown cache at {self.path} is not an object, ignoring")
            return {}

        # Legacy: {"date": "YYYY-MM-DD", "alerts": {symbol: ts}}
        if isinstance(raw.get("alerts"), dict):
            raw = raw["alerts"]

        cache: dict[str, int] = {}
        for symbol, timestamp in raw.items():
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                logger.debug(f"Dropping malformed cooldown entry {symbol!r}: {timestamp!r}")
                continue
            cache[str(symbol)] = int(timestamp)
        return cache
