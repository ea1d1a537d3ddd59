"""
Per-symbol price history snapshots.
"""

import json
import logging
from pathlib import Path

from pricewatch.data.fetcher import PricePoint
from .keys import StorageError, sanitize_symbol

logger = logging.getLogger(__name__)


class PriceHistoryStore:
    """Writes the simplified {date, close} series of each symbol to disk."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, symbol: str) -> Path:
        return self.directory / f"{sanitize_symbol(symbol)}.json"

    def save(self, symbol: str, series: list[PricePoint]) -> Path:
        """
        Overwrite the stored series for ``symbol``.

        Args:
            symbol: Ticker the series belongs to
            series: Price points, already sorted ascending

        Returns:
            Path of the written file

        Raises:
            StorageError: If the file cannot be written
        """
        path = self.path_for(symbol)
        records = [point.to_dict() for point in series]
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
        except OSError as e:
            raise StorageError("save price history", symbol, str(e)) from e

        logger.debug(f"Saved {len(records)} price points for {symbol} to {path}")
        return path
