"""
Monitored asset list.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

import yaml

logger = logging.getLogger(__name__)


class AssetType(str, Enum):
    """Kind of instrument."""

    STOCK = "stock"
    CRYPTO = "crypto"


@dataclass(frozen=True)
class Asset:
    """An instrument to monitor."""

    symbol: str
    name: str
    type: AssetType = AssetType.STOCK

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Asset":
        """
        Build an asset from a config entry.

        Raises:
            ValueError: If the symbol is missing or the type unknown
        """
        symbol = str(data.get("symbol") or "").strip()
        if not symbol:
            raise ValueError("Asset symbol is required")
        name = str(data.get("name") or symbol).strip()
        asset_type = AssetType(str(data.get("type") or "stock").strip().lower())
        return cls(symbol=symbol, name=name, type=asset_type)


class AssetRepository:
    """
    Reads the configured asset list from a YAML or JSON file.

    The file is re-read on every call so edits made between check cycles
    take effect without a restart.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def list_assets(self) -> list[Asset]:
        """
        Return the current assets, in file order, without duplicate symbols.

        A missing or unparsable file yields an empty list.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except FileNotFoundError:
            logger.warning(f"Asset file not found: {self.path}")
            return []
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Cannot read asset file {self.path}: {e}")
            return []

        if isinstance(raw, dict):
            raw = raw.get("assets")
        if not isinstance(raw, list):
            logger.error(f"Asset file {self.path} must contain a list of assets")
            return []

        return parse_assets(raw)


def parse_assets(entries: Iterable[Any]) -> list[Asset]:
    """Parse asset entries, skipping invalid ones and repeated symbols."""
    assets: list[Asset] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping invalid asset entry: {entry!r}")
            continue
        try:
            asset = Asset.from_dict(entry)
        except ValueError as e:
            logger.warning(f"Skipping invalid asset entry {entry!r}: {e}")
            continue
        if asset.symbol in seen:
            continue
        seen.add(asset.symbol)
        assets.append(asset)
    return assets


def is_weekend(timezone: str, now: Optional[datetime] = None) -> bool:
    """Whether it is Saturday or Sunday in ``timezone``."""
    tz = ZoneInfo(timezone)
    current = now.astimezone(tz) if now is not None else datetime.now(tz)
    return current.weekday() >= 5


def filter_tradable(
    assets: list[Asset],
    timezone: str,
    now: Optional[datetime] = None,
) -> list[Asset]:
    """Drop stocks on weekends; crypto trades every day."""
    if not is_weekend(timezone, now):
        return list(assets)
    return [asset for asset in assets if asset.type != AssetType.STOCK]
