"""
Price change detection.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pricewatch.data.assets import Asset
from pricewatch.data.fetcher import PricePoint

__all__ = [
    "Alert",
    "ChangeDetector",
    "ChangeResult",
    "Direction",
    "Outcome",
]


class Direction(str, Enum):
    """Direction of a price move."""

    UP = "up"
    DOWN = "down"

    @property
    def arrow(self) -> str:
        return "↑" if self is Direction.UP else "↓"

    @property
    def emoji(self) -> str:
        return "📈" if self is Direction.UP else "📉"


class Outcome(str, Enum):
    """What happened to a symbol during a check cycle."""

    INSUFFICIENT_DATA = "insufficient_data"
    BELOW_THRESHOLD = "below_threshold"
    ALREADY_ALERTED = "already_alerted"
    ALERTED = "alerted"
    ERROR = "error"


@dataclass
class Alert:
    """A qualifying price move, ready to be dispatched."""

    symbol: str
    name: str
    change_pct: float
    current_price: float
    triggered_at: datetime

    @property
    def direction(self) -> Direction:
        return Direction.UP if self.change_pct > 0 else Direction.DOWN

    @property
    def message(self) -> str:
        verb = "rose" if self.direction is Direction.UP else "fell"
        return (
            f"{self.name} ({self.symbol}) {verb} {abs(self.change_pct):.2f}% "
            f"to ${self.current_price:,.2f}"
        )


@dataclass
class ChangeResult:
    """Result of comparing the last two closes of a series."""

    outcome: Outcome
    change_pct: Optional[float] = None
    previous_close: Optional[float] = None
    latest_close: Optional[float] = None

    @property
    def qualifies(self) -> bool:
        """Whether the move reached the threshold (cooldown not considered)."""
        return self.outcome is Outcome.ALERTED


class ChangeDetector:
    """Compares the last two closes of a series against a percentage threshold."""

    def __init__(self, threshold_pct: float = 5.0):
        self.threshold_pct = threshold_pct

    @staticmethod
    def change_pct(previous: float, latest: float) -> Optional[float]:
        """Percentage change, None when ``previous`` is zero."""
        if previous == 0:
            return None
        return (latest - previous) * 100 / previous

    def evaluate(self, series: list[PricePoint]) -> ChangeResult:
        """
        Evaluate a price series.

        Args:
            series: Valid points sorted ascending by date

        Returns:
            ChangeResult with ALERTED when the move reaches the threshold
            (inclusive), BELOW_THRESHOLD when it does not, and
            INSUFFICIENT_DATA when fewer than two points exist or the
            previous close is zero
        """
        if len(series) < 2:
            return ChangeResult(outcome=Outcome.INSUFFICIENT_DATA)

        previous = series[-2].close
        latest = series[-1].close
        change = self.change_pct(previous, latest)
        if change is None:
            return ChangeResult(
                outcome=Outcome.INSUFFICIENT_DATA,
                previous_close=previous,
                latest_close=latest,
            )

        outcome = (
            Outcome.ALERTED if abs(change) >= self.threshold_pct else Outcome.BELOW_THRESHOLD
        )
        return ChangeResult(
            outcome=outcome,
            change_pct=change,
            previous_close=previous,
            latest_close=latest,
        )

    def build_alert(
        self, asset: Asset, result: ChangeResult, triggered_at: datetime
    ) -> Alert:
        """Create the alert for a qualifying result."""
        if not result.qualifies:
            raise ValueError(f"{asset.symbol} did not reach the threshold")
        return Alert(
            symbol=asset.symbol,
            name=asset.name,
            change_pct=result.change_pct,
            current_price=result.latest_close,
            triggered_at=triggered_at,
        )
