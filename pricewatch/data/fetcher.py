"""
Yahoo Finance data fetcher.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

import pandas as pd
import yfinance as yf

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricePoint:
    """Daily close of a symbol."""

    date: date
    close: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "close": self.close}


@dataclass
class LatestPair:
    """The two most recent valid closes of a symbol."""

    symbol: str
    previous_close: float
    latest_close: float
    as_of: date


def _valid_close(value: Any) -> Optional[float]:
    """Return ``value`` as a float, or None when missing or non-finite."""
    if value is None:
        return None
    try:
        close = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(close):
        return None
    return close


def _to_date(value: Any) -> date:
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


class StockDataFetcher:
    """Fetches daily closes from Yahoo Finance."""

    def __init__(
        self,
        initial_lookback_days: int = 7,
        max_lookback_days: int = 60,
        timeout: float = 10.0,
    ):
        """
        Initialize fetcher.

        Args:
            initial_lookback_days: First window tried when looking for closes
            max_lookback_days: Upper bound for the window after doubling
            timeout: Per-request timeout in seconds
        """
        self.initial_lookback_days = initial_lookback_days
        self.max_lookback_days = max_lookback_days
        self.timeout = timeout

    def fetch_history(self, ticker: str, days: int) -> list[PricePoint]:
        """
        Fetch daily closes for the last ``days`` days.

        Args:
            ticker: Stock or crypto symbol (e.g., "AAPL", "BTC-USD")
            days: Size of the lookback window

        Returns:
            Valid price points sorted ascending by date

        Raises:
            Exception: Whatever the provider raises on network or parse errors
        """
        end = date.today() + timedelta(days=1)
        start = end - timedelta(days=days)

        stock = yf.Ticker(ticker)
        hist = stock.history(
            start=start.isoformat(),
            end=end.isoformat(),
            interval="1d",
            timeout=self.timeout,
        )

        if hist is None or hist.empty or "Close" not in hist:
            return []

        points = []
        for index, value in hist["Close"].items():
            close = _valid_close(value)
            if close is None:
                continue
            points.append(PricePoint(date=_to_date(index), close=close))

        points.sort(key=lambda point: point.date)
        return points

    def fetch_series(
        self,
        ticker: str,
        lookback_days: Optional[int] = None,
        max_days: Optional[int] = None,
    ) -> list[PricePoint]:
        """
        Fetch at least two valid closes, widening the window as needed.

        The window starts at ``lookback_days`` and doubles, capped at
        ``max_days``, until two valid closes come back or the capped window
        has been tried. Provider errors count as an empty answer.

        Returns:
            Sorted series; fewer than two points when nothing better was found

        Raises:
            ValueError: If either window is smaller than one day
        """
        days = self.initial_lookback_days if lookback_days is None else lookback_days
        max_days = self.max_lookback_days if max_days is None else max_days
        if days < 1 or max_days < 1:
            raise ValueError(
                f"Lookback windows must be at least 1 day (got {days} and {max_days})"
            )
        days = min(days, max_days)

        points: list[PricePoint] = []
        while True:
            try:
                points = self.fetch_history(ticker, days)
            except Exception as e:
                logger.warning(f"History request for {ticker} ({days}d) failed: {e}")
                points = []

            if len(points) >= 2:
                return points

            if days >= max_days:
                break
            days = min(days * 2, max_days)
            logger.debug(f"{ticker}: {len(points)} closes, widening lookback to {days}d")

        logger.info(
            f"{ticker}: only {len(points)} close(s) after looking back {max_days} days"
        )
        return points

    def fetch_latest_pair(self, ticker: str) -> Optional[LatestPair]:
        """
        Fetch the previous and latest valid closes.

        Returns:
            LatestPair, or None when fewer than two closes are available
        """
        series = self.fetch_series(ticker)
        if len(series) < 2:
            return None

        previous, latest = series[-2], series[-1]
        return LatestPair(
            symbol=ticker,
            previous_close=previous.close,
            latest_close=latest.close,
            as_of=latest.date,
        )

    def fetch_current_price(self, ticker: str) -> Optional[float]:
        """
        Fetch the latest traded price.

        Returns:
            Price, or None if the provider has no price for the symbol
        """
        stock = yf.Ticker(ticker)
        try:
            price = stock.fast_info["lastPrice"]
        except Exception as e:
            logger.warning(f"Quote request for {ticker} failed: {e}")
            price = None

        price = _valid_close(price)
        if price is not None:
            return price

        # Fall back to the most recent daily close
        series = self.fetch_series(ticker)
        return series[-1].close if series else None
