"""
Main application entry point.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from dotenv import load_dotenv

load_dotenv()

from pricewatch.config import AppConfig
from pricewatch.data.assets import Asset, AssetRepository, filter_tradable
from pricewatch.data.fetcher import PricePoint, StockDataFetcher
from pricewatch.events import EventCode, EventEmitter
from pricewatch.notifiers.base import NotificationResult, Notifier, build_notifiers
from pricewatch.rules.engine import Alert, ChangeDetector, Outcome
from pricewatch.storage.activity_log import ActivityLog
from pricewatch.storage.cooldown import CooldownCache
from pricewatch.storage.history import PriceHistoryStore
from pricewatch.storage.keys import StorageError

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    """Orchestrator state."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass
class AssetReport:
    """Outcome of checking one asset."""

    symbol: str
    outcome: Outcome
    change_pct: Optional[float] = None
    notifications: list[NotificationResult] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class CycleReport:
    """Outcome of a full check cycle."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    results: list[AssetReport] = field(default_factory=list)
    cache_saved: bool = False

    def outcome_for(self, symbol: str) -> Optional[Outcome]:
        for result in self.results:
            if result.symbol == symbol:
                return result.outcome
        return None

    def count(self, outcome: Outcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)


class PriceWatchApp:
    """Runs price check cycles over the configured assets."""

    def __init__(
        self,
        config: AppConfig,
        assets: AssetRepository,
        fetcher: Optional[StockDataFetcher] = None,
        notifiers: Optional[list[Notifier]] = None,
        cooldown: Optional[CooldownCache] = None,
        history: Optional[PriceHistoryStore] = None,
        activity_log: Optional[ActivityLog] = None,
        events: Optional[EventEmitter] = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the app.

        Args:
            config: Application configuration
            assets: Source of the asset list, re-read every cycle
            fetcher: Quote source; built from config when None
            notifiers: Alert dispatchers; empty list disables notifications
            cooldown: Cooldown cache; built from config when None
            history: Price history store; built from config when None
            activity_log: Alert log; built from config when None
            events: Structured event emitter
            clock: Returns the current local time
            sleep: Used for the pacing delay between assets
        """
        self.config = config
        self.assets = assets
        self.clock = clock
        self.sleep = sleep
        self.events = events or EventEmitter()

        storage = config.storage
        self.fetcher = fetcher or StockDataFetcher(
            initial_lookback_days=config.data_source.initial_lookback_days,
            max_lookback_days=config.data_source.max_lookback_days,
            timeout=config.data_source.request_timeout_seconds,
        )
        self.notifiers = build_notifiers(config) if notifiers is None else notifiers
        self.cooldown = cooldown or CooldownCache(storage.cache_path, clock=self._now_ms)
        self.history = history or PriceHistoryStore(storage.history_path)
        self.activity_log = activity_log or ActivityLog(
            storage.log_path, retention_days=storage.log_retention_days
        )
        self.detector = ChangeDetector(threshold_pct=config.alerts.threshold_percent)

        self._state = CycleState.IDLE
        self._guard = threading.Lock()

    @property
    def state(self) -> CycleState:
        return self._state

    def _now_ms(self) -> int:
        return int(self.clock().timestamp() * 1000)

    def run_check(self) -> Optional[CycleReport]:
        """
        Run one check cycle over all assets.

        A call made while a cycle is already running returns None without
        doing anything.
        """
        if not self._guard.acquire(blocking=False):
            logger.debug("Check cycle already running, skipping trigger")
            return None

        self._state = CycleState.RUNNING
        try:
            return self._run_cycle()
        except Exception as e:
            logger.exception(f"Check cycle failed: {e}")
            self.events.emit(EventCode.CHECK_FAILED, error=str(e))
            return None
        finally:
            self._state = CycleState.IDLE
            self._guard.release()

    def _run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=self.clock())
        self.events.emit(
            EventCode.CHECK_STARTED, time=report.started_at.strftime("%Y-%m-%d %H:%M:%S")
        )

        window_ms = self.config.alerts.cooldown_ms
        cache = self.cooldown.purge_expired(self.cooldown.load(), window_ms)

        assets = self._current_assets()
        for index, asset in enumerate(assets):
            if index > 0 and self.config.schedule.pacing_delay_seconds > 0:
                self.sleep(self.config.schedule.pacing_delay_seconds)
            report.results.append(self._check_asset(asset, cache))

        try:
            self.cooldown.save(cache)
            report.cache_saved = True
        except StorageError as e:
            # Next cycle may repeat alerts sent in this one
            logger.error(f"Could not persist cooldown cache: {e}")
            self.events.emit(EventCode.CACHE_SAVE_FAILED, error=str(e))

        report.finished_at = self.clock()
        self.events.emit(
            EventCode.CHECK_COMPLETED,
            assets=len(report.results),
            alerts=report.count(Outcome.ALERTED),
            errors=report.count(Outcome.ERROR),
        )
        return report

    def _current_assets(self) -> list[Asset]:
        assets = self.assets.list_assets()
        schedule = self.config.schedule
        if schedule.skip_stocks_on_weekend:
            tradable = filter_tradable(assets, schedule.timezone, now=self.clock().astimezone())
            if len(tradable) < len(assets):
                self.events.emit(
                    EventCode.WEEKEND_STOCKS_SKIPPED, skipped=len(assets) - len(tradable)
                )
            assets = tradable

        if not assets:
            self.events.emit(EventCode.NO_ASSETS)
        return assets

    def _check_asset(self, asset: Asset, cache: dict[str, int]) -> AssetReport:
        """Check a single asset; unexpected errors stay contained here."""
        self.events.emit(EventCode.ASSET_CHECKING, symbol=asset.symbol)
        try:
            return self._evaluate_asset(asset, cache)
        except Exception as e:
            logger.exception(f"Error checking {asset.symbol}: {e}")
            self.events.emit(EventCode.ASSET_ERROR, symbol=asset.symbol, error=str(e))
            return AssetReport(symbol=asset.symbol, outcome=Outcome.ERROR, error=str(e))

    def _evaluate_asset(self, asset: Asset, cache: dict[str, int]) -> AssetReport:
        symbol = asset.symbol
        series = self.fetcher.fetch_series(symbol)
        if len(series) < 2:
            self.events.emit(
                EventCode.INSUFFICIENT_DATA,
                symbol=symbol,
                points=len(series),
                max_days=self.config.data_source.max_lookback_days,
            )
            return AssetReport(symbol=symbol, outcome=Outcome.INSUFFICIENT_DATA)

        self._save_history(symbol, series)

        result = self.detector.evaluate(series)
        if result.outcome is Outcome.INSUFFICIENT_DATA:
            self.events.emit(EventCode.INSUFFICIENT_DATA, symbol=symbol, points=len(series))
            return AssetReport(symbol=symbol, outcome=Outcome.INSUFFICIENT_DATA)

        change = round(result.change_pct, 2)
        if result.outcome is Outcome.BELOW_THRESHOLD:
            self.events.emit(
                EventCode.BELOW_THRESHOLD,
                symbol=symbol,
                change=change,
                threshold=self.config.alerts.threshold_percent,
            )
            return AssetReport(
                symbol=symbol, outcome=Outcome.BELOW_THRESHOLD, change_pct=result.change_pct
            )

        if self.cooldown.is_active(cache, symbol, self.config.alerts.cooldown_ms):
            self.events.emit(EventCode.ALREADY_ALERTED, symbol=symbol, change=change)
            return AssetReport(
                symbol=symbol, outcome=Outcome.ALREADY_ALERTED, change_pct=result.change_pct
            )

        alert = self.detector.build_alert(asset, result, triggered_at=self.clock())
        notifications = self._dispatch(alert)
        self._log_alert(alert)
        cache[symbol] = self.cooldown.clock()

        self.events.emit(
            EventCode.ALERT_SENT,
            symbol=symbol,
            name=asset.name,
            change=change,
            direction=alert.direction.value,
            price=alert.current_price,
            delivered=sum(1 for result in notifications if result.success),
            channels=len(notifications),
        )
        return AssetReport(
            symbol=symbol,
            outcome=Outcome.ALERTED,
            change_pct=result.change_pct,
            notifications=notifications,
        )

    def _save_history(self, symbol: str, series: list[PricePoint]) -> None:
        try:
            self.history.save(symbol, series)
        except StorageError as e:
            logger.error(f"Error saving price history for {symbol}: {e}")
            self.events.emit(EventCode.HISTORY_SAVE_FAILED, symbol=symbol, error=str(e))
            return
        self.events.emit(EventCode.HISTORY_SAVED, symbol=symbol, points=len(series))

    def _dispatch(self, alert: Alert) -> list[NotificationResult]:
        """Send the alert through every notifier; one failing never stops the rest."""
        results = []
        for notifier in self.notifiers:
            try:
                result = notifier.send(alert)
            except Exception as e:
                logger.exception(f"Notifier {notifier.channel} crashed for {alert.symbol}")
                result = NotificationResult(
                    success=False, channel=notifier.channel, error=str(e)
                )

            if result.disabled:
                self.events.emit(
                    EventCode.NOTIFICATION_DISABLED, symbol=alert.symbol, channel=result.channel
                )
            elif not result.success:
                self.events.emit(
                    EventCode.NOTIFICATION_FAILED,
                    symbol=alert.symbol,
                    channel=result.channel,
                    error=result.error,
                )
            results.append(result)
        return results

    def _log_alert(self, alert: Alert) -> None:
        try:
            self.activity_log.append(
                alert.symbol, alert.name, alert.change_pct, alert.triggered_at
            )
        except StorageError as e:
            logger.error(f"Error writing activity log for {alert.symbol}: {e}")
            self.events.emit(EventCode.LOG_APPEND_FAILED, symbol=alert.symbol, error=str(e))

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        events: Optional[EventEmitter] = None,
        dry_run: bool = False,
    ) -> "PriceWatchApp":
        """Build the app with collaborators derived from ``config``."""
        return cls(
            config=config,
            assets=AssetRepository(config.storage.assets_path),
            notifiers=[] if dry_run else None,
            events=events,
        )


def setup_logging(level: str) -> None:
    """Configure stderr logging; stdout carries the event stream."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # yfinance is chatty on DEBUG/INFO
    logging.getLogger("yfinance").setLevel(logging.WARNING)


def main(argv: Optional[list[str]] = None):
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Price move watchdog")
    parser.add_argument(
        "--config", default=None, help="Path to YAML config file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--once", action="store_true", help="Run a single check cycle and exit"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Run without sending notifications"
    )

    args = parser.parse_args(argv)

    # Load config
    from pricewatch.config import load_config

    config = load_config(args.config)

    # Setup logging
    setup_logging("DEBUG" if args.debug else config.advanced.log_level)

    events = EventEmitter()
    events.emit(
        EventCode.CONFIG_LOADED,
        threshold=config.alerts.threshold_percent,
        cooldown_minutes=config.alerts.cooldown_minutes,
        interval_minutes=config.schedule.check_interval_minutes,
        email=config.notifications.email.enabled,
        discord=config.notifications.discord.enabled,
    )

    app = PriceWatchApp.from_config(config, events=events, dry_run=args.dry_run)

    if args.dry_run:
        logger.info("Dry run mode - no notifications will be sent")

    if args.once:
        app.run_check()
        return

    from pricewatch.scheduler import run_scheduler

    run_scheduler(app, config.schedule.check_interval_minutes, events)


if __name__ == "__main__":
    main()
