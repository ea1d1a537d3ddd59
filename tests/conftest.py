"""
Pytest configuration and shared fixtures.
"""

import io
from datetime import date, datetime, timedelta

import pytest
import yaml

from pricewatch.config import AppConfig, ScheduleConfig, StorageConfig
from pricewatch.data.fetcher import PricePoint
from pricewatch.events import EventEmitter

CONFIG_ENV_KEYS = [
    "THRESHOLD",
    "COOLDOWN_MINUTES",
    "CHECK_INTERVAL_MINUTES",
    "MARKET_TZ",
    "PRICEWATCH_DATA_DIR",
    "PRICEWATCH_ASSETS_FILE",
    "LOG_LEVEL",
    "DISCORD_WEBHOOK_URL",
    "RESEND_API_KEY",
    "FROM_EMAIL",
    "ALERT_EMAIL",
]


class FakeClock:
    """Controllable replacement for datetime.now."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)

    def ms(self, **offset) -> int:
        return int((self.now + timedelta(**offset)).timestamp() * 1000)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove configuration keys that may leak in from the environment."""
    for key in CONFIG_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_series():
    """Build an ascending daily series ending on a fixed date."""

    def _make(*closes, end=date(2024, 3, 8)):
        count = len(closes)
        return [
            PricePoint(date=end - timedelta(days=count - 1 - i), close=close)
            for i, close in enumerate(closes)
        ]

    return _make


@pytest.fixture
def clock():
    """Clock fixed at a Friday afternoon."""
    return FakeClock(datetime(2024, 3, 8, 14, 30, 5))


@pytest.fixture
def events():
    """Event emitter writing to memory."""
    return EventEmitter(stream=io.StringIO(), keep=True)


@pytest.fixture
def app_config(tmp_path):
    """Configuration rooted in a temporary directory."""
    return AppConfig(
        schedule=ScheduleConfig(pacing_delay_seconds=0, skip_stocks_on_weekend=False),
        storage=StorageConfig(
            data_dir=str(tmp_path / "data"),
            assets_file=str(tmp_path / "assets.yaml"),
        ),
    )


@pytest.fixture
def write_assets(app_config):
    """Write the asset file used by ``app_config``."""

    def _write(*assets):
        entries = [
            {"symbol": symbol, "name": name, "type": asset_type}
            for symbol, name, asset_type in assets
        ]
        app_config.storage.assets_path.write_text(yaml.safe_dump({"assets": entries}))

    return _write


@pytest.fixture
def sample_discord_webhook_url():
    """Sample Discord webhook URL for testing."""
    return "https://discord.com/api/webhooks/123456789/abcdefghijklmnop"


@pytest.fixture
def sample_email_config():
    """Sample email API configuration for testing."""
    return {
        "api_key": "re_test_key",
        "from_address": "alerts@pricewatch.app",
        "to_addresses": ["recipient@example.com"],
    }
