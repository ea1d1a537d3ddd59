"""
Configuration loading and validation.
"""

import logging
import math
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

logger = logging.getLogger(__name__)

MIN_INTERVAL_MINUTES = 5
MAX_INTERVAL_MINUTES = 60
INTERVAL_STEP_MINUTES = 5


class ConfigValidationError(Exception):
    """Raised when configuration is invalid."""

    pass


@dataclass
class AlertConfig:
    """Alert threshold and cooldown configuration."""

    threshold_percent: float = 5.0
    cooldown_minutes: int = 360

    @property
    def cooldown_ms(self) -> int:
        return self.cooldown_minutes * 60 * 1000


@dataclass
class ScheduleConfig:
    """Schedule configuration."""

    check_interval_minutes: int = 5
    pacing_delay_seconds: float = 1.0
    timezone: str = "Europe/Madrid"
    skip_stocks_on_weekend: bool = True


@dataclass
class DataSourceConfig:
    """Data source configuration."""

    provider: str = "yahoo_finance"
    initial_lookback_days: int = 7
    max_lookback_days: int = 60
    request_timeout_seconds: float = 10.0


@dataclass
class StorageConfig:
    """On-disk state layout."""

    data_dir: str = "data"
    cache_file: str = "alert_cache.json"
    history_dir: str = "price_history"
    log_dir: str = "diary_logs"
    log_retention_days: int = 30
    assets_file: str = "assets.yaml"

    def _resolve(self, name: str) -> Path:
        path = Path(name)
        if path.is_absolute():
            return path
        return Path(self.data_dir) / path

    @property
    def cache_path(self) -> Path:
        return self._resolve(self.cache_file)

    @property
    def history_path(self) -> Path:
        return self._resolve(self.history_dir)

    @property
    def log_path(self) -> Path:
        return self._resolve(self.log_dir)

    @property
    def assets_path(self) -> Path:
        # Relative to the working directory, not the data root.
        return Path(self.assets_file)


@dataclass
class DiscordNotificationConfig:
    """Discord (chat webhook) notification settings."""

    webhook_url: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)


@dataclass
class EmailNotificationConfig:
    """Email notification settings (Resend HTTP API)."""

    api_key: Optional[str] = None
    from_address: Optional[str] = None
    to_addresses: list[str] = field(default_factory=list)
    api_url: str = "https://api.resend.com/emails"
    template_path: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.from_address and self.to_addresses)


@dataclass
class NotificationsConfig:
    """Notifications configuration."""

    discord: DiscordNotificationConfig = field(
        default_factory=DiscordNotificationConfig
    )
    email: EmailNotificationConfig = field(default_factory=EmailNotificationConfig)


@dataclass
class AdvancedConfig:
    """Advanced configuration."""

    log_level: str = "INFO"


@dataclass
class AppConfig:
    """Main application configuration."""

    alerts: AlertConfig = field(default_factory=AlertConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    data_source: DataSourceConfig = field(default_factory=DataSourceConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)


# Environment key -> (section, option)
ENV_OVERRIDES = {
    "THRESHOLD": ("alerts", "threshold_percent"),
    "COOLDOWN_MINUTES": ("alerts", "cooldown_minutes"),
    "CHECK_INTERVAL_MINUTES": ("schedule", "check_interval_minutes"),
    "MARKET_TZ": ("schedule", "timezone"),
    "PRICEWATCH_DATA_DIR": ("storage", "data_dir"),
    "PRICEWATCH_ASSETS_FILE": ("storage", "assets_file"),
    "LOG_LEVEL": ("advanced", "log_level"),
}

EMAIL_ENV_OVERRIDES = {
    "RESEND_API_KEY": "api_key",
    "FROM_EMAIL": "from_address",
    "ALERT_EMAIL": "to_addresses",
}


def _substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in string values."""
    if isinstance(value, str):
        # Match ${VAR_NAME} pattern
        pattern = r"\$\{([^}]+)\}"
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.environ.get(var_name, "")
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _apply_env_overrides(config_dict: dict[str, Any]) -> None:
    """Let environment keys win over values from the YAML file."""
    for env_key, (section, option) in ENV_OVERRIDES.items():
        env_value = os.environ.get(env_key)
        if env_value is None or env_value.strip() == "":
            continue
        config_dict.setdefault(section, {})[option] = env_value.strip()

    notifications = config_dict.setdefault("notifications", {})
    webhook_url = os.environ.get("DISCORD_WEBHOOK_URL")
    if webhook_url and webhook_url.strip():
        notifications.setdefault("discord", {})["webhook_url"] = webhook_url.strip()

    for env_key, option in EMAIL_ENV_OVERRIDES.items():
        env_value = os.environ.get(env_key)
        if env_value and env_value.strip():
            notifications.setdefault("email", {})[option] = env_value.strip()


def normalize_interval(value: Any) -> int:
    """
    Snap a check interval to a multiple of 5 minutes within [5, 60].

    Non-numeric input falls back to the minimum interval.
    """
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return MIN_INTERVAL_MINUTES
    if not math.isfinite(minutes):
        return MIN_INTERVAL_MINUTES

    snapped = int(math.floor(minutes / INTERVAL_STEP_MINUTES + 0.5)) * INTERVAL_STEP_MINUTES
    return max(MIN_INTERVAL_MINUTES, min(MAX_INTERVAL_MINUTES, snapped))


def _to_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(result):
        raise ConfigValidationError(f"{name} must be finite, got {value!r}")
    return result


def _to_int(value: Any, name: str) -> int:
    return int(_to_float(value, name))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _to_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


def _validate_timezone(timezone: str) -> None:
    """Validate timezone string."""
    if not timezone:
        raise ConfigValidationError("Timezone cannot be empty")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigValidationError(f"Unknown timezone: {timezone}")


def _build_alerts(alerts_dict: dict[str, Any]) -> AlertConfig:
    threshold = _to_float(alerts_dict.get("threshold_percent", 5.0), "threshold_percent")
    if threshold < 0:
        raise ConfigValidationError("threshold_percent cannot be negative")

    cooldown = _to_int(alerts_dict.get("cooldown_minutes", 360), "cooldown_minutes")
    if cooldown <= 0:
        raise ConfigValidationError("cooldown_minutes must be positive")

    return AlertConfig(threshold_percent=threshold, cooldown_minutes=cooldown)


def _build_schedule(sched_dict: dict[str, Any]) -> ScheduleConfig:
    raw_interval = sched_dict.get("check_interval_minutes", MIN_INTERVAL_MINUTES)
    interval = normalize_interval(raw_interval)
    if str(raw_interval) != str(interval):
        logger.info(f"Check interval {raw_interval!r} adjusted to {interval} minutes")

    pacing = _to_float(sched_dict.get("pacing_delay_seconds", 1.0), "pacing_delay_seconds")
    if pacing < 0:
        raise ConfigValidationError("pacing_delay_seconds cannot be negative")

    timezone = str(sched_dict.get("timezone", "Europe/Madrid"))
    _validate_timezone(timezone)

    return ScheduleConfig(
        check_interval_minutes=interval,
        pacing_delay_seconds=pacing,
        timezone=timezone,
        skip_stocks_on_weekend=_to_bool(sched_dict.get("skip_stocks_on_weekend", True)),
    )


def _build_data_source(ds_dict: dict[str, Any]) -> DataSourceConfig:
    initial = _to_int(ds_dict.get("initial_lookback_days", 7), "initial_lookback_days")
    maximum = _to_int(ds_dict.get("max_lookback_days", 60), "max_lookback_days")
    if initial < 1:
        raise ConfigValidationError("initial_lookback_days must be at least 1")
    if maximum < initial:
        raise ConfigValidationError(
            "max_lookback_days must be greater than or equal to initial_lookback_days"
        )

    timeout = _to_float(
        ds_dict.get("request_timeout_seconds", 10.0), "request_timeout_seconds"
    )
    if timeout <= 0:
        raise ConfigValidationError("request_timeout_seconds must be positive")

    return DataSourceConfig(
        provider=str(ds_dict.get("provider", "yahoo_finance")),
        initial_lookback_days=initial,
        max_lookback_days=maximum,
        request_timeout_seconds=timeout,
    )


def _build_storage(storage_dict: dict[str, Any]) -> StorageConfig:
    defaults = StorageConfig()
    retention = _to_int(
        storage_dict.get("log_retention_days", defaults.log_retention_days),
        "log_retention_days",
    )
    if retention < 1:
        raise ConfigValidationError("log_retention_days must be at least 1")

    data_dir = storage_dict.get("data_dir") or defaults.data_dir
    return StorageConfig(
        data_dir=str(data_dir),
        cache_file=str(storage_dict.get("cache_file") or defaults.cache_file),
        history_dir=str(storage_dict.get("history_dir") or defaults.history_dir),
        log_dir=str(storage_dict.get("log_dir") or defaults.log_dir),
        log_retention_days=retention,
        assets_file=str(storage_dict.get("assets_file") or defaults.assets_file),
    )


def _build_notifications(notif_dict: dict[str, Any]) -> NotificationsConfig:
    discord_dict = notif_dict.get("discord") or {}
    email_dict = notif_dict.get("email") or {}

    discord = DiscordNotificationConfig(
        webhook_url=(discord_dict.get("webhook_url") or None),
    )
    email = EmailNotificationConfig(
        api_key=email_dict.get("api_key") or None,
        from_address=email_dict.get("from_address") or None,
        to_addresses=_to_list(email_dict.get("to_addresses")),
        api_url=email_dict.get("api_url") or EmailNotificationConfig.api_url,
        template_path=email_dict.get("template_path") or None,
    )
    return NotificationsConfig(discord=discord, email=email)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from an optional YAML file and the environment.

    Args:
        config_path: Path to configuration file, or None to use
            environment variables and defaults only

    Returns:
        AppConfig instance

    Raises:
        ConfigValidationError: If configuration is invalid
        FileNotFoundError: If a config file was given but doesn't exist
    """
    raw_config: dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path) as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

    # Substitute environment variables
    config_dict = _substitute_env_vars(raw_config)
    _apply_env_overrides(config_dict)

    return AppConfig(
        alerts=_build_alerts(config_dict.get("alerts") or {}),
        schedule=_build_schedule(config_dict.get("schedule") or {}),
        data_source=_build_data_source(config_dict.get("data_source") or {}),
        storage=_build_storage(config_dict.get("storage") or {}),
        notifications=_build_notifications(config_dict.get("notifications") or {}),
        advanced=AdvancedConfig(
            log_level=str((config_dict.get("advanced") or {}).get("log_level", "INFO")).upper()
        ),
    )
