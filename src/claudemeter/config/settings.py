"""Configuration structures and loading for claudemeter."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

import msgspec

from claudemeter.errors.challenge import DEFAULT_CHALLENGE_MARKERS
from claudemeter.errors.types import ConfigError
from claudemeter.models import LimitKind

# Default values
DEFAULT_BASE_URL = "https://claude.ai"
DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_TIMEOUT = 15.0
DEFAULT_MAX_LOG_ENTRIES = 50


class PollingConfig(msgspec.Struct, omit_defaults=True):
    """Polling cadence and request settings."""

    interval: float = DEFAULT_POLL_INTERVAL  # seconds between ticks
    timeout: float = DEFAULT_TIMEOUT  # per-request timeout in seconds
    base_url: str = DEFAULT_BASE_URL
    user_agent: str | None = None  # None selects the built-in user agent

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("polling.interval must be positive")
        if self.timeout <= 0:
            raise ValueError("polling.timeout must be positive")


class RetryConfig(msgspec.Struct, frozen=True, omit_defaults=True):
    """Configuration for retry behavior."""

    max_attempts: int = 3  # total fetches per attempt, including the first
    base_delay: float = 1.0  # seconds
    exponential_base: float = 2.0
    jitter_min: float = 0.5
    jitter_max: float = 1.5
    max_delay: float = 60.0  # seconds
    retry_malformed: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("retry.max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("retry.base_delay must not be negative")
        if not 0 <= self.jitter_min <= self.jitter_max:
            raise ValueError("retry.jitter_min must be between 0 and jitter_max")


class CooldownConfig(msgspec.Struct, frozen=True, omit_defaults=True):
    """When and for how long to stop polling after repeated anti-bot blocks."""

    threshold: int = 3  # consecutive exhausted anti-bot attempts
    duration_seconds: float = 300.0

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise ValueError("cooldown.threshold must be at least 1")
        if self.duration_seconds <= 0:
            raise ValueError("cooldown.duration_seconds must be positive")


class StatusConfig(msgspec.Struct, frozen=True, omit_defaults=True):
    """Thresholds used by the status engine.

    The headroom values were picked empirically for the upstream API and
    may need tuning if its behavior near the limit changes.
    """

    pace_margin: float = 5.0  # +/- band around expected usage
    exceeding_threshold: float = 80.0  # static fallback
    borderline_threshold: float = 50.0  # static fallback
    headroom_entry: float = 95.0  # selected limit considered full
    headroom_cutoff: float = 90.0  # other limits below this still usable


class AntiBotConfig(msgspec.Struct, frozen=True, omit_defaults=True):
    """Body substrings that identify an anti-bot challenge page."""

    markers: tuple[str, ...] = DEFAULT_CHALLENGE_MARKERS


class LogConfig(msgspec.Struct, omit_defaults=True):
    """Activity log settings."""

    max_entries: int = DEFAULT_MAX_LOG_ENTRIES


class DisplayConfig(msgspec.Struct, omit_defaults=True):
    """Display settings."""

    default_metric: LimitKind = LimitKind.SEVEN_DAY


class Config(msgspec.Struct, omit_defaults=True):
    """Main configuration structure."""

    polling: PollingConfig = msgspec.field(default_factory=PollingConfig)
    retry: RetryConfig = msgspec.field(default_factory=RetryConfig)
    cooldown: CooldownConfig = msgspec.field(default_factory=CooldownConfig)
    status: StatusConfig = msgspec.field(default_factory=StatusConfig)
    anti_bot: AntiBotConfig = msgspec.field(default_factory=AntiBotConfig)
    log: LogConfig = msgspec.field(default_factory=LogConfig)
    display: DisplayConfig = msgspec.field(default_factory=DisplayConfig)


def _load_from_toml(path: Path) -> dict:
    """Load configuration from TOML file."""
    if not path.exists():
        return {}

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e


def convert_config(data: dict) -> Config:
    """Convert raw dict to Config struct."""
    try:
        return msgspec.convert(data, type=Config)
    except msgspec.ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config.

    CLAUDEMETER_POLL_INTERVAL: Seconds between polls
    CLAUDEMETER_METRIC: Limit shown by default (e.g. "five_hour")
    """
    if interval := os.environ.get("CLAUDEMETER_POLL_INTERVAL"):
        try:
            seconds = float(interval)
        except ValueError as e:
            raise ConfigError(f"CLAUDEMETER_POLL_INTERVAL: {e}") from e
        if seconds <= 0:
            raise ConfigError("CLAUDEMETER_POLL_INTERVAL must be positive")
        polling = msgspec.structs.replace(config.polling, interval=seconds)
        config = msgspec.structs.replace(config, polling=polling)

    if metric := os.environ.get("CLAUDEMETER_METRIC"):
        try:
            kind = LimitKind.parse(metric)
        except ValueError as e:
            raise ConfigError(f"CLAUDEMETER_METRIC: {e}") from e
        display = msgspec.structs.replace(config.display, default_metric=kind)
        config = msgspec.structs.replace(config, display=display)

    return config


# Config state storage
_config: Config | None = None


def get_config() -> Config:
    """Get the current configuration (singleton)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from disk."""
    global _config
    _config = load_config()
    return _config


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file with defaults.

    Raises:
        ConfigError: If the file exists but cannot be parsed or validated.
    """
    from .paths import config_file

    config_path = path or config_file()

    raw_data = _load_from_toml(config_path)
    if not raw_data:
        config = Config()
    else:
        config = convert_config(raw_data)

    return _apply_env_overrides(config)
