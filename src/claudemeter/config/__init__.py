"""Configuration management for claudemeter."""

from claudemeter.config.credentials import (
    ORGANIZATION_ID_ENV,
    SESSION_KEY_ENV,
    resolve_credentials,
)
from claudemeter.config.paths import config_dir, config_file
from claudemeter.config.settings import (
    AntiBotConfig,
    Config,
    CooldownConfig,
    DisplayConfig,
    LogConfig,
    PollingConfig,
    RetryConfig,
    StatusConfig,
    get_config,
    load_config,
    reload_config,
)

__all__ = [
    # paths
    "config_dir",
    "config_file",
    # settings
    "Config",
    "PollingConfig",
    "RetryConfig",
    "CooldownConfig",
    "StatusConfig",
    "AntiBotConfig",
    "LogConfig",
    "DisplayConfig",
    "get_config",
    "load_config",
    "reload_config",
    # credentials
    "SESSION_KEY_ENV",
    "ORGANIZATION_ID_ENV",
    "resolve_credentials",
]
