"""Config – 12-factor settings and loaders."""

from notify_commons.config.settings import EnvSettingsLoader, Settings, SettingsLoader
from notify_commons.config.validation import (
    ConfigError,
    InvalidSettingValueError,
    MissingRequiredSettingError,
    SettingParseError,
)

__all__ = [
    "ConfigError",
    "EnvSettingsLoader",
    "InvalidSettingValueError",
    "MissingRequiredSettingError",
    "SettingParseError",
    "Settings",
    "SettingsLoader",
]
