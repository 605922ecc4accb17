"""Config validation – error types raised by settings validation and loading."""
from notify_commons.config.validation.errors import (
    ConfigError,
    InvalidSettingValueError,
    MissingRequiredSettingError,
    SettingParseError,
)

__all__ = ["ConfigError", "InvalidSettingValueError", "MissingRequiredSettingError", "SettingParseError"]
