"""Config validation errors.

Every error can name the environment variable an operator has to fix
(``env_key``, e.g. ``RATE_LIMIT_REFILL_RATE``). :class:`EnvSettingsLoader`
fills it in; settings built directly in code leave it ``None``.
"""
from __future__ import annotations

from typing import Any

from notify_commons.kernel.errors import ApplicationError


class ConfigError(ApplicationError):
    """Raised when configuration is invalid or loading failed."""
    default_code = "config_error"

    def __init__(self, message: str, *, env_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.env_key = env_key
        if env_key is not None:
            self.detail.setdefault("env_key", env_key)

    def bind_env_key(self, env_key: str) -> None:
        """Attach the environment variable this error came from (first binding wins)."""
        if self.env_key is None:
            self.env_key = env_key
            self.detail["env_key"] = env_key


class MissingRequiredSettingError(ConfigError):
    """A required environment variable is not set."""
    default_code = "missing_required_setting"

    def __init__(self, env_key: str) -> None:
        super().__init__(f"Required environment variable {env_key} is not set", env_key=env_key)
        self.setting_name = env_key


class SettingParseError(ConfigError):
    """An environment variable is set but cannot be coerced to the field's type."""
    default_code = "setting_parse_error"

    def __init__(self, env_key: str, raw: str, expected: str, reason: str) -> None:
        super().__init__(f"Cannot parse {env_key}={raw!r} as {expected}: {reason}", env_key=env_key)
        self.raw = raw
        self.expected = expected


class InvalidSettingValueError(ConfigError):
    """A setting parsed fine but is out of range for the limiter or cache."""
    default_code = "invalid_setting_value"

    def __init__(self, setting_name: str, value: object, reason: str, *, env_key: str | None = None) -> None:
        super().__init__(
            f"Setting '{setting_name}' has invalid value {value!r}: {reason}",
            env_key=env_key,
            detail={"setting": setting_name, "reason": reason},
        )
        self.setting_name = setting_name
        self.value = value
        self.reason = reason


__all__ = [
    "ConfigError",
    "InvalidSettingValueError",
    "MissingRequiredSettingError",
    "SettingParseError",
]
