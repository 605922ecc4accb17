"""Config settings – SettingsLoader port and EnvSettingsLoader."""
from __future__ import annotations

import abc
import dataclasses
import os
from collections.abc import Mapping
from typing import Any, TypeVar

from notify_commons.config.settings.base import Settings
from notify_commons.config.validation import (
    InvalidSettingValueError,
    MissingRequiredSettingError,
    SettingParseError,
)

T = TypeVar("T", bound=Settings)


class SettingsLoader(abc.ABC):
    """Port: load settings from an external source."""

    @abc.abstractmethod
    def load(self, settings_class: type[T]) -> T: ...


class EnvSettingsLoader(SettingsLoader):
    """Load settings from environment variables named ``{PREFIX}_{FIELD}``.

    *environ* defaults to :data:`os.environ`; pass a plain mapping in tests.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    def load(self, settings_class: type[T]) -> T:
        prefix = getattr(settings_class, "_prefix", "").upper()
        kwargs: dict[str, Any] = {}
        env_keys: dict[str, str] = {}

        for field in dataclasses.fields(settings_class):  # type: ignore[arg-type]
            env_key = env_keys[field.name] = f"{prefix}_{field.name}".upper().lstrip("_")
            raw = self._environ.get(env_key)

            if raw is None:
                if (
                    field.default is dataclasses.MISSING
                    and field.default_factory is dataclasses.MISSING  # type: ignore[misc]
                ):
                    raise MissingRequiredSettingError(env_key)
                continue

            try:
                kwargs[field.name] = self._coerce(raw, field.type)
            except ValueError as exc:
                raise SettingParseError(env_key, raw, _type_name(field.type), str(exc)) from exc

        try:
            return settings_class(**kwargs)
        except InvalidSettingValueError as exc:
            if exc.setting_name in env_keys:
                exc.bind_env_key(env_keys[exc.setting_name])
            raise

    def _coerce(self, value: str, type_hint: Any) -> Any:  # noqa: PLR0911
        origin = getattr(type_hint, "__origin__", None)
        if type_hint is bool or type_hint == "bool":
            return value.strip().lower() in ("1", "true", "yes", "on")
        if type_hint is int or type_hint == "int":
            return int(value)
        if type_hint is float or type_hint == "float":
            return float(value)
        if origin is list or (isinstance(type_hint, str) and type_hint.startswith("list")):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


def _type_name(type_hint: Any) -> str:
    return type_hint if isinstance(type_hint, str) else getattr(type_hint, "__name__", repr(type_hint))


__all__ = ["EnvSettingsLoader", "SettingsLoader"]
