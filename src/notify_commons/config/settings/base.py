"""Config settings – Settings base class and shared validation helpers."""
from __future__ import annotations

import dataclasses
from typing import ClassVar

from notify_commons.config.validation import InvalidSettingValueError


@dataclasses.dataclass
class Settings:
    """Base class for 12-factor settings.

    Subclasses declare ``_prefix`` (the environment variable prefix) and
    override :meth:`_validate` for cross-field checks. Instances are built
    once at startup and handed to components; nothing mutates them later.
    """

    _prefix: ClassVar[str] = ""

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """Override to add cross-field validation."""

    def _require_positive(self, *names: str) -> None:
        for name in names:
            value = getattr(self, name)
            if value <= 0:
                raise InvalidSettingValueError(name, value, "must be greater than zero")

    def _require_fraction(self, name: str) -> None:
        value = getattr(self, name)
        if not 0.0 <= value <= 1.0:
            raise InvalidSettingValueError(name, value, "must be between 0 and 1")


__all__ = ["Settings"]
