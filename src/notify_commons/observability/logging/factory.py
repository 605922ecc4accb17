"""Observability – JsonLoggerFactory."""
from __future__ import annotations

import logging
from typing import Any

import structlog


class JsonLoggerFactory:
    """Route stdlib logging through structlog's JSON renderer.

    Library modules log with ``logging.getLogger(__name__)``; calling
    :meth:`configure` once at process start turns those records into JSON
    lines carrying ``service`` and ``instance`` so events from many gateway
    instances can be told apart.
    """

    @staticmethod
    def configure(
        level: int = logging.INFO,
        *,
        service: str = "notification-gateway",
        instance: str | None = None,
    ) -> logging.Handler:
        static: dict[str, Any] = {"service": service}
        if instance is not None:
            static["instance"] = instance

        def _add_static(logger: Any, method: Any, event_dict: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
            for key, value in static.items():
                event_dict.setdefault(key, value)
            return event_dict

        shared_processors: list[Any] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_static,
        ]

        structlog.configure(
            processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        formatter = structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
        )
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root = logging.getLogger()
        root.handlers.clear()
        root.addHandler(handler)
        root.setLevel(level)
        return handler


__all__ = ["JsonLoggerFactory"]
