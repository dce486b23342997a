"""Structured logging setup.

Every component receives a ``LogConfig`` at construction and asks it for a
component-bound logger::

    log_config = LogConfig(debug=False)
    logger = log_config.get_logger("polling")
    logger.info("polling_started", interval_seconds=60)
    logger.debug("next_poll_scheduled", in_seconds=60)   # dropped unless debug is on

Debug output is toggled per ``LogConfig`` instance, either permanently with
``enable_debug()`` / ``disable_debug()`` or for a block with ``debug_scope()``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import structlog


def configure_logging(json_logs: bool = True) -> None:
    """Configure structlog once at process start."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
    )


class ComponentLogger:
    """A structlog logger bound to one component, with gated debug output."""

    def __init__(self, config: LogConfig, logger: Any):
        self._config = config
        self._logger = logger

    def bind(self, **values: Any) -> ComponentLogger:
        return ComponentLogger(self._config, self._logger.bind(**values))

    def debug(self, event: str, **kw: Any) -> None:
        if self._config.debug_enabled:
            self._logger.debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._logger.info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._logger.warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._logger.error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        self._logger.exception(event, **kw)


class LogConfig:
    """Logger factory carrying the debug switch for the components it serves."""

    def __init__(self, debug: bool = False, namespace: str = "linear_notify"):
        self.debug_enabled = debug
        self.namespace = namespace

    def get_logger(self, component: str) -> ComponentLogger:
        return ComponentLogger(
            self, structlog.get_logger().bind(component=f"{self.namespace}.{component}")
        )

    def enable_debug(self) -> None:
        self.debug_enabled = True

    def disable_debug(self) -> None:
        self.debug_enabled = False

    @contextmanager
    def debug_scope(self, enabled: bool = True) -> Iterator[LogConfig]:
        """Temporarily switch debug output, restoring the previous state on exit."""
        previous = self.debug_enabled
        self.debug_enabled = enabled
        try:
            yield self
        finally:
            self.debug_enabled = previous
