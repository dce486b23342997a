"""Tests for component loggers and the debug switch."""

from __future__ import annotations

from unittest.mock import MagicMock

from structlog.testing import capture_logs

from linear_notify.log import ComponentLogger, LogConfig


class TestComponentLogger:
    def test_debug_dropped_when_disabled(self):
        inner = MagicMock()
        logger = ComponentLogger(LogConfig(debug=False), inner)
        logger.debug("noisy_event")
        logger.info("useful_event", count=2)

        inner.debug.assert_not_called()
        inner.info.assert_called_once_with("useful_event", count=2)

    def test_debug_follows_config_changes(self):
        config = LogConfig()
        inner = MagicMock()
        logger = ComponentLogger(config, inner)

        config.enable_debug()
        logger.debug("first")
        config.disable_debug()
        logger.debug("second")

        inner.debug.assert_called_once_with("first")

    def test_bound_logger_keeps_gate(self):
        config = LogConfig(debug=False)
        inner = MagicMock()
        bound = ComponentLogger(config, inner).bind(notification_id="notification-1")
        bound.debug("hidden")
        inner.bind.return_value.debug.assert_not_called()

    def test_component_name_is_namespaced(self):
        with capture_logs() as logs:
            LogConfig().get_logger("polling").info("polling_started", interval_seconds=60)

        assert logs == [
            {
                "event": "polling_started",
                "interval_seconds": 60,
                "component": "linear_notify.polling",
                "log_level": "info",
            }
        ]


class TestDebugScope:
    def test_restores_previous_state(self):
        config = LogConfig(debug=False)
        with config.debug_scope():
            assert config.debug_enabled is True
        assert config.debug_enabled is False

    def test_restores_on_error(self):
        config = LogConfig(debug=True)
        try:
            with config.debug_scope(enabled=False):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert config.debug_enabled is True

    def test_debug_emitted_inside_scope(self):
        config = LogConfig()
        with capture_logs() as logs:
            logger = config.get_logger("sinks.desktop")
            logger.debug("outside")
            with config.debug_scope():
                logger.debug("inside")

        assert [entry["event"] for entry in logs] == ["inside"]
