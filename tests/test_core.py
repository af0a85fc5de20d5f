"""
Unit Tests for slowdown-core Library
====================================
Tests for configuration, errors, metrics and logging setup.
"""

import importlib
import logging
import math
import pytest


class TestConfig:
    """Tests for configuration defaults."""

    def test_defaults(self):
        """Defaults should match the documented policy."""
        from slowdown_core.config import SlowDownConfig

        config = SlowDownConfig()

        assert config.window_ms == 60000
        assert config.delay_after == 1
        assert config.delay_ms == 1000
        assert config.max_delay_ms == math.inf
        assert config.skip_failed_requests is False
        assert config.skip_successful_requests is False
        assert config.compensates is False

    def test_env_overrides(self, monkeypatch):
        """Environment variables should set module defaults."""
        import slowdown_core.config as config_module

        monkeypatch.setenv("SLOWDOWN_WINDOW_MS", "1000")
        monkeypatch.setenv("SLOWDOWN_MAX_DELAY_MS", "2500")
        monkeypatch.setenv("SLOWDOWN_SKIP_FAILED_REQUESTS", "true")

        reloaded = importlib.reload(config_module)
        try:
            assert reloaded.WINDOW_MS == 1000
            assert reloaded.MAX_DELAY_MS == 2500.0
            assert reloaded.SKIP_FAILED_REQUESTS is True
        finally:
            monkeypatch.undo()
            importlib.reload(config_module)

    def test_negative_delay_after_rejected(self):
        from slowdown_core.config import SlowDownConfig
        from slowdown_core.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            SlowDownConfig(delay_after=-1)

    def test_default_key_generator(self):
        from types import SimpleNamespace
        from slowdown_core.config import default_key_generator

        event = SimpleNamespace(client=SimpleNamespace(host="192.168.1.10"))

        assert default_key_generator(event) == "192.168.1.10"
        assert default_key_generator(SimpleNamespace(client=None)) == "unknown"


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_store_error_context(self):
        from slowdown_core.exceptions import SlowDownError, StoreError

        err = StoreError("connection refused", key="1.2.3.4", operation="increment")

        assert isinstance(err, SlowDownError)
        assert err.key == "1.2.3.4"
        assert "increment" in str(err)
        assert "connection refused" in str(err)

    def test_configuration_error_is_slowdown_error(self):
        from slowdown_core.exceptions import ConfigurationError, SlowDownError

        assert issubclass(ConfigurationError, SlowDownError)


class TestMetrics:
    """Tests for Prometheus recording."""

    def test_record_decision_outcomes(self):
        from slowdown_core.metrics import SLOWDOWN_REGISTRY, record_decision

        def sample(outcome):
            return SLOWDOWN_REGISTRY.get_sample_value(
                "slowdown_events_total", {"outcome": outcome}
            ) or 0

        before = {o: sample(o) for o in ("skipped", "passed", "delayed")}

        record_decision(0, skipped=True)
        record_decision(0)
        record_decision(1500)

        assert sample("skipped") == before["skipped"] + 1
        assert sample("passed") == before["passed"] + 1
        assert sample("delayed") == before["delayed"] + 1

    def test_metrics_text(self):
        from slowdown_core.metrics import get_metrics_text, record_store_error

        record_store_error("increment")
        text = get_metrics_text().decode()

        assert "slowdown_store_errors_total" in text
        assert 'operation="increment"' in text


class TestLogging:
    """Tests for logging setup."""

    def test_setup_logging_json(self, capsys):
        import structlog
        from slowdown_core.log_config import setup_logging

        try:
            root = setup_logging("smsly-test", level="debug")
            structlog.get_logger("slowdown_core.test").info("slowdown_test_event", key="k")

            out = capsys.readouterr().out
            assert root.level == 10
            assert '"service": "smsly-test"' in out
            assert '"event": "slowdown_test_event"' in out
        finally:
            logging.getLogger().handlers.clear()
            logging.getLogger().setLevel(logging.WARNING)
            structlog.contextvars.clear_contextvars()
            structlog.reset_defaults()


class TestPublicAPI:
    """Tests for package exports."""

    def test_exports(self):
        import slowdown_core

        for name in slowdown_core.__all__:
            assert hasattr(slowdown_core, name)
        assert slowdown_core.__version__ == "0.1.0"
