"""
Tests for settings, options and logging configuration.
"""

import asyncio
import json
import logging

import pytest
from pydantic import ValidationError

from marketintel.config.logging import (
    ConsoleFormatter,
    StructuredFormatter,
    analysis_logger,
    clear_analysis_context,
    configure_logging,
    get_analysis_id,
    log_performance,
    set_analysis_context,
)
from marketintel.config.settings import IntelligenceOptions, IntelligenceSettings


# =============================================================================
# Settings
# =============================================================================


class TestIntelligenceOptions:
    """Tests for the per-call options model."""

    def test_defaults(self):
        options = IntelligenceOptions()
        assert options.include_p0 and options.include_p1 and options.include_p2
        assert options.top_sectors_count == 5
        assert options.bottom_sectors_count == 5
        assert options.top_stocks_count == 10
        assert options.max_data_age_minutes == 60
        assert options.percentile_cutoff == 30.0
        assert options.max_stocks_per_category == 50

    def test_camel_case_keys(self):
        options = IntelligenceOptions.model_validate({"includeP1": False, "topSectorsCount": 3})
        assert options.include_p1 is False
        assert options.top_sectors_count == 3

    def test_out_of_range(self):
        with pytest.raises(ValidationError):
            IntelligenceOptions(top_sectors_count=0)
        with pytest.raises(ValidationError):
            IntelligenceOptions(percentile_cutoff=150)

    def test_frozen(self):
        options = IntelligenceOptions()
        with pytest.raises(ValidationError):
            options.top_stocks_count = 3


class TestIntelligenceSettings:
    """Tests for environment-driven settings."""

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("MARKETINTEL_LOG_LEVEL", "debug")
        monkeypatch.setenv("MARKETINTEL_TOP_STOCKS_COUNT", "7")
        monkeypatch.setenv("MARKETINTEL_BASELINE_VOLUME", "15000")

        settings = IntelligenceSettings()
        assert settings.LOG_LEVEL == "DEBUG"
        assert settings.BASELINE_VOLUME == 15000
        assert settings.to_options().top_stocks_count == 7

    def test_invalid_baseline(self, monkeypatch):
        monkeypatch.setenv("MARKETINTEL_BASELINE_VOLUME", "0")
        with pytest.raises(ValidationError):
            IntelligenceSettings()


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogging:
    """Tests for logging configuration and helpers."""

    def test_configure_console(self, restore_root_logger):
        configure_logging(level="debug")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, ConsoleFormatter)

    def test_configure_json_with_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "engine.log"
        configure_logging(level="INFO", json_format=True, log_file=str(log_file))
        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert len(root.handlers) == 2

    def test_structured_formatter_includes_context(self):
        formatter = StructuredFormatter(environment="test")
        record = logging.LogRecord("marketintel", logging.INFO, __file__, 1, "hello", None, None)
        record.ctx_component = "regime"

        analysis_id = set_analysis_context("abc-123")
        try:
            payload = json.loads(formatter.format(record))
        finally:
            clear_analysis_context()

        assert analysis_id == "abc-123"
        assert payload["message"] == "hello"
        assert "abc-123" in json.dumps(payload)
        assert "regime" in json.dumps(payload)

    def test_analysis_context(self):
        analysis_id = set_analysis_context()
        assert get_analysis_id() == analysis_id
        clear_analysis_context()
        assert get_analysis_id() is None

    def test_log_performance_sync(self, caplog):
        @log_performance(threshold_ms=0)
        def work(x):
            return x * 2

        with caplog.at_level(logging.DEBUG):
            assert work(4) == 8
        assert any("work" in r.getMessage() for r in caplog.records)

    def test_log_performance_async(self):
        @log_performance(threshold_ms=10000)
        async def work(x):
            return x + 1

        assert asyncio.iscoroutinefunction(work)
        assert asyncio.run(work(1)) == 2

    def test_log_performance_reraises(self):
        @log_performance()
        def broken():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            broken()

    def test_analysis_events(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="marketintel.analysis"):
            analysis_logger.log_analysis_complete("regime", 1.234, result_count=3)
            analysis_logger.log_analysis_skipped("smart_money", "investor_type")
            analysis_logger.log_stale_data(90, 60)

        events = [getattr(r, "ctx_event", None) for r in caplog.records]
        assert events == ["analysis_complete", "analysis_skipped", "stale_data"]
        assert caplog.records[0].ctx_duration_ms == 1.23
