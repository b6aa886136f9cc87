"""Tests for logging helpers."""

import builtins
import logging

import pytest
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

from fintrack import logger as logger_module


class RecordingLogger:
    """Stand-in for a BoundLogger that keeps every call."""

    def __init__(self):
        self.calls: list[tuple[str, str, dict]] = []

    def _record(self, level):
        def method(event, **kwargs):
            self.calls.append((level, event, kwargs))

        return method

    def __getattr__(self, level):
        return self._record(level)


def test_build_otlp_logs_endpoint_adds_suffix() -> None:
    assert logger_module._build_otlp_logs_endpoint("http://collector:4318") == "http://collector:4318/v1/logs"
    assert logger_module._build_otlp_logs_endpoint("http://collector:4318/") == "http://collector:4318/v1/logs"


def test_build_otlp_logs_endpoint_preserves_logs_path() -> None:
    assert (
        logger_module._build_otlp_logs_endpoint("http://collector:4318/v1/logs") == "http://collector:4318/v1/logs"
    )


def test_mask_sensitive_fields_processor() -> None:
    event = {
        "event": "Entity write failed",
        "account_number": "50100012345678",
        "folio_number": "123",
        "fd_number": 98765,
        "user_id": "u1",
    }

    masked = logger_module.mask_sensitive_fields(None, "error", event)

    assert masked["account_number"] == "**********5678"
    assert masked["folio_number"] == "123"
    assert masked["fd_number"] == 98765
    assert masked["user_id"] == "u1"


def test_select_renderer_uses_console_in_debug(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", True)
    assert isinstance(logger_module._select_renderer(), ConsoleRenderer)


def test_select_renderer_uses_json_in_production(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "debug", False)
    assert isinstance(logger_module._select_renderer(), JSONRenderer)


def test_configure_otel_logging_skipped_without_endpoint(monkeypatch) -> None:
    monkeypatch.setattr(logger_module.settings, "otel_exporter_otlp_endpoint", None)
    handlers_before = list(logging.getLogger().handlers)

    logger_module._configure_otel_logging()

    assert logging.getLogger().handlers == handlers_before


def test_configure_otel_logging_missing_dependency_warns(monkeypatch, caplog) -> None:
    monkeypatch.setattr(logger_module.settings, "otel_exporter_otlp_endpoint", "http://collector:4318")
    original_import = builtins.__import__

    def blocked_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name.startswith("opentelemetry"):
            raise ImportError("opentelemetry not installed")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", blocked_import)

    with caplog.at_level(logging.WARNING):
        logger_module._configure_otel_logging()

    assert "OTEL log exporter not available" in caplog.text


def test_log_timing_reports_duration_and_context() -> None:
    recorder = RecordingLogger()

    with logger_module.log_timing("reconcile_batch", logger=recorder, kind="stock") as timing:
        timing["created"] = 2

    level, event, kwargs = recorder.calls[0]
    assert level == "info"
    assert event == "reconcile_batch completed"
    assert kwargs["kind"] == "stock"
    assert kwargs["created"] == 2
    assert kwargs["duration_ms"] >= 0
    assert timing["duration_ms"] == kwargs["duration_ms"]


def test_log_timing_logs_even_on_error() -> None:
    recorder = RecordingLogger()

    with pytest.raises(RuntimeError):
        with logger_module.log_timing("reconcile_batch", logger=recorder, level="warning"):
            raise RuntimeError("boom")

    assert recorder.calls[0][0] == "warning"


@pytest.mark.asyncio
async def test_log_external_api_success_and_failure() -> None:
    recorder = RecordingLogger()

    @logger_module.log_external_api("openrouter", logger=recorder)
    async def ok() -> str:
        return "yes"

    @logger_module.log_external_api("openrouter", logger=recorder)
    async def broken() -> str:
        raise ConnectionError("refused")

    assert await ok() == "yes"
    with pytest.raises(ConnectionError):
        await broken()

    (ok_level, ok_event, ok_kwargs), (fail_level, _, fail_kwargs) = recorder.calls
    assert (ok_level, ok_event) == ("info", "External API call to openrouter")
    assert ok_kwargs["success"] is True
    assert ok_kwargs["function"] == "ok"
    assert fail_level == "error"
    assert fail_kwargs["error_type"] == "ConnectionError"


def test_log_external_api_rejects_sync_functions() -> None:
    with pytest.raises(TypeError):

        @logger_module.log_external_api("openrouter")
        def not_async() -> None:
            return None


def test_log_exception_includes_error_context() -> None:
    recorder = RecordingLogger()

    logger_module.log_exception(
        recorder,
        ValueError("bad"),
        "Ledger write failed",
        level="warning",
        include_traceback=False,
        user_id="u1",
    )
    logger_module.log_exception(recorder, KeyError("k"), "Lookup failed")

    level, event, kwargs = recorder.calls[0]
    assert (level, event) == ("warning", "Ledger write failed")
    assert kwargs == {
        "error": "bad",
        "error_type": "ValueError",
        "error_module": "builtins",
        "user_id": "u1",
    }
    assert recorder.calls[1][0] == "error"
    assert isinstance(recorder.calls[1][2]["exc_info"], KeyError)
