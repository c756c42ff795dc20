"""Tests for podmeta/logging/audit.py — JSON audit logging."""

import json
import sys
import logging

from podmeta.logging.audit import (
    JSONFormatter,
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    request_id_var,
    setup_logging,
)


def _record(msg="test") -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="",
        lineno=0, msg=msg, args=(), exc_info=None,
    )


class TestJSONFormatter:

    def test_output_is_valid_json(self):
        parsed = json.loads(JSONFormatter().format(_record("hello")))
        assert parsed["message"] == "hello"
        assert parsed["level"] == "INFO"
        assert "timestamp" in parsed

    def test_includes_request_id(self):
        token = request_id_var.set("req-abc123")
        try:
            parsed = json.loads(JSONFormatter().format(_record()))
            assert parsed["request_id"] == "req-abc123"
        finally:
            request_id_var.reset(token)

    def test_includes_audit_data(self):
        record = _record()
        record.audit_data = {"provider": "groq", "error_kind": "rate_limited"}
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["provider"] == "groq"
        assert parsed["error_kind"] == "rate_limited"

    def test_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                name="test", level=logging.ERROR, pathname="",
                lineno=0, msg="failed", args=(), exc_info=sys.exc_info(),
            )
        parsed = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in parsed["exception"]


class TestGenerateRequestId:

    def test_length(self):
        assert len(generate_request_id()) == 12

    def test_uniqueness(self):
        ids = {generate_request_id() for _ in range(100)}
        assert len(ids) == 100


class TestRequestTimer:

    def test_measures_elapsed(self):
        with RequestTimer() as timer:
            _ = sum(range(1000))
        assert timer.elapsed_ms >= 0
        assert isinstance(timer.elapsed_ms, float)


class TestSetupLogging:

    def test_creates_stdout_handler(self, override_settings):
        override_settings(AUDIT_LOG_FILE="")
        setup_logging()
        logger = get_audit_logger()
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)
        assert logger.propagate is False

    def test_adds_file_handler(self, override_settings, tmp_path):
        log_file = tmp_path / "audit.log"
        override_settings(AUDIT_LOG_FILE=str(log_file))
        setup_logging()
        logger = get_audit_logger()
        try:
            assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        finally:
            for h in logger.handlers:
                h.close()
            logger.handlers.clear()

    def test_log_level_from_settings(self, override_settings):
        override_settings(LOG_LEVEL="debug", AUDIT_LOG_FILE="")
        setup_logging()
        assert get_audit_logger().level == logging.DEBUG
