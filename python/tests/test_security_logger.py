"""
Tests for security event logging and log-safe text helpers.
"""

import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from security_logger import SecurityLogger, request_context
from text_utils import clearance_filename, safe_filename_part, sanitize_for_logging


def _events(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == "security"]


# ============================================
# SECURITY LOGGER
# ============================================

class TestSecurityLogger:
    def test_validation_failure_event(self, security_logger, caplog):
        with caplog.at_level(logging.WARNING, logger="security"):
            security_logger.log_validation_failure(
                field="age", error_code="VALIDATION_FAILED", input_value="abc",
                source="test", additional_context={"format": "A"},
            )
        event = _events(caplog)[0]
        assert event["event_type"] == "VALIDATION_FAILED"
        assert event["field"] == "age"
        assert event["sanitized_input"] == "abc"
        assert event["context"] == {"format": "A"}

    def test_input_sanitized_and_truncated(self, security_logger, caplog):
        with caplog.at_level(logging.WARNING, logger="security"):
            security_logger.log_validation_failure(
                field="address", error_code="X", input_value="line1\nFAKE ENTRY" + "x" * 100,
            )
        value = _events(caplog)[0]["sanitized_input"]
        assert "\n" not in value
        assert value.endswith("...(truncated)")

    def test_format_fallback(self, security_logger, caplog):
        with caplog.at_level(logging.WARNING, logger="security"):
            security_logger.log_format_fallback("Q", source="assembler")
        event = _events(caplog)[0]
        assert event["event_type"] == "FORMAT_FALLBACK"
        assert event["context"] == {"fallback": "A", "blocked": False}

    def test_missing_actor(self, security_logger, caplog):
        with request_context("req-7", "clerk-1"):
            with caplog.at_level(logging.WARNING, logger="security"):
                security_logger.log_missing_actor("delete", 12)
        record = caplog.records[-1]
        event = _events(caplog)[0]
        assert record.levelno == logging.ERROR
        assert event["event_type"] == "ACTOR_MISSING"
        assert event["request_id"] == "req-7"
        assert event["user_id"] == "clerk-1"
        assert event["context"]["resource_id"] == 12

    def test_request_context_generated(self):
        with request_context(user_id="clerk-1") as request_id:
            assert request_id.startswith("REQ-")
        with request_context("fixed") as request_id:
            assert request_id == "fixed"

    def test_request_context_cleared_after_block(self, security_logger, caplog):
        with request_context("req-1", "alice"):
            pass
        with caplog.at_level(logging.WARNING, logger="security"):
            security_logger.log_format_fallback("Z")
        event = _events(caplog)[0]
        assert event["request_id"] == ""
        assert event["user_id"] == ""

    def test_file_output(self, tmp_path):
        logger = SecurityLogger(log_dir=str(tmp_path), enable_file=True)
        logger.log_format_fallback("Z")
        for handler in logger.logger.handlers:
            handler.flush()
        assert "FORMAT_FALLBACK" in (tmp_path / "security.log").read_text(encoding="utf-8")
        for handler in list(logger.logger.handlers):
            handler.close()
            logger.logger.removeHandler(handler)


# ============================================
# TEXT HELPERS
# ============================================

class TestTextUtils:
    def test_sanitize_for_logging(self):
        assert sanitize_for_logging("a\r\nb\x00c") == "a b c"
        assert sanitize_for_logging("") == ""
        assert len(sanitize_for_logging("x" * 600)) == 500

    def test_safe_filename_part(self):
        assert safe_filename_part("Dela Cruz") == "Dela_Cruz"
        assert safe_filename_part("O'Neil/../x") == "ONeilx"
        assert safe_filename_part(None) == ""

    def test_clearance_filename(self):
        assert clearance_filename("Dela Cruz", "Juan", "OCP-2025-000001") == \
            "Clearance_Dela_Cruz_Juan_OCP-2025-000001.html"
        assert clearance_filename("", "Juan", "OCP-2025-000002", "pdf") == \
            "Clearance_Juan_OCP-2025-000002.pdf"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
