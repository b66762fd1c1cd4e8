"""
Tests for structured logging utilities.
"""

import json
import logging
import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fakes import make_settings
from handoff.config import LoggingSettings
from handoff.utils.logging import (
    DevelopmentFormatter,
    JSONFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    Timer,
    clear_request_context,
    redact_sensitive_data,
    set_request_context,
    setup_logging,
)


def make_record(msg: str, *args, level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("handoff.test", level, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedaction(unittest.TestCase):
    """Tests for redact_sensitive_data."""

    def test_access_code_in_query_is_redacted(self):
        redacted = redact_sensitive_data("GET /ssoready-callback?saml_access_code=saml_access_code_abc123&x=1")
        self.assertNotIn("saml_access_code_abc123", redacted)
        self.assertIn("x=1", redacted)

    def test_access_code_in_json_is_redacted(self):
        redacted = redact_sensitive_data('{"samlAccessCode": "abc123"}')
        self.assertNotIn("abc123", redacted)

    def test_broker_key_is_redacted(self):
        redacted = redact_sensitive_data("using key ssoready_sk_4w96zfjul38drbitw1hbd3sqv")
        self.assertNotIn("4w96zfjul38drbitw1hbd3sqv", redacted)

    def test_bearer_token_is_redacted(self):
        redacted = redact_sensitive_data("Authorization: Bearer abc.def")
        self.assertNotIn("abc.def", redacted)

    def test_identity_is_not_redacted(self):
        message = "Handoff awaiting_callback -> authenticated for john.doe@example.com"
        self.assertEqual(redact_sensitive_data(message), message)

    def test_empty_message(self):
        self.assertEqual(redact_sensitive_data(""), "")


class TestFilters(unittest.TestCase):

    def tearDown(self):
        clear_request_context()

    def test_sensitive_filter_redacts_message_and_args(self):
        record = make_record("callback %s", "saml_access_code=secretcode")
        SensitiveDataFilter().filter(record)
        self.assertNotIn("secretcode", record.getMessage())

    def test_sensitive_filter_redacts_extra_fields(self):
        record = make_record("GET /ssoready-callback", http_query="saml_access_code=secretcode", http_status=302)
        SensitiveDataFilter().filter(record)
        self.assertNotIn("secretcode", record.http_query)
        self.assertEqual(record.http_status, 302)

    def test_request_context_filter(self):
        set_request_context(request_id="req-1", correlation_id="corr-1")
        record = make_record("hello")

        RequestContextFilter().filter(record)

        self.assertEqual(record.request_id, "req-1")
        self.assertEqual(record.correlation_id, "corr-1")

    def test_request_context_defaults(self):
        record = make_record("hello")
        RequestContextFilter().filter(record)
        self.assertEqual(record.request_id, "-")


class TestFormatters(unittest.TestCase):

    def test_json_formatter(self):
        record = make_record("Handoff started", request_id="req-1", correlation_id="-", organization="example.com")

        data = json.loads(JSONFormatter().format(record))

        self.assertEqual(data["message"], "Handoff started")
        self.assertEqual(data["service"], "saml-handoff")
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["request_id"], "req-1")
        self.assertEqual(data["extra"]["organization"], "example.com")

    def test_json_formatter_adds_source_for_errors(self):
        record = make_record("Broker failed", level=logging.ERROR)
        data = json.loads(JSONFormatter().format(record))
        self.assertIn("source", data)

    def test_development_formatter(self):
        record = make_record("Handoff started", request_id="abcdef123456")
        output = DevelopmentFormatter().format(record)

        self.assertIn("Handoff started", output)
        self.assertIn("abcdef12", output)


class TestSetupLogging(unittest.TestCase):

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level

    def tearDown(self):
        self.root.handlers[:] = self.saved_handlers
        self.root.setLevel(self.saved_level)

    def test_development_uses_readable_format(self):
        setup_logging(settings=make_settings(environment="development"))

        self.assertEqual(len(self.root.handlers), 1)
        self.assertIsInstance(self.root.handlers[0].formatter, DevelopmentFormatter)

    def test_production_uses_json(self):
        setup_logging(settings=make_settings(environment="production"))
        self.assertIsInstance(self.root.handlers[0].formatter, JSONFormatter)

    def test_level_and_format_come_from_settings(self):
        settings = make_settings()
        settings.logging = LoggingSettings(log_level="ERROR", log_format_json=True)

        setup_logging(settings=settings)

        self.assertEqual(self.root.level, logging.ERROR)
        self.assertIsInstance(self.root.handlers[0].formatter, JSONFormatter)

    def test_httpx_urls_are_not_logged(self):
        setup_logging(settings=make_settings(), log_level=logging.DEBUG)
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)


class TestTimer(unittest.TestCase):

    def test_timer_logs_duration(self):
        logger = logging.getLogger("handoff.test.timer")

        with self.assertLogs(logger, level="DEBUG") as logs:
            with Timer("broker.redeem_access_code", logger) as timer:
                pass

        self.assertGreaterEqual(timer.elapsed_ms, 0)
        self.assertEqual(logs.records[0].operation, "broker.redeem_access_code")
        self.assertTrue(logs.records[0].success)

    def test_timer_records_failure(self):
        logger = logging.getLogger("handoff.test.timer")

        with self.assertLogs(logger, level="DEBUG") as logs:
            with self.assertRaises(RuntimeError):
                with Timer("broker.resolve_redirect_url", logger):
                    raise RuntimeError("boom")

        self.assertFalse(logs.records[0].success)


if __name__ == "__main__":
    unittest.main()
