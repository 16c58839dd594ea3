"""
Tests for structured logging utilities.
"""

import json
import logging
import sys
import uuid

from shared.logging_utils import (
    StructuredFormatter,
    configure_structured_logging,
    log_api_request,
    log_external_call,
    log_payment_event,
    provider_var,
    request_id_var,
    set_provider,
    set_request_id,
)


def make_record(msg="Test message", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="test.logger",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_includes_required_fields(self):
        parsed = json.loads(StructuredFormatter().format(make_record(level=logging.WARNING)))

        assert "timestamp" in parsed
        assert parsed["level"] == "WARNING"
        assert parsed["logger"] == "test.logger"
        assert parsed["message"] == "Test message"

    def test_includes_request_id_and_provider(self):
        request_token = request_id_var.set("req-12345")
        provider_token = provider_var.set("coinbase")
        try:
            parsed = json.loads(StructuredFormatter().format(make_record()))
        finally:
            request_id_var.reset(request_token)
            provider_var.reset(provider_token)

        assert parsed["request_id"] == "req-12345"
        assert parsed["provider"] == "coinbase"

    def test_omits_provider_when_unset(self):
        token = provider_var.set("")
        try:
            parsed = json.loads(StructuredFormatter().format(make_record()))
        finally:
            provider_var.reset(token)

        assert "provider" not in parsed

    def test_includes_extra_fields_only(self):
        parsed = json.loads(StructuredFormatter().format(make_record(external_id="pi_1")))

        assert parsed["external_id"] == "pi_1"
        assert "lineno" not in parsed
        assert "pathname" not in parsed

    def test_non_serializable_extra(self):
        parsed = json.loads(StructuredFormatter().format(make_record(charge={"ids"})))

        assert parsed["charge"] == str({"ids"})

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        parsed = json.loads(StructuredFormatter().format(record))

        assert "ValueError: boom" in parsed["exception"]


class TestConfigureStructuredLogging:
    def test_replaces_handlers(self):
        root = logging.getLogger()
        root.addHandler(logging.StreamHandler())

        configure_structured_logging(logging.DEBUG)

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)

        configure_structured_logging()


class TestSetRequestId:
    def test_api_gateway_request_id(self):
        assert set_request_id({"requestContext": {"requestId": "api-req"}}) == "api-req"
        assert request_id_var.get() == "api-req"

    def test_header_fallback(self):
        assert set_request_id({"headers": {"x-request-id": "hdr-req"}}) == "hdr-req"
        assert set_request_id({"headers": {"X-Request-Id": "hdr-req-2"}}) == "hdr-req-2"

    def test_generated_for_trigger_events(self):
        request_id = set_request_id({"triggerSource": "PostConfirmation_ConfirmSignUp"})

        uuid.UUID(request_id)

    def test_handles_none(self):
        assert set_request_id(None)
        assert set_request_id({"headers": None, "requestContext": None})


class TestLogHelpers:
    def test_log_api_request(self, caplog):
        logger = logging.getLogger("test.api")
        with caplog.at_level(logging.INFO):
            log_api_request(logger, "POST", "/payments/stripe/intent", 200, 12.5)

        record = caplog.records[0]
        assert record.getMessage() == "POST /payments/stripe/intent -> 200"
        assert record.status_code == 200
        assert record.user_id == "anonymous"

    def test_log_external_call_failure(self, caplog):
        logger = logging.getLogger("test.external")
        with caplog.at_level(logging.INFO):
            log_external_call(logger, "coinbase", "charges.create", False, 80.0, "timeout")

        record = caplog.records[0]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "External call to coinbase: charges.create -> failed"
        assert record.error == "timeout"

    def test_log_payment_event(self, caplog):
        logger = logging.getLogger("test.payments")
        with caplog.at_level(logging.INFO):
            log_payment_event(logger, "stripe", "payment_intent.succeeded", "pi_1", "reconciled",
                              "user_abc", tier="lite")

        record = caplog.records[0]
        assert record.levelno == logging.INFO
        assert record.getMessage() == "stripe payment_intent.succeeded pi_1 -> reconciled"
        assert record.tier == "lite"
        assert record.user_id == "user_abc"

    def test_log_payment_event_error_for_guest(self, caplog):
        logger = logging.getLogger("test.payments")
        with caplog.at_level(logging.INFO):
            log_payment_event(logger, "coinbase", "charge:confirmed", "ch_1", "partially_reconciled",
                              error="order_write_failed")

        record = caplog.records[0]
        assert record.levelno == logging.ERROR
        assert record.user_id == "guest"

    def test_set_provider(self):
        token = provider_var.set("")
        try:
            set_provider("stripe")
            assert provider_var.get() == "stripe"
        finally:
            provider_var.reset(token)
