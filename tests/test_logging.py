"""Tests for logging formatters and credential redaction."""

from __future__ import annotations

import json
import logging

from wc_harness.core.logging import (
    SensitiveDataFilter,
    StructuredFormatter,
    TextFormatter,
    case_id_var,
    get_context_logger,
    get_logger,
    redact_command,
)


def _record(msg, *args, **attrs):
    record = logging.LogRecord("wc_harness.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestRedaction:
    def test_redact_command(self):
        request = {"createUser": "u", "pwd": "hunter2", "roles": ["dbOwner"]}

        redacted = redact_command(request)

        assert redacted == {"createUser": "u", "pwd": "[REDACTED]", "roles": ["dbOwner"]}
        assert request["pwd"] == "hunter2"

    def test_filter_masks_logged_documents(self):
        record = _record("Running %s", {"updateUser": "u", "pwd": "password2"})

        assert SensitiveDataFilter().filter(record) is True

        message = record.getMessage()
        assert "password2" not in message
        assert "'pwd': [REDACTED]" in message

    def test_filter_keeps_masked_documents_intact(self):
        """Documents already passed through redact_command log unchanged."""
        request = redact_command({"createUser": "u", "pwd": "hunter2"})
        record = _record("Running %s on %s", request, "admin")

        SensitiveDataFilter().filter(record)

        assert record.getMessage() == (
            "Running {'createUser': 'u', 'pwd': '[REDACTED]'} on admin"
        )

    def test_filter_keeps_masked_text_intact(self):
        record = _record("Connecting with pwd=[REDACTED] token: [REDACTED]")
        SensitiveDataFilter().filter(record)
        assert record.getMessage() == "Connecting with pwd=[REDACTED] token: [REDACTED]"

    def test_filter_leaves_plain_messages(self):
        record = _record("Paused replication on %s", "rs0")
        SensitiveDataFilter().filter(record)
        assert record.getMessage() == "Paused replication on rs0"


class TestFormatters:
    def test_text_includes_case_id(self):
        token = case_id_var.set("createUser|{w: 2}|invalid_write_concern")
        try:
            line = TextFormatter().format(_record("Testing"))
        finally:
            case_id_var.reset(token)

        assert "[createUser|{w: 2}|invalid_write_concern]" in line
        assert line.endswith("wc_harness.test: Testing")

    def test_text_without_case(self):
        assert "[" not in TextFormatter().format(_record("idle"))

    def test_json_fields(self):
        token = case_id_var.set("dropUser|{w: 'invalid'}|invalid_write_concern")
        try:
            line = StructuredFormatter().format(_record("hi", extra_fields={"host": "rs0-1"}))
        finally:
            case_id_var.reset(token)

        data = json.loads(line)
        assert data["message"] == "hi"
        assert data["level"] == "INFO"
        assert data["case_id"] == "dropUser|{w: 'invalid'}|invalid_write_concern"
        assert data["host"] == "rs0-1"


def test_logger_prefix():
    assert get_logger("conformance.driver").name == "wc_harness.conformance.driver"


def test_context_logger_stamps_extra():
    adapter = get_context_logger("topology", group="configRS")
    msg, kwargs = adapter.process("paused", {})
    assert msg == "paused"
    assert kwargs["extra"] == {"extra_fields": {"group": "configRS"}}
