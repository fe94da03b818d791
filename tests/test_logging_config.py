"""Tests for log formatting and credential redaction."""

import json
import logging

from dataroom.core.logging_config import _JsonFormatter, _SecretFilter, mask_email


def _record(msg, **extra):
    record = logging.LogRecord("dataroom.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:

    def test_extra_fields_are_merged(self):
        line = json.loads(_JsonFormatter().format(_record("Folder created", folder_id="f-1")))
        assert line["message"] == "Folder created"
        assert line["folder_id"] == "f-1"

    def test_viewer_email_is_masked(self):
        line = json.loads(_JsonFormatter().format(_record("OTP issued", email="jane@fund.com")))
        assert line["email"] == "j***@fund.com"

    def test_credential_extras_are_redacted(self):
        line = json.loads(_JsonFormatter().format(_record("x", code="ABCDEFGH", token="t" * 40)))
        assert line["code"] == "***REDACTED***"
        assert line["token"] == "***REDACTED***"


class TestSecretFilter:

    def test_bearer_token_redacted(self):
        record = _record("Authorization header: Bearer " + "a" * 32)
        _SecretFilter().filter(record)
        assert "a" * 32 not in record.msg
        assert "Bearer ***REDACTED***" in record.msg

    def test_otp_value_redacted(self):
        record = _record("verify failed otp=123456 for link-1")
        _SecretFilter().filter(record)
        assert "123456" not in record.msg
        assert record.msg.endswith("for link-1")


class TestMaskEmail:

    def test_not_an_email(self):
        assert mask_email("nobody") == "***REDACTED***"
