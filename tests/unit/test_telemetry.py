"""Tests for telemetry module."""

import io
import json
import logging

import pytest

from amigo_sdk.telemetry import (
    AmigoLogger,
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    log_context,
    set_log_context,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    clear_log_context()
    AmigoLogger.configure(level=LogLevel.WARNING, format="text")


def _record(msg: str, **fields: object) -> logging.LogRecord:
    record = logging.LogRecord("amigo_sdk.test", logging.INFO, __file__, 1, msg, None, None)
    if fields:
        record.extra_fields = fields
    return record


class TestLogContext:
    """Tests for LogContext."""

    def test_to_dict(self) -> None:
        """Test empty fields are dropped."""
        ctx = LogContext(request_id="req-1", method="GET", extra={"attempt": 2})
        assert ctx.to_dict() == {"request_id": "req-1", "method": "GET", "attempt": 2}

    def test_set_and_get(self) -> None:
        """Test the context round-trips through the context variable."""
        set_log_context(LogContext(org_id="my-org", path="/v1/my-org/service/"))
        ctx = get_log_context()
        assert ctx.org_id == "my-org"
        assert ctx.path == "/v1/my-org/service/"

    def test_clear(self) -> None:
        """Test clearing the context."""
        set_log_context(LogContext(request_id="req-1"))
        clear_log_context()
        assert get_log_context().to_dict() == {}

    def test_log_context_block(self) -> None:
        """Test a scoped context layers over the outer one and is restored."""
        set_log_context(LogContext(org_id="my-org"))

        with log_context(LogContext(method="GET", path="/v1/my-org/service/")) as ctx:
            assert ctx.org_id == "my-org"
            assert get_log_context().method == "GET"

        assert get_log_context().to_dict() == {"org_id": "my-org"}


class TestSensitiveDataMasker:
    """Tests for SensitiveDataMasker."""

    def test_mask_bearer_token(self) -> None:
        """Test masking bearer tokens."""
        masker = SensitiveDataMasker()
        masked = masker.mask("Authorization: Bearer secret-token-123")
        assert "secret-token-123" not in masked
        assert "REDACTED" in masked

    def test_mask_api_key_header(self) -> None:
        """Test masking x-api-key and x-api-key-id header values."""
        masker = SensitiveDataMasker()
        masked = masker.mask("headers={'x-api-key': 'ak-live-123', 'x-api-key-id': 'kid-9'}")
        assert "ak-live-123" not in masked
        assert "kid-9" not in masked

    def test_mask_id_token(self) -> None:
        """Test masking id_token values in exchange payloads."""
        masker = SensitiveDataMasker()
        masked = masker.mask('{"id_token": "eyJhbGciOi.payload.sig", "expires_at": null}')
        assert "eyJhbGciOi" not in masked
        assert "expires_at" in masked

    def test_mask_env_assignment(self) -> None:
        """Test masking environment variable assignments."""
        masker = SensitiveDataMasker()
        masked = masker.mask("AMIGO_API_KEY=ak-live-123 AMIGO_USER_ID=u1")
        assert "ak-live-123" not in masked
        assert "AMIGO_USER_ID=u1" in masked

    def test_mask_dict(self) -> None:
        """Test masking dictionary."""
        masker = SensitiveDataMasker()
        data = {
            "api_key": "secret-key",
            "message": "Hello",
            "nested": {"token": "secret-token"},
            "headers": [{"Authorization": "Bearer abc"}],
        }
        masked = masker.mask_dict(data)
        assert masked["api_key"] == "***REDACTED***"
        assert masked["message"] == "Hello"
        assert masked["nested"]["token"] == "***REDACTED***"
        assert masked["headers"][0]["Authorization"] == "***REDACTED***"

    def test_mask_dict_keeps_non_credential_values(self) -> None:
        """Test flags named after tokens survive while credential strings do not."""
        masker = SensitiveDataMasker()
        masked = masker.mask_dict(
            {
                "had_token": False,
                "id_token": "eyJhbGciOi.payload.sig",
                "x-api-key-id": "kid-9",
                "tokenizer": "cl100k",
                "token_count": 12,
            }
        )
        assert masked["had_token"] is False
        assert masked["id_token"] == "***REDACTED***"
        assert masked["x-api-key-id"] == "***REDACTED***"
        assert masked["tokenizer"] == "cl100k"
        assert masked["token_count"] == 12


class TestFormatters:
    """Tests for log formatters."""

    def test_json_formatter(self) -> None:
        """Test JSON output includes context and masked fields."""
        set_log_context(LogContext(request_id="req-1"))
        output = JsonFormatter().format(
            _record("Retrying request", attempt=1, authorization="Bearer xyz")
        )
        data = json.loads(output)
        assert data["message"] == "Retrying request"
        assert data["context"] == {"request_id": "req-1"}
        assert data["attempt"] == 1
        assert data["authorization"] == "***REDACTED***"
        assert data["timestamp"].endswith("Z")

    def test_text_formatter(self) -> None:
        """Test text output appends keyword fields."""
        output = TextFormatter().format(_record("Token refreshed", had_token=False))
        assert "Token refreshed" in output
        assert "had_token=False" in output

    def test_text_formatter_masks_message(self) -> None:
        """Test secrets in the message are masked."""
        output = TextFormatter().format(_record("sending Bearer abc.def"))
        assert "abc.def" not in output


class TestAmigoLogger:
    """Tests for AmigoLogger."""

    def test_get_logger(self) -> None:
        """Test getting a logger."""
        logger = get_logger("amigo_sdk.test")
        assert logger.name == "amigo_sdk.test"

    def test_quiet_by_default(self) -> None:
        """Test debug output is disabled until configured."""
        logger = get_logger("amigo_sdk.test.quiet")
        assert not logger.is_enabled_for(LogLevel.DEBUG)
        assert logger.is_enabled_for(LogLevel.WARNING)

    def test_configure_log_level(self) -> None:
        """Test configuring level and stream."""
        stream = io.StringIO()
        AmigoLogger.configure(level=LogLevel.DEBUG, format="json", stream=stream)
        logger = get_logger("amigo_sdk.test.debug")

        logger.debug("Retry scheduled", attempt=2, delay_ms=125.0)

        data = json.loads(stream.getvalue().strip())
        assert data["level"] == "DEBUG"
        assert data["logger"] == "amigo_sdk.test.debug"
        assert data["attempt"] == 2
