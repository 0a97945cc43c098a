"""Unit tests for logging service."""

import json

import structlog

from task_api.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_authorization(self):
        """Test authorization field is redacted."""
        event_dict = {"authorization": "Bearer token123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["authorization"] == "REDACTED"

    def test_redacts_secret_in_key_name(self):
        """Test fields containing 'secret' are redacted."""
        event_dict = {"jwt_secret": "abc123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["jwt_secret"] == "REDACTED"

    def test_redacts_password(self):
        event_dict = {"password": "mypassword", "new_password": "other", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password"] == "REDACTED"
        assert result["new_password"] == "REDACTED"

    def test_redacts_token_values(self):
        event_dict = {"access_token": "eyJ...", "refresh_token": "raw", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["access_token"] == "REDACTED"
        assert result["refresh_token"] == "REDACTED"

    def test_preserves_non_sensitive_fields(self):
        """Test non-sensitive fields are preserved."""
        event_dict = {
            "correlation_id": "abc-123",
            "token_id": "t-1",
            "duration_ms": 100,
        }
        result = redact_sensitive(None, None, event_dict)
        assert result == {"correlation_id": "abc-123", "token_id": "t-1", "duration_ms": 100}

    def test_case_insensitive_redaction(self):
        """Test redaction works regardless of case."""
        event_dict = {"Authorization": "x", "PASSWORD": "y"}
        result = redact_sensitive(None, None, event_dict)
        assert result["Authorization"] == "REDACTED"
        assert result["PASSWORD"] == "REDACTED"


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_get_logger_returns_bound_logger(self):
        """Test get_logger returns a structlog logger."""
        configure_logging("INFO")
        logger = get_logger("test_module")
        assert logger is not None
        logger.info("test_event", data="value")

    def test_output_is_json_and_redacted(self, capsys):
        configure_logging("INFO")
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id="corr-1")

        get_logger("test").info("login_attempt", username="alice", password="hunter2")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "login_attempt"
        assert record["correlation_id"] == "corr-1"
        assert record["password"] == "REDACTED"
        assert record["level"] == "info"
        assert "timestamp" in record
        structlog.contextvars.clear_contextvars()


class TestCorrelationIdBinding:
    """Tests for correlation ID context binding."""

    def test_correlation_id_binds_to_context(self):
        """Test correlation ID is properly bound via contextvars."""
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id="test-correlation-123")

        context = structlog.contextvars.get_contextvars()
        assert context.get("correlation_id") == "test-correlation-123"
        structlog.contextvars.clear_contextvars()
