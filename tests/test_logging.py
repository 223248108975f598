"""Tests for logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from mistral_chat.config import Environment, Settings
from mistral_chat.logging_config import (
    DevFormatter,
    JSONFormatter,
    get_logger,
    redact_secrets,
    setup_logging,
)


def make_record(msg: str, level: int = logging.INFO, exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="mistral_chat.node",
        level=level,
        pathname="/app/node.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedactSecrets:
    """Tests for credential masking."""

    def test_masks_bearer_token(self) -> None:
        """Bearer tokens are replaced."""
        text = redact_secrets("headers: {'Authorization': 'Bearer sk-abc123'}")
        assert "sk-abc123" not in text
        assert "Bearer ***" in text

    def test_leaves_other_text(self) -> None:
        """Text without credentials is unchanged."""
        assert redact_secrets("Calling Mistral model x") == "Calling Mistral model x"


class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_format_basic_message(self) -> None:
        """Basic log message is formatted as JSON."""
        data = json.loads(JSONFormatter().format(make_record("Test message")))

        assert data["level"] == "INFO"
        assert data["logger"] == "mistral_chat.node"
        assert data["message"] == "Test message"
        assert data["file"] == "/app/node.py:42"
        assert "timestamp" in data

    def test_context_fields(self) -> None:
        """Invocation context passed via extra is lifted into the output."""
        record = make_record(
            "done", model="mistral-small-latest", stream=True, usage_source="exact"
        )
        data = json.loads(JSONFormatter().format(record))

        assert data["model"] == "mistral-small-latest"
        assert data["stream"] is True
        assert data["usage_source"] == "exact"
        assert "error_code" not in data

    def test_message_redacted(self) -> None:
        """Credentials in the message are masked."""
        data = json.loads(JSONFormatter().format(make_record("sent Bearer secret-key")))
        assert "secret-key" not in data["message"]

    def test_format_with_exception(self) -> None:
        """Exception info is included in output."""
        try:
            raise ValueError("test error")
        except ValueError:
            exc_info = sys.exc_info()

        record = make_record("Error", level=logging.ERROR, exc_info=exc_info)
        data = json.loads(JSONFormatter().format(record))

        assert "ValueError" in data["exception"]


class TestDevFormatter:
    """Tests for development formatter."""

    def test_format_includes_level(self) -> None:
        """Development format includes level and logger."""
        output = DevFormatter().format(make_record("Warning message", level=logging.WARNING))

        assert "WARNING" in output
        assert "mistral_chat.node" in output
        assert "Warning message" in output

    def test_message_redacted(self) -> None:
        """Credentials are masked in development output too."""
        output = DevFormatter().format(make_record("Authorization: Bearer abc"))
        assert "abc" not in output.split("|")[-1]


class TestSetupLogging:
    """Tests for logging setup."""

    def test_returns_root_logger(self) -> None:
        """setup_logging returns root logger."""
        logger = setup_logging(level="INFO", json_output=False)
        assert logger is logging.getLogger()

    def test_uses_json_in_production(self) -> None:
        """JSON output is used in production environment."""
        mock_settings = Settings(environment=Environment.PRODUCTION)

        with patch("mistral_chat.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_uses_dev_formatter_in_development(self) -> None:
        """Dev formatter is used in development environment."""
        mock_settings = Settings(environment=Environment.DEVELOPMENT)

        with patch("mistral_chat.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, DevFormatter)

    def test_level_override(self) -> None:
        """Log level can be overridden."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_transport_loggers_quieted(self) -> None:
        """HTTP transport loggers only report warnings."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


class TestGetLogger:
    """Tests for named logger retrieval."""

    def test_returns_named_logger(self) -> None:
        """get_logger returns a logger with the given name."""
        assert get_logger("mistral_chat.llm.client").name == "mistral_chat.llm.client"
