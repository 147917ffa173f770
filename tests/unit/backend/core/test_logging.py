"""
Unit Tests for Logging Configuration.
"""

import logging
from logging.handlers import RotatingFileHandler
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import structlog

from accounting.backend.core.config_schema import LoggingSchema
from accounting.backend.core.logging import (
    VALID_SOURCES,
    bind_user_context,
    get_logger,
    log_with_source,
    redact_secrets,
    setup_logging,
)


@pytest.fixture
def logging_config(tmp_path):
    """Real LoggingSchema with the file handler pointed at tmp_path."""
    schema = LoggingSchema(
        level="WARNING",
        format="json",
        handlers={
            "console": {"enabled": True},
            "file": {
                "enabled": False,
                "path": "logs/test.jsonl",
                "max_bytes": 1024,
                "backup_count": 1,
            },
        },
    )
    app_config = SimpleNamespace(logging=schema)
    with patch("accounting.backend.core.config.get_app_config", return_value=app_config), \
            patch("accounting.backend.core.config.find_project_root", return_value=tmp_path):
        yield schema
    for handler in logging.getLogger().handlers[:]:
        handler.close()
        logging.getLogger().removeHandler(handler)


class TestValidSources:
    def test_contains_expected_values(self):
        assert {"web", "cli", "startup", "discovery"} <= VALID_SOURCES


class TestSetupLogging:
    def test_uses_config_defaults(self, logging_config):
        setup_logging()

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_override_takes_precedence(self, logging_config):
        setup_logging(level="DEBUG", enable_console=False)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert root.handlers == []

    def test_file_logging_writes_under_project_root(self, logging_config, tmp_path):
        setup_logging(enable_console=False, enable_file_logging=True)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RotatingFileHandler)
        assert (tmp_path / "logs").is_dir()

    def test_noisy_libraries_are_quieted(self, logging_config):
        setup_logging()

        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING


class TestGetLogger:
    def test_returns_structlog_logger(self):
        logger = get_logger("accounting.backend.services.clients")

        assert hasattr(logger, "info")
        assert hasattr(logger, "bind")


class TestContext:
    def test_bind_user_context(self):
        structlog.contextvars.clear_contextvars()
        try:
            bind_user_context("user-1", "EMPLOYEE", "company-1")

            context = structlog.contextvars.get_contextvars()
            assert context == {"user_id": "user-1", "role": "EMPLOYEE", "company_id": "company-1"}
        finally:
            structlog.contextvars.clear_contextvars()


class TestLogWithSource:
    def test_adds_source_field(self):
        logger = MagicMock()

        log_with_source(logger, "discovery", "info", "Modules synced", created=3)

        logger.info.assert_called_once_with("Modules synced", source="discovery", created=3)

    def test_supports_levels(self):
        logger = MagicMock()

        log_with_source(logger, "cli", "WARNING", "Careful")

        logger.warning.assert_called_once_with("Careful", source="cli")

    def test_unknown_level_raises(self):
        with pytest.raises(AttributeError):
            log_with_source(object(), "cli", "loud", "x")

    def test_unknown_source_is_recorded_as_unknown(self):
        logger = MagicMock()

        log_with_source(logger, "telephone", "info", "Hello")

        logger.info.assert_called_once_with("Hello", source="unknown")


class TestRedactSecrets:
    def test_masks_top_level_and_nested_credentials(self):
        event = {
            "event": "Mail config saved",
            "smtp_password": "hunter2",
            "extra": {"company_id": "c-1", "api_key": "sk-live", "nested": {"client_secret": "x"}},
        }

        result = redact_secrets(None, "info", event)

        assert result["smtp_password"] == "***"
        assert result["extra"]["api_key"] == "***"
        assert result["extra"]["nested"]["client_secret"] == "***"
        assert result["extra"]["company_id"] == "c-1"
        assert result["event"] == "Mail config saved"

    def test_token_counts_are_kept(self):
        event = {"event": "Completion", "extra": {"total_tokens": 42}}

        assert redact_secrets(None, "info", event)["extra"]["total_tokens"] == 42
