"""Tests for logging configuration."""

import logging
import logging.handlers

import pytest
from settlement.utils.logging import configure_logging, get_log_level


@pytest.fixture()
def restore_logging():
    yield
    configure_logging()


class TestLogLevel:
    def test_level_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "production")
        assert get_log_level() == "INFO"

        monkeypatch.setenv("PROTEAN_ENV", "test")
        assert get_log_level() == "WARNING"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert get_log_level() == "DEBUG"


class TestConfigureLogging:
    def test_console_only_without_log_dir(self, monkeypatch, restore_logging):
        monkeypatch.delenv("SETTLEMENT_LOG_DIR", raising=False)
        configure_logging()

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers)

    def test_log_dir_adds_rotating_files(self, tmp_path, restore_logging):
        configure_logging(log_dir=str(tmp_path / "logs"))

        files = sorted(
            h.baseFilename for h in logging.getLogger().handlers if isinstance(h, logging.handlers.RotatingFileHandler)
        )
        assert [f.rsplit("/", 1)[-1] for f in files] == ["settlement.log", "settlement_error.log"]
        assert (tmp_path / "logs").is_dir()
