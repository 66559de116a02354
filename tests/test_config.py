"""Tests for settings validation and logging setup."""

from __future__ import annotations

import json
import logging

import pytest
import structlog
from pydantic import ValidationError

from token_escrow.config import Settings
from token_escrow.logging_config import SERVICE_NAME, get_logger, setup_logging


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.is_development
        assert not settings.is_sqlite
        assert settings.escrow_program_id == "5gdV4b4cPnnRkVSvBq8WxCxRfyq7i5z9R5scwm3BA4ps"

    def test_sqlite_url(self) -> None:
        settings = Settings(_env_file=None, database_url="sqlite+aiosqlite:///ledger.db")
        assert settings.is_sqlite

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("ACCOUNT_LOCK_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("AIRDROP_ENABLED", "false")
        settings = Settings(_env_file=None)
        assert settings.account_lock_timeout_seconds == 2.5
        assert settings.airdrop_enabled is False

    def test_rejects_bad_program_id(self) -> None:
        with pytest.raises(ValidationError, match="escrow_program_id"):
            Settings(_env_file=None, escrow_program_id="not-a-key")

    def test_rejects_non_positive_lock_timeout(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, account_lock_timeout_seconds=0)


class TestLogging:
    @pytest.fixture(autouse=True)
    def _restore_logging(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)
        structlog.reset_defaults()

    def test_json_lines_carry_service(self, capsys) -> None:
        setup_logging(log_level="INFO", json_logs=True)
        get_logger("tests").info("escrow.offer_made", offer_id=7)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "escrow.offer_made"
        assert record["offer_id"] == 7
        assert record["service"] == SERVICE_NAME
        assert record["level"] == "info"

    def test_noisy_loggers_quieted(self) -> None:
        setup_logging(log_level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
