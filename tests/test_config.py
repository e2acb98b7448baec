"""Tests for bims_ledger.config loading and overrides."""

import configparser
import logging
from pathlib import Path

import pytest

import bims_ledger.config as config_module
from bims_ledger.config import (
    LedgerConfig,
    _load_from_ini,
    get_config_status,
    load_config,
    print_config_summary,
    use_test_database,
)


@pytest.mark.unit
def test_defaults():
    cfg = LedgerConfig()

    assert cfg.server.port == 8000
    assert cfg.database.path == "data/bims.db"
    assert cfg.ledger.append_max_attempts == 3
    assert cfg.analytics.velocity_window_days == 30
    assert cfg.analytics.outlier_sigma == 3.0


@pytest.mark.unit
def test_env_overrides(monkeypatch):
    monkeypatch.setenv("BIMS_HOST", "127.0.0.1")
    monkeypatch.setenv("BIMS_PORT", "9100")
    monkeypatch.setenv("BIMS_DB_PATH", "/tmp/ledger.db")
    monkeypatch.setenv("BIMS_LOG_LEVEL", "debug")
    monkeypatch.setenv("BIMS_APPEND_MAX_ATTEMPTS", "5")

    cfg = load_config()

    assert cfg.server.host == "127.0.0.1"
    assert cfg.server.port == 9100
    assert cfg.database.absolute_path == Path("/tmp/ledger.db")
    assert cfg.logging.level == "DEBUG"
    assert cfg.ledger.append_max_attempts == 5


@pytest.mark.unit
def test_append_attempts_floor_is_one(monkeypatch):
    monkeypatch.setenv("BIMS_APPEND_MAX_ATTEMPTS", "0")
    assert load_config().ledger.append_max_attempts == 1


@pytest.mark.unit
def test_ini_sections_are_applied():
    parser = configparser.ConfigParser()
    parser.read_dict(
        {
            "server": {"host": "10.0.0.1", "port": "8800"},
            "logging": {"level": "warning", "format": "simple"},
            "ledger": {"append_max_attempts": "7"},
            "analytics": {
                "velocity_window_days": "14",
                "prediction_threshold_days": "3",
                "outlier_sigma": "2.5",
                "outlier_min_quantity": "50",
                "business_hours_start": "8",
                "business_hours_end": "18",
            },
        }
    )

    cfg = LedgerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.server.host == "10.0.0.1"
    assert cfg.server.port == 8800
    assert cfg.logging.level == "WARNING"
    assert cfg.logging.format == "simple"
    assert cfg.ledger.append_max_attempts == 7
    assert cfg.analytics.velocity_window_days == 14
    assert cfg.analytics.prediction_threshold_days == 3
    assert cfg.analytics.outlier_sigma == 2.5
    assert cfg.analytics.outlier_min_quantity == 50
    assert cfg.analytics.business_hours_start == 8
    assert cfg.analytics.business_hours_end == 18


@pytest.mark.unit
def test_unknown_log_format_is_ignored():
    parser = configparser.ConfigParser()
    parser.read_dict({"logging": {"format": "fancy"}})

    cfg = LedgerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.logging.format == "detailed"


@pytest.mark.unit
def test_relative_db_path_resolves_under_project_root():
    cfg = LedgerConfig()
    assert cfg.database.absolute_path == config_module.PROJECT_ROOT / "data" / "bims.db"


@pytest.mark.unit
def test_use_test_database_restores_path(tmp_path):
    original = config_module.config.database.path

    with use_test_database(tmp_path / "scratch.db") as db_path:
        assert config_module.config.database.absolute_path == db_path

    assert config_module.config.database.path == original


@pytest.mark.unit
def test_config_status_and_summary(capsys):
    status = get_config_status()
    assert status["append_max_attempts"] == config_module.config.ledger.append_max_attempts

    print_config_summary()
    assert "LEDGER CONFIGURATION" in capsys.readouterr().out


@pytest.mark.unit
def test_configure_logging_applies_level(monkeypatch):
    monkeypatch.setattr(config_module.config.logging, "level", "WARNING")
    monkeypatch.setattr(config_module.config.logging, "format", "detailed")
    captured: dict = {}
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(logging, "basicConfig", lambda **kwargs: captured.update(kwargs))
        config_module.configure_logging()

    assert captured["level"] == logging.WARNING
    assert captured["format"] == "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
