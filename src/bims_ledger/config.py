"""
Ledger service configuration management.

This module handles loading and accessing configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The LedgerConfig
dataclass provides typed access to all settings.

Usage:
    from bims_ledger.config import config

    print(config.server.port)
    print(config.database.absolute_path)
    print(config.ledger.append_max_attempts)

Environment Variable Mapping:
    BIMS_HOST                 -> server.host
    BIMS_PORT                 -> server.port
    BIMS_DB_PATH              -> database.path
    BIMS_LOG_LEVEL            -> logging.level
    BIMS_APPEND_MAX_ATTEMPTS  -> ledger.append_max_attempts
"""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"

_LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 8000


@dataclass
class DatabaseSettings:
    """Block store configuration."""

    path: str = "data/bims.db"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed"] = "detailed"


@dataclass
class LedgerSettings:
    """Append-path behaviour."""

    # Attempts made when a concurrent writer claims the next block index first.
    append_max_attempts: int = 3


@dataclass
class AnalyticsSettings:
    """Thresholds for low-stock predictions and the anomaly report."""

    velocity_window_days: int = 30
    prediction_threshold_days: int = 7
    outlier_sigma: float = 3.0
    outlier_min_quantity: int = 10
    business_hours_start: int = 6
    business_hours_end: int = 22


@dataclass
class LedgerConfig:
    """
    Complete service configuration.

    Aggregates all settings sections. Access via the module-level `config`
    singleton.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _load_from_ini(parser: configparser.ConfigParser, cfg: LedgerConfig) -> None:
    """Load configuration from parsed INI file into LedgerConfig."""
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    if parser.has_section("database"):
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")

    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in _LOG_FORMATS:
                cfg.logging.format = val  # type: ignore[assignment]

    if parser.has_section("ledger"):
        if parser.has_option("ledger", "append_max_attempts"):
            cfg.ledger.append_max_attempts = max(
                1, parser.getint("ledger", "append_max_attempts")
            )

    if parser.has_section("analytics"):
        section = "analytics"
        if parser.has_option(section, "velocity_window_days"):
            cfg.analytics.velocity_window_days = parser.getint(section, "velocity_window_days")
        if parser.has_option(section, "prediction_threshold_days"):
            cfg.analytics.prediction_threshold_days = parser.getint(
                section, "prediction_threshold_days"
            )
        if parser.has_option(section, "outlier_sigma"):
            cfg.analytics.outlier_sigma = parser.getfloat(section, "outlier_sigma")
        if parser.has_option(section, "outlier_min_quantity"):
            cfg.analytics.outlier_min_quantity = parser.getint(section, "outlier_min_quantity")
        if parser.has_option(section, "business_hours_start"):
            cfg.analytics.business_hours_start = parser.getint(section, "business_hours_start")
        if parser.has_option(section, "business_hours_end"):
            cfg.analytics.business_hours_end = parser.getint(section, "business_hours_end")


def _apply_env_overrides(cfg: LedgerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_host := os.getenv("BIMS_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("BIMS_PORT"):
        cfg.server.port = int(env_port)

    if env_db := os.getenv("BIMS_DB_PATH"):
        cfg.database.path = env_db

    if env_log := os.getenv("BIMS_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()

    if env_attempts := os.getenv("BIMS_APPEND_MAX_ATTEMPTS"):
        cfg.ledger.append_max_attempts = max(1, int(env_attempts))


def load_config() -> LedgerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        LedgerConfig: Fully populated configuration object.
    """
    cfg = LedgerConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "LedgerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton.

    Returns:
        LedgerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def configure_logging() -> None:
    """Apply the configured level and format to the root logger.

    Only entry points (CLI, server startup) call this; library modules just
    obtain named loggers.
    """
    logging.basicConfig(
        level=getattr(logging, config.logging.level, logging.INFO),
        format=_LOG_FORMATS.get(config.logging.format, _LOG_FORMATS["detailed"]),
    )


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "database_path": str(config.database.absolute_path),
        "append_max_attempts": config.ledger.append_max_attempts,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("LEDGER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Database:    {config.database.absolute_path}")
    print(f"Log level:   {config.logging.level}")
    print(f"Append attempts: {config.ledger.append_max_attempts}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from bims_ledger.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                blocks_repo.init_schema()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.database.path
        config.database.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.database.path = self.original_path
        return None
