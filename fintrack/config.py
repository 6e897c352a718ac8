"""Configuration management for fintrack.

This module centralizes all configuration values including paths,
refresh intervals and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

# Base project root - assumes this file is in fintrack/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("FINTRACK_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("FINTRACK_DB_PATH", DATA_DIR / "fintrack.db")
).resolve()

LOG_LEVEL = os.getenv("FINTRACK_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Refresh policy: dashboard re-fetch interval and session keep-alive cadence
REFRESH_INTERVAL_SECONDS = float(os.getenv("FINTRACK_REFRESH_SECONDS", "10"))
SESSION_CHECK_INTERVAL_SECONDS = float(os.getenv("FINTRACK_SESSION_CHECK_SECONDS", "1800"))
SESSION_REFRESH_MARGIN_SECONDS = float(os.getenv("FINTRACK_SESSION_MARGIN_SECONDS", "300"))

# Planning horizon and due-date warnings
FORECAST_MONTHS = int(os.getenv("FINTRACK_FORECAST_MONTHS", "6"))
DUE_SOON_DAYS = int(os.getenv("FINTRACK_DUE_SOON_DAYS", "3"))


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def get_db_path() -> str:
    """Get the database path as a string."""
    return str(DB_PATH)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the dashboard and scripts."""
    logging.basicConfig(level=(level or LOG_LEVEL), format=LOG_FORMAT)
