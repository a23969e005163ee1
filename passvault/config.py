"""
Configuration for PassVault.

Values come from environment variables with sensible defaults:
    PASSVAULT_DB         path to the SQLite vault file
    PASSVAULT_LOG_LEVEL  logging level name (DEBUG, INFO, WARNING, ...)

Crypto cost parameters are NOT configurable here; they live as constants in
passvault.crypto because existing envelopes depend on them.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field

DEFAULT_DB_PATH = Path.home() / ".passvault" / "passwords.db"


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    return Path(value).expanduser() if value else default


@dataclass
class Config:
    """Application configuration."""

    db_path: Path = field(default_factory=lambda: _env_path("PASSVAULT_DB", DEFAULT_DB_PATH))
    log_level: str = field(default_factory=lambda: os.getenv("PASSVAULT_LOG_LEVEL", "WARNING"))

    # Password generator defaults
    default_length: int = 16

    @property
    def log_level_value(self) -> int:
        """Numeric logging level; unknown names fall back to WARNING."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.WARNING


def load_config() -> Config:
    """Build a Config from the current environment."""
    return Config()
