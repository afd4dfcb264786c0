"""
Store Configuration Module

This module defines the configuration settings for the FlowForge data store.
Settings are loaded from environment variables (via .env file) using Pydantic.
The host shell owns the store location, so every value here is optional and
can be bypassed by passing an explicit path to ``Store.open``.
"""
import os
import sys
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = "FlowForge"


def user_data_dir() -> Path:
    """Return the per-user data directory for the current platform."""
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming"
        return Path(base) / APP_DIR_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    base = os.environ.get("XDG_DATA_HOME") or (Path.home() / ".local" / "share")
    return Path(base) / APP_DIR_NAME


class Settings(BaseSettings):
    """
    Store-wide configuration settings.

    All settings can be overridden via environment variables prefixed with
    ``FLOWFORGE_``. The .env file is automatically loaded if present.
    """
    # === Application Metadata ===
    PROJECT_NAME: str = "FlowForge"
    VERSION: str = "1.0.0"

    # === Store Location ===
    # Option 1: Direct SQLAlchemy URL, e.g. "sqlite:////home/me/flowforge.db"
    DATABASE_URL: Optional[str] = None

    # Option 2: Directory + file name, resolved under the user data dir by default
    DATA_DIR: Optional[Path] = None
    DB_FILENAME: str = "flowforge.db"

    # === SQLite Tuning ===
    SQLITE_BUSY_TIMEOUT: float = 30.0  # Seconds to wait on a locked database
    SQL_ECHO: bool = False  # Log every statement through the sqlalchemy.engine logger

    # === Logging ===
    LOG_LEVEL: str = "INFO"

    # === Billing ===
    DEFAULT_CURRENCY_PLACES: int = 2  # Decimal places used when presenting money

    model_config = SettingsConfigDict(
        env_prefix="FLOWFORGE_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    def database_path(self) -> Path:
        return (self.DATA_DIR or user_data_dir()) / self.DB_FILENAME

    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{self.database_path()}"


# Single global settings instance, imported wherever defaults are needed
settings = Settings()
