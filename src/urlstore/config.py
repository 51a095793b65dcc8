"""
Configuration management using pydantic-settings.

Loads configuration from URLSTORE_* environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from urlstore.exceptions import ConfigurationError

DEFAULT_CACHE_FILE_NAME = "com.urlstore.cache.sqlite"


def platform_cache_dir() -> Path:
    """Return the per-user cache directory for the current platform.

    Raises:
        ConfigurationError: If no home directory can be determined.
    """
    try:
        if sys.platform == "darwin":
            return Path.home() / "Library" / "Caches"
        if sys.platform == "win32":
            local_app_data = os.environ.get("LOCALAPPDATA")
            if local_app_data:
                return Path(local_app_data)
            return Path.home() / "AppData" / "Local"
        xdg_cache_home = os.environ.get("XDG_CACHE_HOME")
        if xdg_cache_home and Path(xdg_cache_home).is_absolute():
            return Path(xdg_cache_home)
        return Path.home() / ".cache"
    except RuntimeError as e:
        raise ConfigurationError(
            "Could not determine a cache directory",
            context={"platform": sys.platform},
        ) from e


class Settings(BaseSettings):
    """Store settings loaded from environment variables.

    Optional:
        URLSTORE_CACHE_DIR: Directory holding the database file
            (defaults to the platform cache directory)
        URLSTORE_CACHE_FILE_NAME: Database file name
        URLSTORE_SQLITE_TIMEOUT: Seconds to wait on a locked database file
        URLSTORE_LOG_LEVEL: Logging level
        URLSTORE_LOG_FILE: JSON Lines log file
    """

    model_config = SettingsConfigDict(
        env_prefix="URLSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_DIR: Path | None = Field(
        default=None,
        description="Directory for the cache database (platform cache dir if unset)",
    )
    CACHE_FILE_NAME: str = Field(
        default=DEFAULT_CACHE_FILE_NAME,
        min_length=1,
        description="File name of the cache database",
    )
    SQLITE_TIMEOUT: float = Field(
        default=5.0, ge=0.0, description="Busy timeout for the SQLite connection"
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON Lines log file")

    @field_validator("CACHE_FILE_NAME")
    @classmethod
    def validate_cache_file_name(cls, v: str) -> str:
        """Validate that CACHE_FILE_NAME is a bare file name."""
        if v in (".", "..") or "/" in v or "\\" in v:
            raise ValueError("CACHE_FILE_NAME must be a file name, not a path")
        return v

    @property
    def cache_dir(self) -> Path:
        """Resolved cache directory."""
        if self.CACHE_DIR is not None:
            return self.CACHE_DIR.expanduser()
        return platform_cache_dir()

    @property
    def database_path(self) -> Path:
        """Full path of the cache database file."""
        return self.cache_dir / self.CACHE_FILE_NAME


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
