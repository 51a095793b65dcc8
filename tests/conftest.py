"""
Pytest configuration and fixtures for URL cache store tests.
"""

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from urlstore.config import Settings, clear_settings_cache
from urlstore.storage import SQLiteStorage, StaticFileProvider
from urlstore.types import CacheEntry


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide URLSTORE_* environment variables pointing into temp_dir."""
    env_vars = {
        "URLSTORE_CACHE_DIR": str(temp_dir / "cache"),
        "URLSTORE_CACHE_FILE_NAME": "test.cache.sqlite",
        "URLSTORE_SQLITE_TIMEOUT": "2.5",
        "URLSTORE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Settings:
    """Provide a Settings instance built from mock_env_vars."""
    return Settings(_env_file=None)


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Path of a not-yet-created cache database."""
    return temp_dir / "cache" / "com.urlstore.cache.sqlite"


@pytest.fixture
def storage(db_path: Path) -> Generator[SQLiteStorage, None, None]:
    """Provide a file-backed store that is closed after the test."""
    store = SQLiteStorage(StaticFileProvider(db_path), timeout=1.0)
    yield store
    store.close()


@pytest.fixture
def memory_storage() -> Generator[SQLiteStorage, None, None]:
    """Provide an in-memory store."""
    store = SQLiteStorage(StaticFileProvider.memory(), timeout=1.0)
    yield store
    store.close()


@pytest.fixture
def entry() -> CacheEntry:
    """Provide a sample entry with whole-second timestamps."""
    return CacheEntry(
        url="https://example.com/images/cat.png",
        data=b"\x89PNG\r\n\x1a\n fake image bytes",
        content_type="image/png",
        time_to_live=3600,
        creation_date=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
        modification_date=datetime(2024, 5, 2, 8, 30, 15, tzinfo=timezone.utc),
    )


@pytest.fixture
def raw_db(storage: SQLiteStorage, db_path: Path) -> Generator[sqlite3.Connection, None, None]:
    """Open a second, independent connection to the storage fixture's file."""
    conn = sqlite3.connect(str(db_path), isolation_level=None)
    yield conn
    conn.close()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
