"""File providers resolving where the cache database lives."""

from __future__ import annotations

from pathlib import Path

from urlstore.config import Settings, get_settings

MEMORY_PATH = ":memory:"


class DefaultFileProvider:
    """Resolves the database path from settings.

    Defaults to ``<platform cache dir>/com.urlstore.cache.sqlite``; both parts
    can be overridden with URLSTORE_CACHE_DIR and URLSTORE_CACHE_FILE_NAME.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    @property
    def path(self) -> str:
        settings = self._settings or get_settings()
        return str(settings.database_path)


class StaticFileProvider:
    """Returns a fixed path. Use ``StaticFileProvider.memory()`` for tests."""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)

    @classmethod
    def memory(cls) -> StaticFileProvider:
        """Provider for a private in-memory database."""
        return cls(MEMORY_PATH)

    @property
    def path(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"StaticFileProvider({self._path!r})"
