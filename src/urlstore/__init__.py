"""
URL-keyed persistent cache store.

Maps resource locators to previously fetched payloads in a single SQLite
file. Callers decide what to cache and when it expires; this package only
persists entries and never raises from its store operations.
"""

from urlstore.storage import (
    DefaultFileProvider,
    FileProvider,
    SQLiteStorage,
    StaticFileProvider,
    Storage,
)
from urlstore.types import CacheEntry, canonical_key

__version__ = "0.1.0"

__all__ = [
    "CacheEntry",
    "DefaultFileProvider",
    "FileProvider",
    "SQLiteStorage",
    "StaticFileProvider",
    "Storage",
    "canonical_key",
]
