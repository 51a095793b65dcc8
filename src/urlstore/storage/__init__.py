"""
Storage package for cache entries.

This package provides:
- Storage (base.py): Abstract interface for entry stores
- FileProvider (base.py): Protocol supplying the database path
- DefaultFileProvider, StaticFileProvider (paths.py): Path resolution
- SQLiteStorage (sqlite.py): Persistent store on a single SQLite file
"""

from urlstore.storage.base import FileProvider, Storage
from urlstore.storage.paths import DefaultFileProvider, StaticFileProvider
from urlstore.storage.sqlite import SQLiteStorage

__all__ = [
    "DefaultFileProvider",
    "FileProvider",
    "SQLiteStorage",
    "StaticFileProvider",
    "Storage",
]
