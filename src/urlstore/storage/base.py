"""
Base classes for URL-keyed storage.

- Storage: Abstract interface for persistent cache entry stores
- FileProvider: Protocol for supplying the backing file path
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from urlstore.types import CacheEntry, Locator


@runtime_checkable
class FileProvider(Protocol):
    """Supplies the file-system path of a backing database."""

    @property
    def path(self) -> str:
        ...


class Storage(ABC):
    """Abstract interface for cache entry stores.

    Implementations never raise from these operations. A failing store
    behaves like an empty one.
    """

    @abstractmethod
    def store(self, entry: CacheEntry, locator: Locator) -> None:
        """Store an entry under a locator, replacing any previous entry."""
        ...

    @abstractmethod
    def load(self, locator: Locator) -> CacheEntry | None:
        """Load the entry stored under a locator."""
        ...

    @abstractmethod
    def remove(self, locator: Locator) -> None:
        """Remove the entry stored under a locator."""
        ...

    @abstractmethod
    def remove_all(self) -> None:
        """Remove every entry."""
        ...
