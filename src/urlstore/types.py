"""
Core types for the URL cache store.

This module defines:
- CacheEntry, the frozen dataclass persisted by a Storage
- Locator helpers for key derivation and validation
- Helper functions for timestamps at whole-second precision
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Union
from urllib.parse import ParseResult, SplitResult, urlsplit

# Anything whose str() is its full URL form is accepted as well.
Locator = Union[str, SplitResult, ParseResult]


def utc_now() -> datetime:
    """Get current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_epoch_seconds(value: datetime) -> int:
    """Convert a datetime to integer seconds since the Unix epoch.

    Naive datetimes are taken to be UTC. Sub-second precision is dropped.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return math.floor(value.timestamp())


def from_epoch_seconds(seconds: int) -> datetime:
    """Convert integer seconds since the Unix epoch to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def canonical_key(locator: Locator) -> str:
    """Derive the storage key for a locator.

    The key is the locator's full string form. ``urllib.parse`` results are
    reassembled with ``geturl()``; any other object is passed through ``str()``,
    which covers plain strings and URL types such as ``pydantic.AnyUrl`` or
    ``httpx.URL``.

    Args:
        locator: A URL string or URL object.

    Returns:
        The canonical key string.

    Raises:
        ValueError: If the locator canonicalizes to an empty string.
    """
    if isinstance(locator, (SplitResult, ParseResult)):
        key = locator.geturl()
    else:
        key = str(locator)
    if not key:
        raise ValueError("Locator must not be empty")
    return key


def is_valid_locator(text: str) -> bool:
    """Check that a stored string still parses as a locator.

    Rejects empty strings, whitespace and control characters, and anything
    ``urlsplit`` refuses (e.g. an unterminated IPv6 host).
    """
    if not text:
        return False
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in text):
        return False
    try:
        urlsplit(text)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload for one locator.

    Attributes:
        url: Canonical string form of the resource locator.
        data: Opaque payload bytes.
        content_type: MIME type of the payload.
        time_to_live: Expiry in seconds, or None when no expiry is recorded.
            The store persists this value but never acts on it.
        creation_date: When the entry was first created.
        modification_date: When the entry was last written.
    """

    url: str
    data: bytes
    content_type: str
    creation_date: datetime
    modification_date: datetime
    time_to_live: float | None = None

    @classmethod
    def create(
        cls,
        url: Locator,
        data: bytes,
        content_type: str,
        time_to_live: float | None = None,
    ) -> CacheEntry:
        """Create a new entry stamped with the current time."""
        now = utc_now()
        return cls(
            url=canonical_key(url),
            data=bytes(data),
            content_type=content_type,
            creation_date=now,
            modification_date=now,
            time_to_live=time_to_live,
        )

    def touched(self) -> CacheEntry:
        """Return a copy with a fresh modification date."""
        return replace(self, modification_date=utc_now())
