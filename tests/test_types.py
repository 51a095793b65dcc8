"""
Tests for core types and locator helpers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse, urlsplit

import pytest

from urlstore.types import (
    CacheEntry,
    canonical_key,
    from_epoch_seconds,
    is_valid_locator,
    to_epoch_seconds,
    utc_now,
)


class TestCanonicalKey:
    def test_string_is_its_own_key(self) -> None:
        assert canonical_key("https://example.com/a?b=1") == "https://example.com/a?b=1"

    def test_parse_results_are_reassembled(self) -> None:
        url = "https://example.com/a/b.png?size=2#frag"
        assert canonical_key(urlsplit(url)) == url
        assert canonical_key(urlparse(url)) == url

    def test_objects_use_str(self) -> None:
        class FakeURL:
            def __str__(self) -> str:
                return "https://example.com/obj"

        assert canonical_key(FakeURL()) == "https://example.com/obj"  # type: ignore[arg-type]

    def test_empty_locator_rejected(self) -> None:
        with pytest.raises(ValueError):
            canonical_key("")


class TestIsValidLocator:
    @pytest.mark.parametrize(
        "text",
        [
            "https://example.com/",
            "http://[::1]:8080/path",
            "file:///tmp/image.png",
            "relative/path.png",
        ],
    )
    def test_valid(self, text: str) -> None:
        assert is_valid_locator(text)

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "https://example.com/with space",
            "https://example.com/\n",
            "http://[::1/broken",
        ],
    )
    def test_invalid(self, text: str) -> None:
        assert not is_valid_locator(text)


class TestTimestamps:
    def test_round_trip_whole_seconds(self) -> None:
        value = datetime(2023, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
        assert from_epoch_seconds(to_epoch_seconds(value)) == value

    def test_other_timezones_are_converted(self) -> None:
        tokyo = timezone(timedelta(hours=9))
        value = datetime(1970, 1, 1, 9, 0, 0, tzinfo=tokyo)
        assert to_epoch_seconds(value) == 0

    def test_pre_epoch_rounds_down(self) -> None:
        value = datetime(1969, 12, 31, 23, 59, 59, 500_000, tzinfo=timezone.utc)
        assert to_epoch_seconds(value) == -1

    def test_utc_now_has_no_microseconds(self) -> None:
        now = utc_now()
        assert now.microsecond == 0
        assert now.tzinfo is timezone.utc


class TestCacheEntry:
    def test_create_stamps_both_dates(self) -> None:
        entry = CacheEntry.create(urlsplit("https://example.com/x"), bytearray(b"abc"), "text/plain")

        assert entry.url == "https://example.com/x"
        assert entry.data == b"abc"
        assert type(entry.data) is bytes
        assert entry.time_to_live is None
        assert entry.creation_date == entry.modification_date

    def test_touched_keeps_creation_date(self) -> None:
        old = datetime(2020, 1, 1, tzinfo=timezone.utc)
        entry = CacheEntry(
            url="https://example.com/x",
            data=b"",
            content_type="text/plain",
            creation_date=old,
            modification_date=old,
            time_to_live=10,
        )

        touched = entry.touched()

        assert touched.creation_date == old
        assert touched.modification_date > old
        assert touched.time_to_live == 10

    def test_entries_are_frozen(self) -> None:
        entry = CacheEntry.create("https://example.com/x", b"", "text/plain")
        with pytest.raises(AttributeError):
            entry.url = "https://example.com/y"  # type: ignore[misc]
