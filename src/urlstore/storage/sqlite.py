"""
SQLite-backed storage for cache entries.

One database file holds a single ``entry`` table keyed by the canonical
locator string. The connection and four prepared statements (upsert,
select, delete, delete-all) are created once per store and reused for every
call.

Every internal step (open, schema, prepare, bind, step, reset, decode)
returns a StepResult instead of raising. The public operations log failed
results and discard them, so a broken store behaves like an empty cache.
"""

from __future__ import annotations

import math
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any, Generic, TypeVar

from urlstore.config import get_settings
from urlstore.exceptions import (
    BindError,
    ConnectionOpenError,
    DecodeError,
    ExecutionError,
    SchemaError,
    StatementPrepareError,
    StorageError,
    URLStoreError,
)
from urlstore.logging import get_logger, log_context
from urlstore.storage.base import FileProvider, Storage
from urlstore.storage.paths import MEMORY_PATH, DefaultFileProvider
from urlstore.types import (
    CacheEntry,
    Locator,
    canonical_key,
    from_epoch_seconds,
    is_valid_locator,
    to_epoch_seconds,
)

logger = get_logger(__name__)

T = TypeVar("T")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS entry (
        key TEXT NOT NULL PRIMARY KEY,
        url TEXT NOT NULL,
        data BLOB NOT NULL,
        content_type TEXT,
        ttl INTEGER,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    )
"""

UPSERT = "upsert"
SELECT = "select"
DELETE = "delete"
DELETE_ALL = "delete_all"

STATEMENTS: dict[str, str] = {
    UPSERT: """
        INSERT OR REPLACE INTO entry
            (key, url, data, content_type, ttl, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """,
    SELECT: """
        SELECT key, url, data, content_type, ttl, created_at, updated_at
        FROM entry WHERE key = ?
    """,
    DELETE: "DELETE FROM entry WHERE key = ?",
    DELETE_ALL: "DELETE FROM entry",
}


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Outcome of one internal storage step."""

    value: T | None = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> StepResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: StorageError) -> StepResult[T]:
        return cls(error=error)


class PreparedStatement:
    """A compiled, reusable statement bound to one connection.

    Bound parameters and cursor state are shared between callers, so the
    whole bind -> step -> reset sequence must run while holding ``lock``.
    """

    def __init__(
        self,
        name: str,
        sql: str,
        conn: sqlite3.Connection,
        lock: threading.RLock,
    ) -> None:
        self.name = name
        self.sql = sql
        self.lock = lock
        self.parameter_count = sql.count("?")
        self._cursor = conn.cursor()
        self._params: tuple[Any, ...] | None = None

    @classmethod
    def prepare(
        cls,
        name: str,
        sql: str,
        conn: sqlite3.Connection,
        lock: threading.RLock,
    ) -> StepResult[PreparedStatement]:
        """Compile a statement against the live schema.

        ``EXPLAIN`` makes SQLite compile the statement without running it, so
        missing tables or columns surface here rather than on first use.
        """
        placeholders = (None,) * sql.count("?")
        try:
            conn.execute(f"EXPLAIN {sql}", placeholders).fetchall()
            return StepResult.success(cls(name, sql, conn, lock))
        except sqlite3.Error as e:
            return StepResult.failure(
                StatementPrepareError(
                    "Failed to prepare statement",
                    context={"statement": name, "sqlite_error": str(e)},
                )
            )

    def bind(self, params: tuple[Any, ...]) -> StepResult[None]:
        """Attach parameters for the next step."""
        if len(params) != self.parameter_count:
            return StepResult.failure(
                BindError(
                    "Wrong number of parameters",
                    context={
                        "statement": self.name,
                        "expected": self.parameter_count,
                        "got": len(params),
                    },
                )
            )
        self._params = params
        return StepResult.success()

    def step(self) -> StepResult[tuple[Any, ...]]:
        """Execute with the bound parameters and return the first row, if any."""
        if self._params is None and self.parameter_count:
            return StepResult.failure(
                ExecutionError("Statement has unbound parameters", context={"statement": self.name})
            )
        try:
            self._cursor.execute(self.sql, self._params or ())
            return StepResult.success(self._cursor.fetchone())
        except (sqlite3.Error, ValueError, OverflowError) as e:
            return StepResult.failure(
                ExecutionError(
                    "Statement failed",
                    context={"statement": self.name, "sqlite_error": str(e)},
                )
            )

    def reset(self) -> StepResult[None]:
        """Clear bindings and finish any pending rows. Never raises."""
        self._params = None
        try:
            self._cursor.fetchall()
            return StepResult.success()
        except sqlite3.Error as e:
            return StepResult.failure(
                ExecutionError(
                    "Failed to reset statement",
                    context={"statement": self.name, "sqlite_error": str(e)},
                )
            )

    def close(self) -> None:
        try:
            self._cursor.close()
        except sqlite3.Error:
            logger.debug("Cursor already closed", statement=self.name)


class SQLiteConnection:
    """Owns the sqlite3 connection and the four prepared statements.

    Use ``SQLiteConnection.connect()`` to open, create the schema and prepare
    the statements in one go. A connection that failed to open or to create
    the schema is disabled: ``statement()`` returns None for every name.
    """

    def __init__(self, path: str, timeout: float = 5.0) -> None:
        self.path = path
        self.timeout = timeout
        self.lock = threading.RLock()
        self.error: StorageError | None = None
        self._conn: sqlite3.Connection | None = None
        self._statements: dict[str, PreparedStatement] = {}

    @classmethod
    def connect(cls, path: str, timeout: float = 5.0) -> SQLiteConnection:
        """Open a connection and prepare it for use, logging any failure."""
        connection = cls(path, timeout)

        opened = connection.open()
        if opened.ok:
            created = connection.create_schema()
            if not created.ok:
                connection.disable(created.error)
        else:
            connection.disable(opened.error)

        if connection.enabled:
            for name, result in connection.prepare_statements().items():
                if not result.ok:
                    logger.warning("Statement unavailable", statement=name, error=str(result.error))

        return connection

    @property
    def label(self) -> str:
        if self.path == MEMORY_PATH:
            return MEMORY_PATH
        return Path(self.path).name

    @property
    def enabled(self) -> bool:
        return self._conn is not None

    def open(self) -> StepResult[sqlite3.Connection]:
        """Open (creating if needed) the database file."""
        uri = self.path.startswith("file:")
        try:
            if self.path != MEMORY_PATH and not uri:
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                self.path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
                uri=uri,
            )
            return StepResult.success(self._conn)
        except (sqlite3.Error, OSError) as e:
            return StepResult.failure(
                ConnectionOpenError(
                    "Failed to open cache database",
                    context={"path": self.path, "sqlite_error": str(e)},
                )
            )

    def create_schema(self) -> StepResult[None]:
        """Create the entry table if it does not exist yet."""
        if self._conn is None:
            return StepResult.failure(SchemaError("Connection is not open", context={"path": self.path}))
        try:
            self._conn.execute(SCHEMA_SQL)
            return StepResult.success()
        except sqlite3.Error as e:
            return StepResult.failure(
                SchemaError(
                    "Failed to create entry table",
                    context={"path": self.path, "sqlite_error": str(e)},
                )
            )

    def prepare_statements(self) -> dict[str, StepResult[PreparedStatement]]:
        """Prepare every statement, keeping the ones that compiled."""
        results: dict[str, StepResult[PreparedStatement]] = {}
        if self._conn is None:
            return results
        for name, sql in STATEMENTS.items():
            result = PreparedStatement.prepare(name, sql, self._conn, self.lock)
            if result.ok and result.value is not None:
                self._statements[name] = result.value
            results[name] = result
        return results

    def statement(self, name: str) -> PreparedStatement | None:
        return self._statements.get(name)

    def disable(self, error: StorageError | None) -> None:
        """Drop the connection after a construction failure."""
        self.error = error
        logger.warning("Cache store disabled", path=self.path, error=str(error))
        self.close()

    def close(self) -> None:
        """Release statements and the connection. Safe to call repeatedly."""
        with self.lock:
            for statement in self._statements.values():
                statement.close()
            self._statements.clear()
            if self._conn is not None:
                try:
                    self._conn.close()
                except sqlite3.Error as e:
                    logger.warning("Failed to close cache database", path=self.path, error=str(e))
                self._conn = None


def _int64(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BindError("Expected a number", context={"field": field, "value": value})
    if isinstance(value, float) and not math.isfinite(value):
        raise BindError("Expected a finite number", context={"field": field, "value": value})
    number = int(value)
    if not INT64_MIN <= number <= INT64_MAX:
        raise BindError("Number out of 64-bit range", context={"field": field, "value": value})
    return number


def _encodable(text: str, field: str) -> str:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise BindError("Text is not valid UTF-8", context={"field": field}) from e
    return text


def bind_entry(key: str, entry: CacheEntry) -> StepResult[tuple[Any, ...]]:
    """Marshal an entry into upsert parameters.

    ``data`` is copied into a new bytes object so nothing keeps a reference to
    the caller's buffer. Timestamps become whole seconds since the epoch. Urls
    that would not load back and text that cannot be encoded are rejected.
    """
    try:
        if not isinstance(entry.data, (bytes, bytearray, memoryview)):
            raise BindError("Expected bytes", context={"field": "data"})
        if not isinstance(entry.content_type, str):
            raise BindError("Expected a string", context={"field": "content_type"})
        try:
            created_at = to_epoch_seconds(entry.creation_date)
            updated_at = to_epoch_seconds(entry.modification_date)
        except (AttributeError, TypeError, ValueError, OverflowError, OSError) as e:
            raise BindError("Invalid timestamp", context={"field": "dates"}) from e
        url = _encodable(canonical_key(entry.url), "url")
        if not is_valid_locator(url):
            raise BindError("Url is not a valid locator", context={"field": "url"})
        ttl = None if entry.time_to_live is None else _int64(entry.time_to_live, "time_to_live")
        params = (
            _encodable(key, "key"),
            url,
            bytes(entry.data),
            _encodable(entry.content_type, "content_type"),
            ttl,
            _int64(created_at, "creation_date"),
            _int64(updated_at, "modification_date"),
        )
    except BindError as e:
        e.context.setdefault("statement", UPSERT)
        return StepResult.failure(e)
    except (TypeError, ValueError) as e:
        return StepResult.failure(
            BindError("Invalid entry", context={"statement": UPSERT, "reason": str(e)})
        )
    return StepResult.success(params)


def decode_row(row: tuple[Any, ...]) -> StepResult[CacheEntry]:
    """Turn a selected row back into a CacheEntry.

    A stored url that no longer parses, a NULL blob or a NULL content type all
    make the row unusable.
    """
    _, url, data, content_type, ttl, created_at, updated_at = row

    if not isinstance(url, str) or not is_valid_locator(url):
        return StepResult.failure(DecodeError("Stored url is not a valid locator", context={"column": "url"}))
    if data is None:
        return StepResult.failure(DecodeError("Missing data", context={"column": "data"}))
    if content_type is None:
        return StepResult.failure(DecodeError("Missing content type", context={"column": "content_type"}))

    if isinstance(data, str):
        data = data.encode("utf-8")
    if not isinstance(data, bytes):
        return StepResult.failure(DecodeError("Data is not a blob", context={"column": "data"}))
    if isinstance(content_type, bytes):
        content_type = content_type.decode("utf-8", errors="replace")

    try:
        entry = CacheEntry(
            url=url,
            data=bytes(data),
            content_type=str(content_type),
            time_to_live=None if ttl is None else float(ttl),
            creation_date=from_epoch_seconds(int(created_at)),
            modification_date=from_epoch_seconds(int(updated_at)),
        )
    except (TypeError, ValueError, OverflowError, OSError) as e:
        return StepResult.failure(
            DecodeError("Invalid stored value", context={"column": "ttl/dates", "reason": str(e)})
        )
    return StepResult.success(entry)


class SQLiteStorage(Storage):
    """Persistent URL-keyed cache backed by a single SQLite file.

    Best-effort by contract: store, load, remove and remove_all never raise.
    Any failure (including a database that could not be opened) makes the
    store behave like an empty cache. Safe to share between threads.

    Example:
        with SQLiteStorage(StaticFileProvider(tmp_path / "cache.sqlite")) as storage:
            storage.store(entry, entry.url)
            cached = storage.load(entry.url)
    """

    def __init__(
        self,
        file_provider: FileProvider | None = None,
        timeout: float | None = None,
    ) -> None:
        """Open the backing database.

        Args:
            file_provider: Supplies the database path. Defaults to
                DefaultFileProvider, which reads the URLSTORE_* settings.
            timeout: Seconds to wait on a locked database file. Defaults to
                URLSTORE_SQLITE_TIMEOUT.
        """
        file_provider = file_provider or DefaultFileProvider()
        try:
            path = file_provider.path
            if timeout is None:
                timeout = get_settings().SQLITE_TIMEOUT
        except (URLStoreError, OSError, ValueError) as e:
            self._connection = SQLiteConnection("")
            self._connection.disable(
                ConnectionOpenError("Could not resolve cache database path", context={"reason": str(e)})
            )
            return

        self._connection = SQLiteConnection.connect(path, timeout)
        if self._connection.enabled:
            logger.info("Cache store opened", path=path)

    @property
    def enabled(self) -> bool:
        """Whether the backing database is open."""
        return self._connection.enabled

    def __enter__(self) -> SQLiteStorage:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the connection. Later calls behave like an empty cache."""
        self._connection.close()

    def _run(self, name: str, params: tuple[Any, ...] = ()) -> StepResult[tuple[Any, ...]]:
        statement = self._connection.statement(name)
        if statement is None:
            return StepResult.failure(
                ExecutionError("Statement unavailable", context={"statement": name})
            )
        with statement.lock:
            result: StepResult[tuple[Any, ...]]
            try:
                bound = statement.bind(params)
                if bound.ok:
                    result = statement.step()
                else:
                    result = StepResult(error=bound.error)
            finally:
                reset = statement.reset()
        if not reset.ok:
            logger.debug("Reset failed", error=str(reset.error))
        return result

    def _key(self, locator: Locator, statement: str) -> StepResult[str]:
        try:
            return StepResult.success(_encodable(canonical_key(locator), "key"))
        except BindError as e:
            e.context.setdefault("statement", statement)
            return StepResult.failure(e)
        except (TypeError, ValueError) as e:
            return StepResult.failure(
                BindError("Invalid locator", context={"statement": statement, "reason": str(e)})
            )

    def store(self, entry: CacheEntry, locator: Locator) -> None:
        """Store ``entry`` under ``locator``, replacing any previous entry."""
        with log_context(store=self._connection.label, operation="store"):
            key = self._key(locator, UPSERT)
            if not key.ok or key.value is None:
                logger.debug("Store skipped", error=str(key.error))
                return
            params = bind_entry(key.value, entry)
            if not params.ok or params.value is None:
                logger.debug("Store skipped", error=str(params.error))
                return
            result = self._run(UPSERT, params.value)
            if not result.ok:
                logger.debug("Store failed", error=str(result.error))

    def load(self, locator: Locator) -> CacheEntry | None:
        """Load the entry for ``locator``, or None when absent or unreadable."""
        with log_context(store=self._connection.label, operation="load"):
            key = self._key(locator, SELECT)
            if not key.ok or key.value is None:
                logger.debug("Load skipped", error=str(key.error))
                return None
            result = self._run(SELECT, (key.value,))
            if not result.ok:
                logger.debug("Load failed", error=str(result.error))
                return None
            if result.value is None:
                return None
            decoded = decode_row(result.value)
            if not decoded.ok:
                logger.debug("Discarding unreadable entry", key=key.value, error=str(decoded.error))
                return None
            return decoded.value

    def remove(self, locator: Locator) -> None:
        """Remove the entry for ``locator`` if there is one."""
        with log_context(store=self._connection.label, operation="remove"):
            key = self._key(locator, DELETE)
            if not key.ok or key.value is None:
                logger.debug("Remove skipped", error=str(key.error))
                return
            result = self._run(DELETE, (key.value,))
            if not result.ok:
                logger.debug("Remove failed", error=str(result.error))

    def remove_all(self) -> None:
        """Remove every entry."""
        with log_context(store=self._connection.label, operation="remove_all"):
            result = self._run(DELETE_ALL)
            if not result.ok:
                logger.debug("Remove all failed", error=str(result.error))
