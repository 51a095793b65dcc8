"""
Custom exception hierarchy for the URL cache store.

All exceptions inherit from URLStoreError, which provides optional context
for structured error handling and logging.

Storage errors are never raised out of the public store operations. They are
carried inside StepResult values between internal steps and logged at the
boundary.
"""

from __future__ import annotations

from typing import Any


class URLStoreError(Exception):
    """Base exception for all URL cache store errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(URLStoreError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Cache file name containing a directory separator
        - Cache directory that cannot be resolved
    """

    pass


class StorageError(URLStoreError):
    """Base class for failures inside the SQLite storage engine.

    Context should include:
        - step: The internal step that failed (open, schema, prepare, ...)
        - sqlite_error: The underlying sqlite3 error name, if any
    """

    pass


class ConnectionOpenError(StorageError):
    """The backing database file could not be opened or created."""

    pass


class SchemaError(StorageError):
    """The entry table could not be created."""

    pass


class StatementPrepareError(StorageError):
    """A statement failed to compile against the schema.

    Context should include:
        - statement: Name of the statement (upsert, select, delete, delete_all)
    """

    pass


class BindError(StorageError):
    """A value could not be marshalled into statement parameters.

    Context should include:
        - statement: Name of the statement
        - field: The entry field that could not be bound
    """

    pass


class ExecutionError(StorageError):
    """A statement failed while executing."""

    pass


class DecodeError(StorageError):
    """A stored row could not be turned back into a CacheEntry.

    Context should include:
        - column: The column holding the unusable value
    """

    pass
