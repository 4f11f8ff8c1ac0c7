"""
Data access exceptions.

Every failure in the gateway, dispatcher or repositories surfaces as one
of these. Driver errors are chained (``raise ... from error``) so the
original message stays available on ``__cause__``.
"""

from asyncio import CancelledError


class DataAccessError(Exception):
    """Base class for all data access failures."""


class DatabaseConnectionError(DataAccessError):
    """A connection to the database could not be opened."""


class QueryError(DataAccessError):
    """
    The database rejected a statement.

    Covers syntax errors, constraint violations, type mismatches and
    placeholders without a matching parameter. Not classified further.
    """

    def __init__(self, message: str, statement: str = None):
        super().__init__(message)
        self.statement = statement


class NotFoundError(DataAccessError, LookupError):
    """A ``first`` lookup matched zero rows."""


class SchemaError(DataAccessError):
    """A table does not match what its repository declares."""


class BootstrapError(DataAccessError):
    """A startup script could not be read or executed."""

    def __init__(self, path: str, message: str):
        super().__init__(f"Bootstrap script {path!r} failed: {message}")
        self.path = path


__all__ = [
    "BootstrapError",
    "CancelledError",
    "DataAccessError",
    "DatabaseConnectionError",
    "NotFoundError",
    "QueryError",
    "SchemaError",
]
