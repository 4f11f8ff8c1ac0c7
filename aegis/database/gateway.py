"""
Database Gateway
================

Issues SQL against the store and materializes the results.

Every call opens its own connection and closes it before returning or
raising. Values are always bound by name (``:name`` placeholders); only
the SQL skeleton is ever text.
"""

import asyncio
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Iterator, List, Mapping, Optional, TypeVar, Union

from sqlalchemy import Table, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import Executable

from aegis.core.constants import IsolationLevel
from aegis.core.exceptions import CancelledError, DatabaseConnectionError, QueryError
from aegis.core.logging_config import DatabaseLogger
from aegis.database.results import QueryResult
from aegis.database.session import create_db_engine, get_engine

T = TypeVar("T")

Parameters = Optional[Mapping[str, Any]]
Statement = Union[str, Executable]


# ========================================
# Cancellation
# ========================================

class _InFlightCall:
    """Driver connections and cursors opened on behalf of one non-blocking call."""

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: List[Any] = []
        self._cursors: List[Any] = []
        self.cancelled = False

    def _register(self, target: List[Any], item: Any) -> None:
        with self._lock:
            if self.cancelled:
                raise CancelledError("Database call was cancelled before it started")
            target.append(item)

    def attach(self, driver_connection: Any) -> None:
        self._register(self._connections, driver_connection)

    def attach_cursor(self, cursor: Any) -> None:
        self._register(self._cursors, cursor)

    def interrupt(self, logger) -> None:
        with self._lock:
            self.cancelled = True
            connections = list(self._connections)
            cursors = list(self._cursors)

        # sqlite3 aborts through the connection, pyodbc and most others
        # through the executing cursor
        aborts = [getattr(c, "interrupt", None) for c in connections]
        aborts += [getattr(c, "cancel", None) for c in cursors]
        aborts = [abort for abort in aborts if abort is not None]

        if (connections or cursors) and not aborts:
            logger.warning("Database driver offers no way to interrupt the running call")

        for abort in aborts:
            try:
                abort()
            except Exception as e:
                logger.warning(f"Interrupting database call failed: {e}")


_in_flight: ContextVar[Optional[_InFlightCall]] = ContextVar("aegis_in_flight_call", default=None)


def _track_cursor(conn, cursor, statement, parameters, context, executemany):
    call = _in_flight.get()
    if call is not None:
        call.attach_cursor(cursor)


def _as_statement(sql: Statement) -> Executable:
    return text(sql) if isinstance(sql, str) else sql


# ========================================
# Transactions
# ========================================

class GatewayTransaction:
    """
    Several statements on one connection, committed together.

    Obtained from ``DatabaseGateway.transaction()``; offers the same
    ``fetch_all`` / ``execute_statement`` calls as the gateway.
    """

    def __init__(self, gateway: "DatabaseGateway", conn: Connection):
        self.gateway = gateway
        self.connection = conn

    @property
    def dialect(self):
        return self.gateway.dialect

    def fetch_all(self, sql: Statement, parameters: Parameters = None) -> QueryResult:
        return self.gateway._run(self.connection, "fetch_all", sql, parameters, fetch=True)

    def execute_statement(self, sql: Statement, parameters: Parameters = None) -> QueryResult:
        return self.gateway._run(self.connection, "execute_statement", sql, parameters, fetch=False)


# ========================================
# Gateway
# ========================================

class DatabaseGateway:
    """
    Runs SQL through a SQLAlchemy engine, one connection per call.

    Example:
        gateway = DatabaseGateway.from_url("sqlite:///./data/aegis.db")

        result = gateway.fetch_all(
            "SELECT id, name FROM persons WHERE age > :age",
            {"age": 30},
        )
        print(result.count)

        gateway.execute_statement("DELETE FROM persons WHERE id = :id", {"id": "AAAAAAAA"})
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        if not event.contains(engine, "before_cursor_execute", _track_cursor):
            event.listen(engine, "before_cursor_execute", _track_cursor)
        self.db_logger = DatabaseLogger()
        self.logger = self.db_logger.logger

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "DatabaseGateway":
        """Build a gateway (and its engine) from a SQLAlchemy URL."""
        return cls(create_db_engine(database_url, echo=echo))

    @classmethod
    def from_settings(cls, current_settings=None) -> "DatabaseGateway":
        """
        Build a gateway from ``settings.database_url``.

        Without explicit settings the process-wide engine is shared.
        """
        if current_settings is None:
            return cls(get_engine())
        return cls(create_db_engine(current_settings.database_url, echo=current_settings.sql_echo))

    @property
    def dialect(self):
        """SQLAlchemy dialect of the underlying engine."""
        return self.engine.dialect

    # ========================================
    # Connections
    # ========================================

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """
        Context manager for a single connection.

        The connection is closed on every exit path; anything not
        committed by then is rolled back.

        Raises:
            DatabaseConnectionError: If the connection cannot be opened
        """
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as e:
            self.db_logger.log_error("connect", e)
            raise DatabaseConnectionError(f"Could not connect to database: {e}") from e

        self.db_logger.log_connection("opened")
        try:
            call = _in_flight.get()
            if call is not None:
                call.attach(conn.connection.driver_connection)
            yield conn
        finally:
            conn.close()
            self.db_logger.log_connection("closed")

    @contextmanager
    def _query_errors(self, operation: str, statement: Any = None, extra: tuple = ()):
        try:
            yield
        except (SQLAlchemyError, *extra) as e:
            self.db_logger.log_error(operation, e)
            raise QueryError(
                f"Query execution failed: {e}",
                statement=str(statement) if statement is not None else None
            ) from e

    def _run(self, conn: Connection, operation: str, sql: Statement,
             parameters: Parameters, fetch: bool) -> QueryResult:
        statement = _as_statement(sql)
        params = dict(parameters) if parameters else {}
        self.db_logger.log_query(str(statement), params)

        with self._query_errors(operation, statement):
            result = conn.execute(statement, params)
            affected = result.rowcount

            # Writes carry no tabular result, even through fetch_all
            if not fetch or not result.returns_rows:
                result.close()
                return QueryResult(records_affected=affected)

            columns = tuple(result.keys())
            rows = tuple(tuple(row) for row in result.all())

        self.logger.debug(f"{operation} returned {len(rows)} rows")
        return QueryResult(columns=columns, rows=rows, records_affected=affected)

    # ========================================
    # Blocking calls
    # ========================================

    def fetch_all(self, sql: Statement, parameters: Parameters = None) -> QueryResult:
        """
        Execute a query and materialize every row.

        Args:
            sql: SQL text with ``:name`` placeholders, or a SQLAlchemy statement
            parameters: Values for the placeholders, by name

        Returns:
            QueryResult with columns, rows and the driver's affected count

        Raises:
            DatabaseConnectionError: If no connection could be opened
            QueryError: If the database rejected the statement
        """
        with self.connect() as conn:
            result = self._run(conn, "fetch_all", sql, parameters, fetch=True)
            with self._query_errors("commit"):
                conn.commit()
        return result

    def execute_statement(self, sql: Statement, parameters: Parameters = None) -> QueryResult:
        """
        Execute a statement and return only the affected-row count.

        Same lifecycle and failure modes as ``fetch_all``.
        """
        with self.connect() as conn:
            result = self._run(conn, "execute_statement", sql, parameters, fetch=False)
            with self._query_errors("commit"):
                conn.commit()
        self.logger.debug(f"Statement executed, affected rows: {result.records_affected}")
        return result

    def execute_script(self, script: str) -> QueryResult:
        """
        Execute a script that may hold several statements, verbatim.

        SQLite runs it through ``executescript``; other drivers receive the
        whole batch in one call.
        """
        self.db_logger.log_query(script)
        dbapi_error = getattr(self.dialect.dbapi, "Error", SQLAlchemyError)

        with self.connect() as conn:
            with self._query_errors("execute_script", script, extra=(dbapi_error,)):
                driver_connection = conn.connection.driver_connection
                if hasattr(driver_connection, "executescript"):
                    affected = driver_connection.executescript(script).rowcount
                else:
                    affected = conn.exec_driver_sql(script).rowcount
                conn.commit()

        return QueryResult(records_affected=affected)

    def create_table(self, table: Table) -> None:
        """Create ``table`` unless it already exists."""
        with self.connect() as conn:
            with self._query_errors("create_table", f"CREATE TABLE {table.name}"):
                table.create(conn, checkfirst=True)
                conn.commit()
        self.logger.info(f"Table ready: {table.name}")

    def drop_table(self, table: Table) -> None:
        """Drop ``table`` if it exists."""
        with self.connect() as conn:
            with self._query_errors("drop_table", f"DROP TABLE {table.name}"):
                table.drop(conn, checkfirst=True)
                conn.commit()
        self.logger.info(f"Table dropped: {table.name}")

    @contextmanager
    def transaction(self, isolation_level: Union[IsolationLevel, str, None] = IsolationLevel.SERIALIZABLE
                    ) -> Iterator[GatewayTransaction]:
        """
        Context manager running several statements on one connection.

        Commits when the block exits normally, rolls back otherwise.

        Example:
            with gateway.transaction() as tx:
                if tx.fetch_all(count_sql, params).first_at_column("count", int) == 0:
                    tx.execute_statement(insert_sql, params)
        """
        level = getattr(isolation_level, "value", isolation_level)

        with self.connect() as conn:
            if level:
                with self._query_errors("transaction"):
                    conn.execution_options(isolation_level=level)

            tx = GatewayTransaction(self, conn)
            try:
                yield tx
            except BaseException:
                conn.rollback()
                raise

            with self._query_errors("commit"):
                conn.commit()

    # ========================================
    # Non-blocking calls
    # ========================================

    async def run_async(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run a blocking call on a worker thread.

        If the awaiting task is cancelled, every connection the call has
        opened gets one interrupt and ``CancelledError`` propagates to the
        caller. A call cancelled before it connects never executes.
        """
        call = _InFlightCall()
        token = _in_flight.set(call)
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except CancelledError:
            self.logger.info("Database call cancelled, interrupting driver")
            call.interrupt(self.logger)
            raise
        finally:
            _in_flight.reset(token)

    async def fetch_all_async(self, sql: Statement, parameters: Parameters = None) -> QueryResult:
        """Non-blocking ``fetch_all``."""
        return await self.run_async(self.fetch_all, sql, parameters)

    async def execute_statement_async(self, sql: Statement, parameters: Parameters = None) -> QueryResult:
        """Non-blocking ``execute_statement``."""
        return await self.run_async(self.execute_statement, sql, parameters)

    async def execute_script_async(self, script: str) -> QueryResult:
        """Non-blocking ``execute_script``."""
        return await self.run_async(self.execute_script, script)

    def dispose(self) -> None:
        """Release the engine's pooled connections."""
        self.engine.dispose()
