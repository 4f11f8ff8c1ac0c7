"""
Script Dispatcher
=================

Alternate entry point to the gateway:

- runs the configured bootstrap SQL scripts once at startup
- turns a logical operation name into a stored-procedure call
  (``EXEC {prefix}{separator}{name}``) that is executed later
"""

import re
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from aegis.core.constants import DEFAULT_PROCEDURE_PREFIX, DEFAULT_PROCEDURE_SEPARATOR, PROCEDURE_EXEC_TEMPLATE
from aegis.core.exceptions import BootstrapError, DataAccessError
from aegis.core.logging_config import get_logger
from aegis.database.gateway import DatabaseGateway, Parameters
from aegis.database.results import QueryResult

logger = get_logger("aegis.database.scripts")

_IDENTIFIER = re.compile(r"^\w+$")
_SEPARATOR = re.compile(r"^[\w.]*$")

ProcedureCall = Callable[..., QueryResult]
AsyncProcedureCall = Callable[..., Awaitable[QueryResult]]


class ScriptDispatcher:
    """
    Bootstrap scripts and named stored procedures on top of a gateway.

    Example:
        dispatcher = ScriptDispatcher(gateway)
        dispatcher.bootstrap(["sql/persons.sql"])

        get_person = dispatcher.resolve("GetPerson")   # EXEC Proc_GetPerson
        result = get_person({"id": "AAAAAAAA"})
    """

    def __init__(self, gateway: DatabaseGateway, prefix: Optional[str] = None,
                 separator: Optional[str] = None):
        """
        Args:
            gateway: Gateway the scripts and procedures run through
            prefix: Default procedure prefix (``settings.procedure_prefix`` when omitted)
            separator: Default prefix/name separator (``settings.procedure_separator`` when omitted)
        """
        if prefix is None or separator is None:
            from aegis.config import settings
            prefix = settings.procedure_prefix if prefix is None else prefix
            separator = settings.procedure_separator if separator is None else separator

        self.gateway = gateway
        self.prefix = prefix or DEFAULT_PROCEDURE_PREFIX
        self.separator = DEFAULT_PROCEDURE_SEPARATOR if separator is None else separator
        self.bootstrapped = False

    # ========================================
    # Bootstrap
    # ========================================

    def bootstrap(self, script_paths: Optional[Sequence[str]] = None) -> int:
        """
        Execute each script file in order, once.

        Args:
            script_paths: Files to run; defaults to ``settings.bootstrap_scripts``

        Returns:
            Number of scripts executed (0 if this dispatcher already bootstrapped)

        Raises:
            BootstrapError: On the first file that cannot be read or executed;
                the remaining scripts are not run
        """
        if self.bootstrapped:
            logger.debug("Bootstrap scripts already executed, skipping")
            return 0

        if script_paths is None:
            from aegis.config import settings
            script_paths = settings.bootstrap_scripts

        executed = 0
        for path in script_paths:
            logger.info(f"Running bootstrap script: {path}")
            try:
                script = Path(path).read_text(encoding="utf-8")
            except OSError as e:
                logger.error(f"Cannot read bootstrap script {path}: {e}")
                raise BootstrapError(str(path), str(e)) from e

            try:
                self.gateway.execute_script(script)
            except DataAccessError as e:
                raise BootstrapError(str(path), str(e)) from e
            executed += 1

        self.bootstrapped = True
        logger.info(f"Bootstrap complete, {executed} script(s) executed")
        return executed

    # ========================================
    # Stored procedures
    # ========================================

    def procedure_name(self, name: str, prefix: Optional[str] = None,
                       separator: Optional[str] = None) -> str:
        """Build ``{prefix}{separator}{name}``."""
        prefix = self.prefix if prefix is None else prefix
        separator = self.separator if separator is None else separator
        for part in (prefix, name):
            if not _IDENTIFIER.match(part):
                raise ValueError(f"Procedure name parts must be identifiers, got {part!r}")
        if not _SEPARATOR.match(separator):
            raise ValueError(f"Unsupported procedure separator: {separator!r}")
        return f"{prefix}{separator}{name}"

    def resolve(self, name: str, prefix: Optional[str] = None,
                separator: Optional[str] = None) -> ProcedureCall:
        """
        Get a callable that executes a stored procedure.

        Nothing touches the database until the callable is invoked. Each
        parameter is passed to the procedure by name, so
        ``call({"id": "AAAAAAAA"})`` runs ``EXEC Proc_GetPerson @id = :id``.

        Args:
            name: Logical operation name, e.g. ``"GetPerson"``
            prefix: Procedure prefix (default ``"Proc"``)
            separator: Separator between prefix and name (default ``"_"``)

        Returns:
            ``call(parameters=None) -> QueryResult``

        Raises:
            ValueError: If a name part, or later a parameter name, is not an identifier
        """
        sql = PROCEDURE_EXEC_TEMPLATE.format(target=self.procedure_name(name, prefix, separator))

        def call(parameters: Parameters = None) -> QueryResult:
            return self.gateway.fetch_all(procedure_call_sql(sql, parameters), parameters)

        call.sql = sql
        return call

    def resolve_async(self, name: str, prefix: Optional[str] = None,
                      separator: Optional[str] = None) -> AsyncProcedureCall:
        """Non-blocking ``resolve``: the callable is a coroutine function."""
        sql = PROCEDURE_EXEC_TEMPLATE.format(target=self.procedure_name(name, prefix, separator))

        async def call(parameters: Parameters = None) -> QueryResult:
            return await self.gateway.fetch_all_async(procedure_call_sql(sql, parameters), parameters)

        call.sql = sql
        return call


def procedure_call_sql(exec_sql: str, parameters: Parameters = None) -> str:
    """Append ``@name = :name`` arguments for every parameter to an EXEC statement."""
    if not parameters:
        return exec_sql
    for key in parameters:
        if not _IDENTIFIER.match(key):
            raise ValueError(f"Procedure parameter names must be identifiers, got {key!r}")
    return f"{exec_sql} " + ", ".join(f"@{key} = :{key}" for key in parameters)
