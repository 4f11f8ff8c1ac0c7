"""
Entity Repository
=================

Generic, stateless repository over one table.

Subclasses declare the table (a declarative record) and the entity type
(a pydantic model whose fields are the table columns callers see).
Everything else is shared:

    create_table / drop_table / validate_schema
    add / first / first_or_default / find_all / check
    update / delete / save

Every operation has an ``*_async`` twin running the same code path on a
worker thread (see ``DatabaseGateway.run_async``).

WHERE clauses are either a text fragment with ``:name`` placeholders
(default ``"id = :id"``, bound to the entity's own id) or a typed
``Filter`` from ``aegis.database.filters``.

``where=None`` means the key clause everywhere except ``find_all``, where it
means every row (including soft-deleted ones). Leaving ``where`` out of
``find_all`` skips soft-deleted rows.
"""

from typing import Any, Dict, Generic, Iterator, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel as EntityModel
from sqlalchemy import Table, func, inspect, select, text, true
from sqlalchemy.exc import SQLAlchemyError

from aegis.core.constants import (
    DEFAULT_KEY_COLUMN,
    DEFAULT_SOFT_DELETE_COLUMN,
    DEFAULT_UPDATED_COLUMN,
    IsolationLevel,
    UPDATE_VALUE_PREFIX,
)
from aegis.core.exceptions import NotFoundError, QueryError, SchemaError
from aegis.core.logging_config import get_logger
from aegis.database.filters import Filter, IsNull
from aegis.database.gateway import DatabaseGateway, Parameters
from aegis.database.results import QueryResult
from aegis.models.base import Base, render_utcnow

EntityT = TypeVar("EntityT", bound=EntityModel)

# None: key clause for first/check/update/delete/save, every row for find_all
Where = Union[str, Filter, None]

# Sentinel for "use the repository's default clause"
_DEFAULT = object()


class EntityRepository(Generic[EntityT]):
    """
    Base class for table repositories.

    Class attributes:
        record: Declarative model that owns the table
        entity_type: Pydantic model returned to callers
        key_column: Primary key column, bound as ``:id`` by default
        soft_delete_column: Deletion timestamp column, or None for hard deletes
        updated_column: Column touched by ``update``, or None

    Example:
        class PersonRepository(EntityRepository[Person]):
            record = PersonRecord
            entity_type = Person

        repository = PersonRepository(gateway)
        repository.create_table()
        repository.save(Person(id="AAAAAAAA", name="James", age=30))
    """

    record: Type[Base]
    entity_type: Type[EntityT]
    key_column: str = DEFAULT_KEY_COLUMN
    soft_delete_column: Optional[str] = DEFAULT_SOFT_DELETE_COLUMN
    updated_column: Optional[str] = DEFAULT_UPDATED_COLUMN

    def __init__(self, gateway: DatabaseGateway):
        self.gateway = gateway
        self.logger = get_logger(f"aegis.repositories.{self.table.name}")

    # ========================================
    # Table description
    # ========================================

    @property
    def table(self) -> Table:
        return self.record.__table__

    @property
    def entity_fields(self) -> List[str]:
        """Entity field names, in declaration order (all are columns)."""
        return list(self.entity_type.model_fields)

    @property
    def mutable_fields(self) -> List[str]:
        return [name for name in self.entity_fields if name != self.key_column]

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.table.columns]

    def _key_of(self, entity: Optional[EntityT]) -> Any:
        return getattr(entity, self.key_column) if entity is not None else None

    def _to_entity(self, row: Mapping[str, Any]) -> EntityT:
        return self.entity_type.model_validate(row)

    # ========================================
    # WHERE clauses
    # ========================================

    def _where(self, where: Any, entity: Optional[EntityT],
               parameters: Parameters) -> Tuple[str, Dict[str, Any]]:
        """
        Resolve a WHERE argument into (fragment, parameters).

        Text fragments keep the caller's parameters; when none are given and
        an entity is, the entity's key is bound under ``key_column``.
        """
        if where is _DEFAULT or where is None:
            where = f"{self.key_column} = :{self.key_column}"

        params = dict(parameters) if parameters is not None else {}

        if isinstance(where, Filter):
            clause, bound = where.compile(self.column_names)
            params.update(bound)
            return clause, params

        if parameters is None and entity is not None:
            params = {self.key_column: self._key_of(entity)}
        return where, params

    def _default_find_filter(self) -> Optional[Filter]:
        if self.soft_delete_column is None:
            return None
        return IsNull(self.soft_delete_column)

    def _now(self) -> str:
        return render_utcnow(self.gateway.dialect)

    # ========================================
    # Table lifecycle
    # ========================================

    def create_table(self) -> None:
        """Create the table if it does not exist."""
        self.gateway.create_table(self.table)

    def drop_table(self) -> None:
        """Drop the table if it exists."""
        self.gateway.drop_table(self.table)

    def validate_schema(self) -> None:
        """
        Check the live table against this repository's declaration.

        Raises:
            SchemaError: If the table is missing, lacks an entity field,
                or lacks the declared soft-delete / updated column
        """
        try:
            with self.gateway.connect() as conn:
                inspector = inspect(conn)
                if not inspector.has_table(self.table.name):
                    raise SchemaError(f"Table {self.table.name!r} does not exist")
                present = {column["name"] for column in inspector.get_columns(self.table.name)}
        except SQLAlchemyError as e:
            raise QueryError(f"Could not inspect table {self.table.name!r}: {e}") from e

        required = list(self.entity_fields)
        if self.soft_delete_column:
            required.append(self.soft_delete_column)
        if self.updated_column:
            required.append(self.updated_column)

        missing = [name for name in required if name not in present]
        if missing:
            raise SchemaError(
                f"Table {self.table.name!r} is missing column(s): {', '.join(missing)}"
            )
        self.logger.debug(f"Schema of {self.table.name!r} validated")

    # ========================================
    # Reads
    # ========================================

    def _select_first(self, executor, entity, where, parameters) -> QueryResult:
        clause, params = self._where(where, entity, parameters)
        columns = [self.table.c[name] for name in self.entity_fields]
        statement = select(*columns).where(text(clause)).limit(1)
        return executor.fetch_all(statement, params)

    def first(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
              parameters: Parameters = None) -> EntityT:
        """
        Get the first row matching ``where``.

        Args:
            entity: Entity whose key is bound when no parameters are given
            where: Text fragment or Filter (default ``"id = :id"``)
            parameters: Named parameters for a text fragment

        Raises:
            NotFoundError: If no row matches
        """
        row = self._select_first(self.gateway, entity, where, parameters).first_or_default()
        if row is None:
            raise NotFoundError(f"No {self.table.name} row matches {where if where is not _DEFAULT else 'key'}")
        return self._to_entity(row)

    def first_or_default(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
                         parameters: Parameters = None) -> Optional[EntityT]:
        """Like ``first`` but returns None when no row matches."""
        row = self._select_first(self.gateway, entity, where, parameters).first_or_default()
        return self._to_entity(row) if row is not None else None

    def find_all(self, where: Where = _DEFAULT, parameters: Parameters = None) -> Iterator[EntityT]:
        """
        Get every row matching ``where``.

        The default filter skips soft-deleted rows; pass ``where=None`` for
        every row. The returned iterator is single-pass; call again for a
        fresh one.

        Example:
            adults = list(repository.find_all(Range("age", low=18)))
        """
        if where is _DEFAULT:
            where = self._default_find_filter()

        if where is None:
            clause, params = None, dict(parameters or {})
        else:
            clause, params = self._where(where, None, parameters)

        columns = [self.table.c[name] for name in self.entity_fields]
        statement = select(*columns).where(text(clause) if clause is not None else true())
        result = self.gateway.fetch_all(statement, params)
        return result.convert(self._to_entity)

    def _check(self, executor, entity, where, parameters) -> bool:
        clause, params = self._where(where, entity, parameters)
        statement = select(func.count().label("count")).select_from(self.table).where(text(clause))
        result = executor.fetch_all(statement, params)
        return result.count > 0 and result.first_at_column("count", int) > 0

    def check(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
              parameters: Parameters = None) -> bool:
        """Check whether any row matches ``where``."""
        return self._check(self.gateway, entity, where, parameters)

    # ========================================
    # Writes
    # ========================================

    def _add(self, executor, entity: EntityT) -> int:
        fields = self.entity_fields
        sql = (
            f"INSERT INTO {self.table.name} ({', '.join(fields)}) "
            f"VALUES ({', '.join(':' + name for name in fields)})"
        )
        return executor.execute_statement(sql, entity.model_dump(include=set(fields))).records_affected

    def add(self, entity: EntityT) -> int:
        """
        Insert ``entity``.

        Returns:
            Affected-row count

        Raises:
            QueryError: On constraint violations (e.g. duplicate key)
        """
        affected = self._add(self.gateway, entity)
        self.logger.debug(f"Inserted {self.table.name} {self._key_of(entity)!r}")
        return affected

    def _update(self, executor, entity, where, parameters) -> int:
        clause, params = self._where(where, entity, parameters)
        values = entity.model_dump(include=set(self.mutable_fields))

        assignments = [f"{name} = :{UPDATE_VALUE_PREFIX}{name}" for name in self.mutable_fields]
        if self.updated_column:
            assignments.append(f"{self.updated_column} = {self._now()}")

        # Entity values win over caller parameters of the same name
        params.update({f"{UPDATE_VALUE_PREFIX}{name}": value for name, value in values.items()})

        sql = f"UPDATE {self.table.name} SET {', '.join(assignments)} WHERE {clause}"
        return executor.execute_statement(sql, params).records_affected

    def update(self, entity: EntityT, where: Where = _DEFAULT, parameters: Parameters = None) -> int:
        """
        Overwrite every non-key field of the matching rows with ``entity``'s values.

        Also touches ``updated_at``.

        Returns:
            Affected-row count
        """
        return self._update(self.gateway, entity, where, parameters)

    def delete(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
               parameters: Parameters = None) -> int:
        """
        Delete the matching rows.

        Soft delete (``deleted_at`` set to now) when the repository has a
        soft-delete column, physical DELETE otherwise.

        Returns:
            Affected-row count
        """
        clause, params = self._where(where, entity, parameters)
        if self.soft_delete_column:
            sql = f"UPDATE {self.table.name} SET {self.soft_delete_column} = {self._now()} WHERE {clause}"
        else:
            sql = f"DELETE FROM {self.table.name} WHERE {clause}"
        return self.gateway.execute_statement(sql, params).records_affected

    def save(self, entity: EntityT, where: Where = _DEFAULT, parameters: Parameters = None) -> int:
        """
        Update the matching rows if any exist, insert ``entity`` otherwise.

        Check and write share one SERIALIZABLE transaction. A concurrent
        insert of the same key can still surface as QueryError from the
        insert, depending on the database's locking.

        Returns:
            Affected-row count of the update or insert
        """
        with self.gateway.transaction(IsolationLevel.SERIALIZABLE) as tx:
            if self._check(tx, entity, where, parameters):
                return self._update(tx, entity, where, parameters)
            return self._add(tx, entity)

    # ========================================
    # Non-blocking twins
    # ========================================

    async def create_table_async(self) -> None:
        await self.gateway.run_async(self.create_table)

    async def drop_table_async(self) -> None:
        await self.gateway.run_async(self.drop_table)

    async def add_async(self, entity: EntityT) -> int:
        return await self.gateway.run_async(self.add, entity)

    async def first_async(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
                          parameters: Parameters = None) -> EntityT:
        return await self.gateway.run_async(self.first, entity, where, parameters)

    async def first_or_default_async(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
                                     parameters: Parameters = None) -> Optional[EntityT]:
        return await self.gateway.run_async(self.first_or_default, entity, where, parameters)

    async def find_all_async(self, where: Where = _DEFAULT, parameters: Parameters = None) -> List[EntityT]:
        # Materialized on the worker so no lazy work is left for the event loop
        return await self.gateway.run_async(lambda: list(self.find_all(where, parameters)))

    async def check_async(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
                          parameters: Parameters = None) -> bool:
        return await self.gateway.run_async(self.check, entity, where, parameters)

    async def update_async(self, entity: EntityT, where: Where = _DEFAULT,
                           parameters: Parameters = None) -> int:
        return await self.gateway.run_async(self.update, entity, where, parameters)

    async def delete_async(self, entity: Optional[EntityT] = None, where: Where = _DEFAULT,
                           parameters: Parameters = None) -> int:
        return await self.gateway.run_async(self.delete, entity, where, parameters)

    async def save_async(self, entity: EntityT, where: Where = _DEFAULT,
                         parameters: Parameters = None) -> int:
        return await self.gateway.run_async(self.save, entity, where, parameters)
