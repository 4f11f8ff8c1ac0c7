"""
Query Results
=============

Immutable container for what a single gateway call produced.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Type, TypeVar

from aegis.core.exceptions import NotFoundError

T = TypeVar("T")


@dataclass(frozen=True)
class QueryResult:
    """
    Tabular result set plus the affected-row count.

    Attributes:
        columns: Column names in select order (empty for writes)
        rows: Row tuples, or None when the call did not produce a result set
        records_affected: Affected-row count as reported by the driver
            (-1 when the driver does not report one, e.g. for SELECT on SQLite)

    Example:
        result = gateway.fetch_all("SELECT id, name FROM persons")
        for row in result.mappings():
            print(row["id"], row["name"])
    """

    columns: Tuple[str, ...] = ()
    rows: Optional[Tuple[Tuple[Any, ...], ...]] = None
    records_affected: int = 0

    @property
    def count(self) -> int:
        """Number of rows in the result set (0 when there is none)."""
        return len(self.rows) if self.rows is not None else 0

    def mappings(self) -> Iterator[Dict[str, Any]]:
        """Iterate rows as ``{column: value}`` dictionaries."""
        for row in self.rows or ():
            yield dict(zip(self.columns, row))

    def convert(self, selector: Callable[[Dict[str, Any]], T]) -> Iterator[T]:
        """
        Lazily map every row through ``selector``.

        Example:
            people = list(result.convert(Person.model_validate))
        """
        return (selector(row) for row in self.mappings())

    def first(self) -> Dict[str, Any]:
        """
        Get the first row.

        Raises:
            NotFoundError: If there are no rows
        """
        row = self.first_or_default()
        if row is None:
            raise NotFoundError("Query returned no rows")
        return row

    def first_or_default(self) -> Optional[Dict[str, Any]]:
        """Get the first row, or None if there are no rows."""
        return next(self.mappings(), None)

    def first_at_column(self, column: str, type_: Optional[Type[T]] = None) -> Any:
        """
        Get a single value from the first row.

        Args:
            column: Column name
            type_: Optional scalar type (``str``, ``int``) the value is coerced to

        Raises:
            NotFoundError: If there are no rows
            KeyError: If the column is not part of the result
        """
        return _coerce(self.first()[column], type_)

    def first_or_default_at_column(self, column: str, type_: Optional[Type[T]] = None) -> Any:
        """Like ``first_at_column`` but returns None when there is no row."""
        row = self.first_or_default()
        if row is None:
            return None
        return _coerce(row[column], type_)


def _coerce(value: Any, type_: Optional[type]) -> Any:
    if value is None or type_ is None or isinstance(value, type_):
        return value
    try:
        return type_(value)
    except (TypeError, ValueError) as e:
        raise TypeError(f"Cannot read {value!r} as {type_.__name__}") from e
