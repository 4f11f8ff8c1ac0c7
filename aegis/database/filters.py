"""
Typed WHERE filters.

A small set of filter expressions that repositories turn into WHERE
fragments. Column names are checked against the table and every value is
bound by a generated parameter name, so no caller input ever reaches the
SQL text.

Example:
    where = Eq("name", "James") & Range("age", low=18, high=65)
    people = repository.find_all(where)

    where = IsNull("deleted_at") | Eq("id", "AAAAAAAA")
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Collection, Dict, Optional, Tuple


class _Binder:
    """Hands out unique parameter names while a filter is compiled."""

    def __init__(self, prefix: str = "w"):
        self.prefix = prefix
        self.params: Dict[str, Any] = {}
        self._counter = itertools.count()

    def bind(self, column: str, value: Any) -> str:
        name = f"_{self.prefix}{next(self._counter)}_{column}"
        self.params[name] = value
        return f":{name}"


class Filter(ABC):
    """Base class for filter expressions."""

    @abstractmethod
    def render(self, columns: Collection[str], binder: _Binder) -> str:
        """Render the fragment, registering values with ``binder``."""

    def compile(self, columns: Collection[str]) -> Tuple[str, Dict[str, Any]]:
        """
        Turn the filter into a WHERE fragment and its parameters.

        Args:
            columns: Column names that may be referenced

        Returns:
            (sql_fragment, parameters)

        Raises:
            ValueError: If the filter references an unknown column
        """
        binder = _Binder()
        return self.render(columns, binder), binder.params

    def __and__(self, other: "Filter") -> "And":
        return And((self, other))

    def __or__(self, other: "Filter") -> "Or":
        return Or((self, other))


def _column(name: str, columns: Collection[str]) -> str:
    if name not in columns:
        raise ValueError(f"Unknown column in filter: {name!r}")
    return name


@dataclass(frozen=True)
class Eq(Filter):
    """``column = value``"""

    column: str
    value: Any

    def render(self, columns, binder):
        return f"{_column(self.column, columns)} = {binder.bind(self.column, self.value)}"


@dataclass(frozen=True)
class Range(Filter):
    """Inclusive range; either bound may be left out, not both."""

    column: str
    low: Optional[Any] = None
    high: Optional[Any] = None

    def __post_init__(self):
        if self.low is None and self.high is None:
            raise ValueError("Range needs at least one bound")

    def render(self, columns, binder):
        column = _column(self.column, columns)
        parts = []
        if self.low is not None:
            parts.append(f"{column} >= {binder.bind(column, self.low)}")
        if self.high is not None:
            parts.append(f"{column} <= {binder.bind(column, self.high)}")
        return " AND ".join(parts) if len(parts) == 1 else f"({' AND '.join(parts)})"


@dataclass(frozen=True)
class IsNull(Filter):
    """``column IS NULL``"""

    column: str

    def render(self, columns, binder):
        return f"{_column(self.column, columns)} IS NULL"


@dataclass(frozen=True)
class NotNull(Filter):
    """``column IS NOT NULL``"""

    column: str

    def render(self, columns, binder):
        return f"{_column(self.column, columns)} IS NOT NULL"


@dataclass(frozen=True)
class And(Filter):
    filters: Tuple[Filter, ...]

    def render(self, columns, binder):
        if not self.filters:
            raise ValueError("And needs at least one filter")
        return "(" + " AND ".join(f.render(columns, binder) for f in self.filters) + ")"


@dataclass(frozen=True)
class Or(Filter):
    filters: Tuple[Filter, ...]

    def render(self, columns, binder):
        if not self.filters:
            raise ValueError("Or needs at least one filter")
        return "(" + " OR ".join(f.render(columns, binder) for f in self.filters) + ")"


def all_of(*filters: Filter) -> And:
    """Combine filters with AND."""
    return And(tuple(filters))


def any_of(*filters: Filter) -> Or:
    """Combine filters with OR."""
    return Or(tuple(filters))
