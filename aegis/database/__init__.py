"""Database package."""

from aegis.database.filters import And, Eq, Filter, IsNull, NotNull, Or, Range, all_of, any_of
from aegis.database.gateway import DatabaseGateway, GatewayTransaction
from aegis.database.results import QueryResult
from aegis.database.scripts import ScriptDispatcher
from aegis.database.session import create_db_engine, get_engine

__all__ = [
    "And",
    "DatabaseGateway",
    "Eq",
    "Filter",
    "GatewayTransaction",
    "IsNull",
    "NotNull",
    "Or",
    "QueryResult",
    "Range",
    "ScriptDispatcher",
    "all_of",
    "any_of",
    "create_db_engine",
    "get_engine",
]
