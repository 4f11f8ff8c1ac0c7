"""
Database Engine Management
==========================

Builds the SQLAlchemy engine that the gateway opens its connections from.
"""

import os
from functools import lru_cache
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool, StaticPool

from aegis.config import settings


def create_db_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create and configure the database engine.

    SQLite file databases get a fresh connection per checkout (NullPool);
    in-memory databases share a single connection (StaticPool) or every
    call would see an empty database. Other backends keep the driver's
    default pooling.

    Args:
        database_url: SQLAlchemy URL, defaults to ``settings.database_url``
        echo: Log all SQL through SQLAlchemy, defaults to ``settings.sql_echo``
    """
    database_url = database_url or settings.database_url
    echo = settings.sql_echo if echo is None else echo

    # SQLite-specific configuration
    if database_url.startswith("sqlite"):
        in_memory = database_url in ("sqlite://", "sqlite:///:memory:")

        # Ensure data directory exists
        if ":///" in database_url and not in_memory:
            db_path = database_url.split(":///")[1]
            db_dir = os.path.dirname(db_path)
            if db_dir and not os.path.exists(db_dir):
                os.makedirs(db_dir, exist_ok=True)

        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else NullPool,
            echo=echo
        )

        # Enable foreign keys (and WAL for file databases)
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    else:
        engine = create_engine(database_url, echo=echo)

    return engine


@lru_cache(maxsize=None)
def get_engine() -> Engine:
    """Get the process-wide engine built from settings."""
    return create_db_engine()
