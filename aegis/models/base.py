"""
Base Model
==========

Provides common functionality for all database models.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.expression import FunctionElement
from sqlalchemy import DateTime


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# ========================================
# Server-side "now"
# ========================================

class utcnow(FunctionElement):
    """
    Current timestamp, rendered per dialect.

    Example:
        str(utcnow().compile(dialect=engine.dialect))
        # SQL Server: "SYSDATETIMEOFFSET()"
    """

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(utcnow)
def _utcnow_default(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(utcnow, "mssql")
def _utcnow_mssql(element, compiler, **kw):
    return "SYSDATETIMEOFFSET()"


@compiles(utcnow, "sqlite")
def _utcnow_sqlite(element, compiler, **kw):
    # CURRENT_TIMESTAMP only has second resolution on SQLite; pad %f (SS.SSS)
    # to microseconds so SQLAlchemy parses the fraction correctly.
    return "(strftime('%Y-%m-%d %H:%M:%f000', 'now'))"


def render_utcnow(dialect) -> str:
    """Render ``utcnow()`` as SQL text for the given dialect."""
    return str(utcnow().compile(dialect=dialect))


# ========================================
# Mixins
# ========================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=utcnow(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=utcnow(),
        nullable=False
    )


class SoftDeleteMixin:
    """Mixin that adds a nullable deleted_at timestamp."""

    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None
    )


class BaseModel(TimestampMixin, SoftDeleteMixin):
    """Base model combining timestamp and soft-delete mixins."""
    pass


def create_all_tables(bind) -> None:
    """Create all tables in the database."""
    Base.metadata.create_all(bind=bind, checkfirst=True)


def drop_all_tables(bind) -> None:
    """Drop all tables in the database."""
    Base.metadata.drop_all(bind=bind, checkfirst=True)
