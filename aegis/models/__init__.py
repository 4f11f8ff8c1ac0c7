"""
Database models package.

Contains the SQLAlchemy table declarations used by the repositories.
"""

from aegis.models.base import (
    Base,
    BaseModel,
    create_all_tables,
    drop_all_tables,
    render_utcnow,
    utcnow,
)
from aegis.models.person import PersonRecord

__all__ = [
    "Base",
    "BaseModel",
    "PersonRecord",
    "create_all_tables",
    "drop_all_tables",
    "render_utcnow",
    "utcnow",
]
