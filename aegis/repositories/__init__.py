"""
Data access layer (Repository pattern).

Repositories handle all database queries,
isolating business logic from SQL.
"""

from aegis.repositories.base import EntityRepository
from aegis.repositories.person import PersonRepository

__all__ = [
    "EntityRepository",
    "PersonRepository",
]
