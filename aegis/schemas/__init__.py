"""
Entity schemas.

Pydantic models that repositories return and accept. They define the
wire shape of each entity, independent of the table layout.
"""

from aegis.schemas.person import Person

__all__ = ["Person"]
