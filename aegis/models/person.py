"""
Person table.

One row per person. The id is assigned by the caller (8 characters),
never generated by the database. Rows are soft-deleted through
``deleted_at`` (from BaseModel).
"""

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column

from aegis.models.base import Base, BaseModel


class PersonRecord(BaseModel, Base):
    """
    Persisted person.

    Attributes:
        id: Caller-assigned identifier (max 8 chars)
        name: Display name
        age: Age in years
        created_at: When the row was inserted (from BaseModel)
        updated_at: When the row was last updated (from BaseModel)
        deleted_at: When the row was soft-deleted, NULL while live (from BaseModel)
    """

    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(
        String(8),
        primary_key=True,
        autoincrement=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=True,
    )

    age: Mapped[int] = mapped_column(
        Integer,
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<PersonRecord(id='{self.id}', name='{self.name}', age={self.age})>"
