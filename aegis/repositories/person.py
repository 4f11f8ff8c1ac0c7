"""
Person repository.

Example:
    from aegis.database import DatabaseGateway
    from aegis.repositories import PersonRepository
    from aegis.schemas import Person

    repository = PersonRepository(DatabaseGateway.from_settings())
    repository.create_table()

    repository.save(Person(id="AAAAAAAA", name="James", age=30))
    james = repository.first(Person(id="AAAAAAAA", name="James", age=30))

    # Save by name instead of id
    repository.save(james, "name = :name", {"name": "James"})
"""

from aegis.models.person import PersonRecord
from aegis.repositories.base import EntityRepository
from aegis.schemas.person import Person


class PersonRepository(EntityRepository[Person]):
    """Repository for the ``persons`` table."""

    record = PersonRecord
    entity_type = Person
