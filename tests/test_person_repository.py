"""Tests for EntityRepository through PersonRepository."""

import time

import pytest
from pydantic import ValidationError
from sqlalchemy import Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from aegis.core.exceptions import NotFoundError, QueryError, SchemaError
from aegis.repositories import EntityRepository, PersonRepository
from aegis.schemas import Person


class TestAddAndRead:

    def test_add_then_first(self, persons, james):
        assert persons.add(james) == 1
        assert persons.first(james) == james

    def test_first_by_clause(self, persons, james):
        persons.add(james)
        found = persons.first(where="name = :name AND age > :age", parameters={"name": "James", "age": 18})
        assert found == james

    def test_absent(self, persons, james):
        assert persons.check(james) is False
        assert persons.first_or_default(james) is None
        with pytest.raises(NotFoundError):
            persons.first(james)

    def test_duplicate_key(self, persons, james):
        persons.add(james)
        with pytest.raises(QueryError):
            persons.add(Person(id=james.id, name="Someone", age=1))

    def test_find_all_is_single_pass(self, persons, james):
        persons.add(james)
        persons.add(Person(id="BBBBBBBB", name="Oliver", age=12))

        people = persons.find_all()
        assert sorted(p.id for p in people) == ["AAAAAAAA", "BBBBBBBB"]
        assert list(people) == []
        assert len(list(persons.find_all())) == 2

    def test_entity_validation(self):
        with pytest.raises(ValidationError):
            Person(id="TOOLONGID", name="James", age=30)
        with pytest.raises(ValidationError):
            Person(id="AAAAAAAA", name="James", age=-1)


class TestSave:

    def test_save_inserts_then_updates(self, persons, james):
        assert persons.save(james) == 1
        assert persons.save(Person(id=james.id, name="James", age=31)) == 1

        assert persons.first(james).age == 31
        assert len(list(persons.find_all())) == 1

    def test_save_by_clause(self, persons):
        persons.save(Person(id="AAAAAAAA", name="James", age=30), "name = :name", {"name": "James"})
        persons.save(Person(id="BBBBBBBB", name="James", age=44), "name = :name", {"name": "James"})

        people = list(persons.find_all())
        # Key column is never overwritten by update
        assert [(p.id, p.age) for p in people] == [("AAAAAAAA", 44)]

    def test_james_scenario(self, persons, james):
        # Absent, add, read back, update, read back
        assert persons.check(james) is False
        persons.add(james)
        assert persons.check(james) is True
        assert persons.first(james) == james

        older = Person(id=james.id, name=james.name, age=31)
        assert persons.update(older) == 1
        assert persons.first(james).age == 31


class TestUpdate:

    def test_update_touches_updated_at(self, persons, james):
        persons.add(james)
        time.sleep(0.01)
        persons.update(Person(id=james.id, name="James", age=31))

        row = persons.gateway.fetch_all(
            "SELECT created_at, updated_at FROM persons WHERE id = :id", {"id": james.id}
        ).first()
        assert str(row["updated_at"]) > str(row["created_at"])

    def test_entity_values_win_over_parameters(self, persons, james):
        persons.add(james)

        # "_age" collides with the bind name used for the entity's age
        affected = persons.update(
            Person(id=james.id, name="James", age=31),
            "id = :id AND age >= :_age",
            {"id": james.id, "_age": 0},
        )

        # The WHERE sees age >= 31, which the stored row (30) fails
        assert affected == 0
        assert persons.first(james).age == 30

    def test_update_without_match(self, persons, james):
        assert persons.update(james) == 0


class TestDelete:

    def test_soft_delete_hides_from_default_find(self, persons, james):
        persons.add(james)
        persons.add(Person(id="BBBBBBBB", name="Oliver", age=12))

        assert persons.delete(james) == 1

        assert [p.id for p in persons.find_all()] == ["BBBBBBBB"]
        assert sorted(p.id for p in persons.find_all(where=None)) == ["AAAAAAAA", "BBBBBBBB"]
        assert [p.id for p in persons.find_all("deleted_at IS NOT NULL")] == ["AAAAAAAA"]

    def test_soft_deleted_row_still_exists(self, persons, james):
        persons.add(james)
        persons.delete(james)

        assert persons.check(james) is True
        deleted_at = persons.gateway.fetch_all(
            "SELECT deleted_at FROM persons WHERE id = :id", {"id": james.id}
        ).first_at_column("deleted_at")
        assert deleted_at is not None


class HardDeleteBase(DeclarativeBase):
    pass


class TagRecord(HardDeleteBase):
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(8), primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(50))
    age: Mapped[int] = mapped_column(Integer)


class TagRepository(EntityRepository[Person]):
    record = TagRecord
    entity_type = Person
    soft_delete_column = None
    updated_column = None


class TestHardDelete:

    def test_physical_delete(self, gateway, james):
        tags = TagRepository(gateway)
        tags.create_table()
        tags.validate_schema()
        tags.add(james)

        assert tags.delete(james) == 1
        assert tags.check(james) is False
        assert list(tags.find_all()) == []


class TestSchema:

    def test_valid(self, persons):
        persons.validate_schema()

    def test_missing_table(self, gateway):
        with pytest.raises(SchemaError):
            PersonRepository(gateway).validate_schema()

    def test_missing_soft_delete_column(self, gateway):
        gateway.execute_statement(
            "CREATE TABLE persons (id VARCHAR(8) PRIMARY KEY, name VARCHAR(255), age INT, updated_at TIMESTAMP)"
        )
        with pytest.raises(SchemaError) as exc_info:
            PersonRepository(gateway).validate_schema()
        assert "deleted_at" in str(exc_info.value)

    def test_missing_entity_field(self, gateway):
        gateway.execute_statement(
            "CREATE TABLE persons (id VARCHAR(8) PRIMARY KEY, name VARCHAR(255), "
            "updated_at TIMESTAMP, deleted_at TIMESTAMP)"
        )
        with pytest.raises(SchemaError) as exc_info:
            PersonRepository(gateway).validate_schema()
        assert "age" in str(exc_info.value)

    def test_drop_and_recreate(self, persons, james):
        persons.add(james)
        persons.drop_table()
        persons.create_table()
        assert list(persons.find_all()) == []


class TestWhereNone:

    def test_none_means_key_clause_for_single_row_operations(self, persons, james):
        persons.add(james)
        persons.add(Person(id="BBBBBBBB", name="Oliver", age=12))

        assert persons.first(james, where=None) == james
        assert persons.check(james, where=None) is True
        assert persons.delete(james, where=None) == 1
        assert [p.id for p in persons.find_all()] == ["BBBBBBBB"]

    def test_none_means_every_row_for_find_all(self, persons, james):
        persons.add(james)
        persons.delete(james)

        assert [p.id for p in persons.find_all(where=None)] == ["AAAAAAAA"]
