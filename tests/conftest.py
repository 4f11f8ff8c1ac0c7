import pytest

from aegis.database import DatabaseGateway
from aegis.repositories import PersonRepository
from aegis.schemas import Person


@pytest.fixture()
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'aegis_test.db'}"


@pytest.fixture()
def gateway(db_url):
    gateway = DatabaseGateway.from_url(db_url)
    yield gateway
    gateway.dispose()


@pytest.fixture()
def persons(gateway):
    repository = PersonRepository(gateway)
    repository.create_table()
    return repository


@pytest.fixture()
def james():
    return Person(id="AAAAAAAA", name="James", age=30)


@pytest.fixture()
def people_table(gateway):
    """A plain table for gateway-level tests."""
    gateway.execute_statement(
        "CREATE TABLE people (id VARCHAR(8) PRIMARY KEY, name VARCHAR(255), age INT)"
    )
    gateway.execute_statement(
        "INSERT INTO people (id, name, age) VALUES (:id, :name, :age)",
        {"id": "AAAAAAAA", "name": "James", "age": 30},
    )
    return "people"
