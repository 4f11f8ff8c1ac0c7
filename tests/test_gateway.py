"""Tests for DatabaseGateway."""

import pytest
from sqlalchemy import event, select, text

from aegis.core.exceptions import DatabaseConnectionError, QueryError
from aegis.database import DatabaseGateway, QueryResult


@pytest.fixture()
def connection_events(gateway):
    """Count pool checkouts/checkins on the gateway's engine."""
    counts = {"checkout": 0, "checkin": 0}

    @event.listens_for(gateway.engine, "checkout")
    def on_checkout(*args):
        counts["checkout"] += 1

    @event.listens_for(gateway.engine, "checkin")
    def on_checkin(*args):
        counts["checkin"] += 1

    return counts


class TestFetchAll:

    def test_returns_columns_and_rows(self, gateway, people_table):
        result = gateway.fetch_all("SELECT id, name, age FROM people")

        assert isinstance(result, QueryResult)
        assert result.columns == ("id", "name", "age")
        assert result.rows == (("AAAAAAAA", "James", 30),)
        assert result.count == 1

    def test_binds_parameters_by_name(self, gateway, people_table):
        result = gateway.fetch_all(
            "SELECT name FROM people WHERE age = :age AND id = :id",
            {"id": "AAAAAAAA", "age": 30},
        )
        assert result.first_at_column("name") == "James"

    def test_empty_result(self, gateway, people_table):
        result = gateway.fetch_all("SELECT id FROM people WHERE id = :id", {"id": "nobody"})
        assert result.rows == ()
        assert result.count == 0
        assert result.first_or_default() is None

    def test_accepts_sqlalchemy_statements(self, gateway, people_table):
        statement = select(text("name")).select_from(text("people")).where(text("age > :age"))
        result = gateway.fetch_all(statement, {"age": 18})
        assert result.first_at_column("name") == "James"

    def test_missing_parameter_raises_query_error(self, gateway, people_table):
        with pytest.raises(QueryError):
            gateway.fetch_all("SELECT id FROM people WHERE id = :id")

    def test_syntax_error_raises_query_error(self, gateway):
        with pytest.raises(QueryError) as exc_info:
            gateway.fetch_all("SELEC nothing FROM nowhere")

        assert exc_info.value.__cause__ is not None
        assert "SELEC" in exc_info.value.statement


class TestExecuteStatement:

    def test_write_through_fetch_all_has_no_result_set(self, gateway, people_table):
        result = gateway.fetch_all(
            "UPDATE people SET age = :age WHERE id = :id",
            {"id": "AAAAAAAA", "age": 31},
        )
        assert result.rows is None
        assert result.columns == ()
        assert result.records_affected == 1
        assert result.first_or_default() is None

    def test_returns_affected_count_only(self, gateway, people_table):
        result = gateway.execute_statement(
            "UPDATE people SET age = :age WHERE id = :id",
            {"id": "AAAAAAAA", "age": 31},
        )
        assert result.records_affected == 1
        assert result.rows is None
        assert result.count == 0

    def test_values_are_never_interpolated(self, gateway, people_table):
        hostile = "Robert'); DROP TABLE people;--"
        gateway.execute_statement(
            "INSERT INTO people (id, name, age) VALUES (:id, :name, :age)",
            {"id": "BBBBBBBB", "name": hostile, "age": 12},
        )

        result = gateway.fetch_all("SELECT name FROM people WHERE id = :id", {"id": "BBBBBBBB"})
        assert result.first_at_column("name") == hostile
        assert gateway.fetch_all("SELECT COUNT(*) AS n FROM people").first_at_column("n", int) == 2

    def test_constraint_violation_raises_query_error(self, gateway, people_table):
        with pytest.raises(QueryError):
            gateway.execute_statement(
                "INSERT INTO people (id, name, age) VALUES (:id, :name, :age)",
                {"id": "AAAAAAAA", "name": "Again", "age": 1},
            )


class TestConnectionLifecycle:

    def test_connection_failure(self, tmp_path):
        # A directory cannot be opened as a database file
        gateway = DatabaseGateway.from_url(f"sqlite:///{tmp_path}")

        with pytest.raises(DatabaseConnectionError):
            gateway.fetch_all("SELECT 1")
        with pytest.raises(DatabaseConnectionError):
            gateway.execute_statement("SELECT 1")

    def test_connection_released_after_success(self, gateway, connection_events):
        gateway.fetch_all("SELECT 1 AS one")
        gateway.execute_statement("CREATE TABLE t (x INT)")

        assert connection_events["checkout"] == 2
        assert connection_events["checkin"] == 2

    def test_connection_released_after_failure(self, gateway, connection_events):
        with pytest.raises(QueryError):
            gateway.fetch_all("SELECT * FROM does_not_exist")
        with pytest.raises(QueryError):
            gateway.execute_statement("INSERT INTO does_not_exist VALUES (1)")

        assert connection_events["checkout"] == 2
        assert connection_events["checkin"] == 2


class TestScriptsAndTransactions:

    def test_execute_script_runs_every_statement(self, gateway):
        gateway.execute_script(
            """
            CREATE TABLE a (x INT);
            CREATE TABLE b (y INT);
            INSERT INTO a (x) VALUES (1);
            INSERT INTO b (y) VALUES (2);
            """
        )
        assert gateway.fetch_all("SELECT x FROM a").first_at_column("x", int) == 1
        assert gateway.fetch_all("SELECT y FROM b").first_at_column("y", int) == 2

    def test_execute_script_failure(self, gateway):
        with pytest.raises(QueryError):
            gateway.execute_script("CREATE TABLE ok (x INT); THIS IS NOT SQL;")

    def test_transaction_commits(self, gateway, people_table):
        with gateway.transaction() as tx:
            tx.execute_statement(
                "INSERT INTO people (id, name, age) VALUES (:id, :name, :age)",
                {"id": "CCCCCCCC", "name": "Oliver", "age": 40},
            )
            assert tx.fetch_all("SELECT COUNT(*) AS n FROM people").first_at_column("n", int) == 2

        assert gateway.fetch_all("SELECT COUNT(*) AS n FROM people").first_at_column("n", int) == 2

    def test_transaction_rolls_back_on_error(self, gateway, people_table):
        with pytest.raises(RuntimeError):
            with gateway.transaction() as tx:
                tx.execute_statement(
                    "INSERT INTO people (id, name, age) VALUES (:id, :name, :age)",
                    {"id": "CCCCCCCC", "name": "Oliver", "age": 40},
                )
                raise RuntimeError("abort")

        result = gateway.fetch_all("SELECT id FROM people WHERE id = :id", {"id": "CCCCCCCC"})
        assert result.count == 0


def test_from_settings_shares_the_process_engine(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    first = DatabaseGateway.from_settings()
    second = DatabaseGateway.from_settings()

    assert first.engine is second.engine
    assert first.fetch_all("SELECT 1 AS one").first_at_column("one", int) == 1
    first.dispose()
