"""
Database initialization and seeding.

This script:
- Runs the configured bootstrap SQL scripts
- Creates the repository tables
- Validates every table against its repository
- Optionally adds sample persons for development/testing
- Can reset the database (drop and recreate)

Usage:
    # Initialize
    python -m aegis.database.init_db

    # Reset database (drops all tables and recreates)
    python -m aegis.database.init_db --reset

    # Add sample data for testing
    python -m aegis.database.init_db --sample-data
"""

import argparse
import random
from typing import List, Optional

from aegis.config import Settings, settings as default_settings
from aegis.core.constants import PERSON_ID_ALPHABET, PERSON_ID_LENGTH, SAMPLE_NAMES
from aegis.core.logging_config import configure_logging, get_logger
from aegis.database.gateway import DatabaseGateway
from aegis.database.scripts import ScriptDispatcher
from aegis.repositories import EntityRepository, PersonRepository
from aegis.schemas import Person

logger = get_logger("aegis.database.init_db")


def build_repositories(gateway: DatabaseGateway) -> List[EntityRepository]:
    """All repositories served by the application."""
    return [PersonRepository(gateway)]


def create_tables(repositories: List[EntityRepository], reset: bool = False) -> None:
    """
    Create the repository tables.

    Args:
        repositories: Repositories whose tables to create
        reset: If True, drop existing tables first
    """
    if reset:
        print("🗑️  Dropping existing tables...")
        for repository in repositories:
            repository.drop_table()
        print("✅ Tables dropped")

    print("📊 Creating database tables...")
    for repository in repositories:
        repository.create_table()
    print("✅ Tables created")


def validate_schemas(repositories: List[EntityRepository]) -> None:
    """
    Validate every table against its repository.

    Raises:
        SchemaError: On the first table that does not match
    """
    for repository in repositories:
        repository.validate_schema()
    print("✅ Schemas validated")


def random_person_id(rng: Optional[random.Random] = None) -> str:
    """Random 8-character alphanumeric person id."""
    rng = rng or random.Random()
    return "".join(rng.choice(PERSON_ID_ALPHABET) for _ in range(PERSON_ID_LENGTH))


def seed_sample_data(persons: PersonRepository, rng: Optional[random.Random] = None) -> int:
    """
    Save one person per sample name, keyed by name.

    Re-running updates the existing rows instead of adding duplicates.

    Returns:
        Number of persons saved
    """
    print("\n🌱 Seeding sample persons...")
    rng = rng or random.Random()

    for name in SAMPLE_NAMES:
        person = Person(id=random_person_id(rng), name=name, age=rng.randint(18, 59))
        persons.save(person, "name = :name", {"name": name})
        print(f"    ✅ Saved: {name}")

    print("✅ Sample data seeded")
    return len(SAMPLE_NAMES)


def print_database_status(persons: PersonRepository) -> None:
    """Print current database status."""
    print("\n" + "=" * 60)
    print("📊 Database Status")
    print("=" * 60)

    live = list(persons.find_all())
    print(f"  Persons: {len(live)}")
    for person in live:
        print(f"    • {person.id}  {person.name:<12} {person.age}")

    print("=" * 60)


def initialize_database(current_settings: Optional[Settings] = None, reset: bool = False,
                        sample_data: bool = False) -> DatabaseGateway:
    """
    Initialize the database.

    Bootstrap failures are fatal: nothing after the failing script runs.

    Args:
        current_settings: Settings to use, defaults to the global settings
        reset: Drop existing tables before creating
        sample_data: Add sample persons for testing

    Returns:
        The gateway the application should serve requests with
    """
    current_settings = current_settings or default_settings
    configure_logging(current_settings.log_level, current_settings.log_file)

    print("=" * 60)
    print("🗄️  Database Initialization")
    print("=" * 60)

    gateway = DatabaseGateway.from_settings(current_settings)

    # Step 1: Bootstrap scripts
    dispatcher = ScriptDispatcher(
        gateway,
        prefix=current_settings.procedure_prefix,
        separator=current_settings.procedure_separator,
    )
    executed = dispatcher.bootstrap(current_settings.bootstrap_scripts)
    print(f"✅ {executed} bootstrap script(s) executed")

    # Step 2: Create tables
    repositories = build_repositories(gateway)
    create_tables(repositories, reset=reset)

    # Step 3: Validate schemas
    validate_schemas(repositories)

    persons = next(r for r in repositories if isinstance(r, PersonRepository))

    # Step 4: Seed sample data (optional)
    if sample_data:
        seed_sample_data(persons)

    # Step 5: Show status
    print_database_status(persons)

    print("\n✅ Database initialization complete!")
    logger.info(f"Database initialized at {gateway.engine.url.render_as_string(hide_password=True)}")
    return gateway


def main(argv: Optional[List[str]] = None):
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Initialize and seed the aegis database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Initialize (bootstrap scripts + tables)
  python -m aegis.database.init_db

  # Reset database (drop all tables and recreate)
  python -m aegis.database.init_db --reset

  # Add sample data for testing
  python -m aegis.database.init_db --sample-data

  # Full reset with sample data, no prompt
  python -m aegis.database.init_db --reset --sample-data --yes
        """
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop existing tables before creating (WARNING: deletes all data!)"
    )

    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Add sample persons for development/testing"
    )

    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation before --reset"
    )

    args = parser.parse_args(argv)

    # Confirm reset if requested
    if args.reset and not args.yes:
        print("⚠️  WARNING: This will DELETE ALL DATA in the database!")
        response = input("Are you sure? Type 'yes' to continue: ")
        if response.lower() != 'yes':
            print("❌ Aborted")
            return

    # Initialize
    initialize_database(reset=args.reset, sample_data=args.sample_data)


if __name__ == "__main__":
    main()
