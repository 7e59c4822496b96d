"""Shared pytest fixtures for all tests."""

import sqlite3
import pytest
from pathlib import Path

from config import Config, get_migrations_dir
from services.base import Services
from tests.helpers import run_migrations


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for testing.

    Yields:
        sqlite3.Connection: Connection to in-memory database.
    """
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys = ON")
    yield conn
    conn.close()


@pytest.fixture
def test_config(tmp_path):
    """Create a test configuration pointing to a temporary directory.

    The completion provider is switched off so categorization uses the
    rule-based classifier unless a test passes its own provider.
    """
    return Config(
        base_dir=tmp_path / "ledgerwise",
        db_data_dir=tmp_path / "ledgerwise" / "db",
        db_filename="test.db",
        log_level="DEBUG",
        log_dir=tmp_path / "ledgerwise" / "logs",
        archive_enabled=False,
        archive_dir=tmp_path / "ledgerwise" / "archives",
        llm_enabled=False,
        llm_provider=None,
        llm_api_key="",
        llm_model=None,
        llm_base_url=None,
    )


class TestDatabaseManager:
    """Database manager that hands out one shared in-memory connection."""

    __test__ = False

    def __init__(self, conn):
        self.conn = conn

    def connect(self):
        return _TestConnectionContext(self.conn)

    def get_db_path(self):
        return Path(":memory:")

    def get_migrations_dir(self):
        return get_migrations_dir()


class _TestConnectionContext:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Don't close the connection - let the fixture handle it
        pass


@pytest.fixture
def db_manager_with_schema(test_db):
    """DatabaseManager over the in-memory database with all migrations applied."""
    db_manager = TestDatabaseManager(test_db)
    run_migrations(db_manager)
    return db_manager


@pytest.fixture
def services(test_config, db_manager_with_schema):
    """Create a Services container with test database."""
    return Services(test_config, db_manager=db_manager_with_schema)


@pytest.fixture
def account(services):
    """A credit card account to import into."""
    return services.accounts.create("Chase Sapphire", "credit_card", "Chase")
