"""Pytest fixtures for integration tests.

This module provides shared fixtures for running the portal against a real
PostgreSQL database. The schema is applied once per session; tables are
truncated before each test.
"""

import os
from pathlib import Path
from typing import AsyncGenerator, Dict

import psycopg2
import pytest
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

from services.portal_api.config import settings
from services.portal_api.database import Database
from services.shared.security import hash_password

SCHEMA_FILE = Path(__file__).resolve().parents[2] / "services" / "portal_api" / "schema.sql"

POSTGRES = {
    "host": os.getenv("POSTGRES_HOST", "localhost"),
    "port": int(os.getenv("POSTGRES_PORT", "5432")),
    "dbname": os.getenv("POSTGRES_DB", "voting_portal"),
    "user": os.getenv("POSTGRES_USER", "portal_user"),
    "password": os.getenv("POSTGRES_PASSWORD", "portal_pass"),
}


@pytest.fixture(scope="session")
def postgres_connection():
    """PostgreSQL connection for direct database operations.

    Applies schema.sql and yields a psycopg2 connection in autocommit mode.
    Skips the session when the database is not reachable.
    """
    try:
        conn = psycopg2.connect(connect_timeout=3, **POSTGRES)
    except psycopg2.OperationalError:
        pytest.skip("PostgreSQL not available")
    conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)

    with conn.cursor() as cursor:
        cursor.execute(SCHEMA_FILE.read_text())

    yield conn

    conn.close()


@pytest.fixture
def postgres_client(postgres_connection):
    """PostgreSQL cursor for executing queries.

    Yields a cursor from the session-scoped connection.
    """
    cursor = postgres_connection.cursor()
    yield cursor
    cursor.close()


@pytest.fixture
def clear_databases(postgres_client):
    """Remove all portal rows so each test starts from empty tables."""
    postgres_client.execute("TRUNCATE TABLE votes, candidates, users")
    yield


@pytest.fixture
async def db(monkeypatch, clear_databases) -> AsyncGenerator[Database, None]:
    """Initialized data-access client pointed at the test database."""
    monkeypatch.setattr(settings, "POSTGRES_HOST", POSTGRES["host"])
    monkeypatch.setattr(settings, "POSTGRES_PORT", POSTGRES["port"])
    monkeypatch.setattr(settings, "POSTGRES_DB", POSTGRES["dbname"])
    monkeypatch.setattr(settings, "POSTGRES_USER", POSTGRES["user"])
    monkeypatch.setattr(settings, "POSTGRES_PASSWORD", POSTGRES["password"])
    monkeypatch.setattr(settings, "POSTGRES_POOL_MAX_SIZE", 10)

    database = Database()
    await database.initialize()

    yield database

    await database.close()


@pytest.fixture
async def seeded(db: Database) -> Dict[str, dict]:
    """Two voters and two candidates with tallies 3 and 5.

    Returns the stored rows keyed by a short name.
    """
    password = hash_password("voter123")
    voters = await db.insert("users", [
        {"voter_id": "V001", "password": password, "full_name": "Alice Voter", "role": "voter"},
        {"voter_id": "V002", "password": password, "full_name": "Bob Voter", "role": "voter"},
    ])
    candidates = await db.insert("candidates", [
        {"name": "Zoe Walker", "party": "Campus Forward", "vote_count": 3},
        {"name": "Adam Brooks", "party": "Independent", "vote_count": 5},
    ])
    return {
        "u1": voters[0],
        "u2": voters[1],
        "c1": candidates[0],
        "c2": candidates[1],
    }


# Marker for tests that require a running database
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "docker: mark test as requiring a running PostgreSQL database"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow running"
    )
