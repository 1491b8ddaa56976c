"""
Pytest configuration for dbrecord.

Provides fixtures for:
- In-memory recording dialect wired into the sample tables
- Fake logins
- SQLite connections for end-to-end tests
- Settings override and PostgreSQL availability for integration tests
"""

from __future__ import annotations

import os
import sqlite3
from typing import Generator

import psycopg
import pytest

from dbrecord.config import Settings, get_settings
from dbrecord.infrastructure.db_factory import build_dsn
from tests.fakes import SAMPLE_TABLES, FakeLogin, RecordingDialect


@pytest.fixture
def dialect(monkeypatch: pytest.MonkeyPatch) -> RecordingDialect:
    """
    Fresh recording dialect shared by every sample table for one test.
    """
    recording = RecordingDialect()
    for table in SAMPLE_TABLES:
        monkeypatch.setattr(table, "dialect", recording)
    return recording


@pytest.fixture
def login() -> FakeLogin:
    return FakeLogin()


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    """
    Make sure env overrides made by a test do not leak through the settings cache.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sqlite_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    In-memory SQLite database, closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "dbrecord"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def db_connection_available(test_settings: Settings) -> bool:
    """
    Check if PostgreSQL is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(build_dsn(test_settings), connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def pg_connection(
    test_settings: Settings, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a PostgreSQL connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(build_dsn(test_settings))
    try:
        yield conn
    finally:
        conn.close()
