"""
Database connection factory utilities for dbrecord.

Records never open connections themselves: they are given a *login*, which
is either a raw DB-API connection or an object exposing ``get_connection()``.
This module provides the stock logins:

- ``DedicatedLogin`` opens one connection lazily and keeps it.
- ``PooledLogin`` borrows connections from the shared psycopg pool.

The PoolManager singleton ensures pools are closed on application exit, and
PostgreSQL connection attempts are retried for transient failures using
tenacity.
"""

from __future__ import annotations

import atexit
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Generator, Optional, Protocol, runtime_checkable

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dbrecord.config import Settings, get_settings
from dbrecord.domain.errors import ConfigurationError
from dbrecord.utils.logging import get_logger

log = get_logger(__name__)


@runtime_checkable
class Login(Protocol):
    """Anything able to hand out a DB-API connection."""

    def get_connection(self) -> Any: ...


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a PostgreSQL DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


class PoolManager:
    """
    Thread-safe singleton for managing the PostgreSQL connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._sync_pool: Optional[ConnectionPool] = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(self, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
        """
        Get or create the synchronous connection pool.

        Parameters
        ----------
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.

        Returns
        -------
        ConnectionPool
            The managed sync pool instance.
        """
        with self._lock:
            if self._sync_pool is None:
                log.info("[POOL OPEN]", extra={"min_size": min_size, "max_size": max_size})
                self._sync_pool = ConnectionPool(
                    conninfo=build_dsn(), min_size=min_size, max_size=max_size
                )
            return self._sync_pool

    @contextmanager
    def sync_connection(self) -> Generator[Connection, None, None]:
        """
        Context manager for obtaining a connection from the pool.

        Example
        -------
            manager = PoolManager()
            with manager.sync_connection() as conn:
                Customer.load(conn, 42)
        """
        pool = self.get_sync_pool()
        with pool.connection() as conn:
            yield conn

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._sync_pool is not None:
                try:
                    self._sync_pool.close()
                except psycopg.Error as exc:
                    log.warning(f"[POOL CLOSE FAILED] {exc}")
                finally:
                    self._sync_pool = None


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(settings: Optional[Settings] = None) -> Connection:
    """
    Acquire a dedicated PostgreSQL connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Returns
    -------
    Connection
        A new psycopg connection instance.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(build_dsn(settings))


def get_sync_pool(min_size: int = 1, max_size: int = 10) -> ConnectionPool:
    """Get or create the shared connection pool via PoolManager."""
    manager = PoolManager()
    return manager.get_sync_pool(min_size=min_size, max_size=max_size)


def open_connection(settings: Optional[Settings] = None) -> Any:
    """
    Open a connection for the configured dialect.

    Parameters
    ----------
    settings : Settings, optional
        Settings to read ``db_dialect`` and connection details from.

    Returns
    -------
    Any
        A psycopg connection for ``postgres`` or a ``sqlite3`` connection
        for ``sqlite``.
    """
    settings = settings or get_settings()
    if settings.db_dialect == "postgres":
        return get_sync_connection(settings)
    if settings.db_dialect == "sqlite":
        return sqlite3.connect(settings.sqlite_path)
    raise ConfigurationError(f"Unsupported dialect for connections: {settings.db_dialect!r}")


class DedicatedLogin:
    """Login that opens one connection on first use and keeps it."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings
        self._connection: Any = None

    def get_connection(self) -> Any:
        if self._connection is None:
            self._connection = open_connection(self.settings)
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "DedicatedLogin":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class PooledLogin:
    """
    Login backed by the shared PostgreSQL pool.

    One connection is checked out on first use and returned by ``release``.
    """

    def __init__(self, pool: Optional[ConnectionPool] = None) -> None:
        self.pool = pool or get_sync_pool()
        self._connection: Optional[Connection] = None

    def get_connection(self) -> Connection:
        if self._connection is None:
            self._connection = self.pool.getconn()
        return self._connection

    def release(self) -> None:
        if self._connection is not None:
            self.pool.putconn(self._connection)
            self._connection = None

    def __enter__(self) -> "PooledLogin":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.release()


def resolve_connection(login: Any) -> Any:
    """
    Turn a login into a DB-API connection.

    A raw connection (anything with a callable ``cursor``) is returned as-is;
    otherwise the login's ``get_connection()`` is called.
    """
    if login is None:
        raise ConfigurationError("No login given")
    if callable(getattr(login, "cursor", None)):
        return login
    if isinstance(login, Login):
        return login.get_connection()
    raise ConfigurationError(
        f"Login of type {type(login).__name__} is neither a connection nor has get_connection()"
    )


__all__ = [
    "DedicatedLogin",
    "Login",
    "PoolManager",
    "PooledLogin",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
    "open_connection",
    "resolve_connection",
]
