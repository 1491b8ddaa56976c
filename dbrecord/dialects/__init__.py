"""
SQL dialects for dbrecord.

Re-exports the dialect interfaces and a small registry so tables and the CLI
can pick a backend by name.
"""

from __future__ import annotations

from typing import Callable, Dict, List

from dbrecord.dialects.abstract import AbstractSqlDialect, PendingQuery, SqlDialect
from dbrecord.dialects.postgres import PostgresDialect
from dbrecord.dialects.sqlite import SqliteDialect


def _dialect_factories() -> Dict[str, Callable[[], SqlDialect]]:
    """Registry of available dialects."""
    return {
        "postgres": lambda: PostgresDialect(),
        "sqlite": lambda: SqliteDialect(),
    }


def available_dialects() -> List[str]:
    """List available dialect names."""
    return sorted(_dialect_factories().keys())


def resolve_dialect(name: str) -> SqlDialect:
    factories = _dialect_factories()
    if name not in factories:
        raise ValueError(f"Unknown dialect '{name}'. Available: {', '.join(factories)}")
    return factories[name]()


__all__ = [
    "AbstractSqlDialect",
    "PendingQuery",
    "PostgresDialect",
    "SqlDialect",
    "SqliteDialect",
    "available_dialects",
    "resolve_dialect",
]
