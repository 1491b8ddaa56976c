"""
SQLite dialect over the standard library ``sqlite3`` driver.
"""

from __future__ import annotations

import sqlite3
from typing import Any, List

from dbrecord.dialects.abstract import AbstractSqlDialect
from dbrecord.domain.schema import TableSchema


class SqliteDialect(AbstractSqlDialect):
    """Uses ``?`` placeholders and the cursor's ``lastrowid`` as the new key."""

    name = "sqlite"
    placeholder = "?"
    driver_errors = (sqlite3.Error,)

    def insert(self, connection: Any, table: TableSchema, names: List[str], values: List[Any]) -> Any:
        cursor = self._write(connection, self._insert_sql(table, names), values)
        try:
            return cursor.lastrowid
        finally:
            cursor.close()


__all__ = ["SqliteDialect"]
