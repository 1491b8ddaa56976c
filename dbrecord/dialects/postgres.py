"""
PostgreSQL dialect over psycopg 3 connections.
"""

from __future__ import annotations

from typing import Any, List

import psycopg

from dbrecord.dialects.abstract import AbstractSqlDialect, check_identifier
from dbrecord.domain.errors import StorageError
from dbrecord.domain.schema import TableSchema


class PostgresDialect(AbstractSqlDialect):
    """Uses ``%s`` placeholders and ``RETURNING`` to read generated keys."""

    name = "postgres"
    placeholder = "%s"
    driver_errors = (psycopg.Error,)

    def insert(self, connection: Any, table: TableSchema, names: List[str], values: List[Any]) -> Any:
        sql = f"{self._insert_sql(table, names)} RETURNING {check_identifier(table.pk)}"
        cursor = self._write(connection, sql, values)
        try:
            row = cursor.fetchone()
        except psycopg.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            cursor.close()
        return row[0] if row else None


__all__ = ["PostgresDialect"]
