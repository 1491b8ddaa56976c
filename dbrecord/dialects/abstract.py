"""
SQL dialect interfaces shared by every database backend.

A dialect turns record operations (load one row, list rows, insert, update,
delete, existence checks) into SQL for one database family and runs it over
a DB-API connection. Concrete dialects implement the ``SqlDialect`` protocol,
usually by subclassing ``AbstractSqlDialect`` and supplying the bind
placeholder, the driver's exception types and the insert statement.

Driver exceptions never leave a dialect: they are wrapped in ``StorageError``.
"""

from __future__ import annotations

import abc
import contextlib
import re
from typing import Any, ClassVar, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from dbrecord.domain.errors import ConfigurationError, StorageError
from dbrecord.domain.schema import TableSchema
from dbrecord.utils.logging import get_logger

log = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ORDER_TERM = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(?:\s+(?:asc|desc))?$", re.IGNORECASE)


def check_identifier(name: str) -> str:
    """Reject table and column names that are not plain identifiers."""
    if not _IDENTIFIER.match(name):
        raise ConfigurationError(f"Invalid SQL identifier: {name!r}")
    return name


def check_order_term(term: str) -> str:
    """Accept ORDER BY terms of the form ``column [ASC|DESC]`` only."""
    if not _ORDER_TERM.match(term):
        raise ConfigurationError(f"Invalid ORDER BY term: {term!r}")
    return term


def _open_cursor(connection: Any, sql: str, params: Sequence[Any], driver_errors: Tuple[type, ...]) -> Any:
    """Execute ``sql`` on a new cursor, closing the cursor again if execution fails."""
    try:
        cursor = connection.cursor()
    except driver_errors as exc:
        raise StorageError(str(exc)) from exc
    try:
        cursor.execute(sql, tuple(params))
    except driver_errors as exc:
        with contextlib.suppress(*driver_errors):
            cursor.close()
        raise StorageError(str(exc)) from exc
    return cursor


class PendingQuery:
    """
    A built but unexecuted SELECT.

    ``execute`` runs it once; ``fetchone`` returns rows as dicts keyed by
    lower-cased column name, then None when the result set is exhausted.
    """

    def __init__(
        self,
        connection: Any,
        sql: str,
        params: Sequence[Any] = (),
        driver_errors: Tuple[type, ...] = (),
    ) -> None:
        self.connection = connection
        self.sql = sql
        self.params = tuple(params)
        self.driver_errors = driver_errors
        self._cursor: Any = None
        self._columns: List[str] = []

    @property
    def executed(self) -> bool:
        return self._cursor is not None

    def execute(self) -> None:
        log.debug(f"[SQL] {self.sql}", extra={"params": list(self.params)})
        cursor = _open_cursor(self.connection, self.sql, self.params, self.driver_errors)
        self._cursor = cursor
        self._columns = [column[0].lower() for column in cursor.description or ()]

    def fetchone(self) -> Optional[Dict[str, Any]]:
        if self._cursor is None:
            raise StorageError("Query has not been executed")
        try:
            row = self._cursor.fetchone()
        except self.driver_errors as exc:
            raise StorageError(str(exc)) from exc
        if row is None:
            return None
        return dict(zip(self._columns, row))

    def close(self) -> None:
        if self._cursor is not None:
            with contextlib.suppress(*self.driver_errors):
                self._cursor.close()
            self._cursor = None


@runtime_checkable
class SqlDialect(Protocol):
    """
    Storage operations a record table needs.

    Attributes
    ----------
    name : str
        Short identifier used by the dialect registry.
    placeholder : str
        Bind-parameter marker for hand-written ``where`` clauses.
    """

    name: str
    placeholder: str

    def select_single(
        self, connection: Any, table: TableSchema, pk: Any, fields: Optional[List[str]] = None
    ) -> Optional[Dict[str, Any]]: ...

    def select_multiple(
        self,
        connection: Any,
        table: TableSchema,
        fields: Optional[List[str]] = None,
        where: Optional[str] = None,
        bindings: Optional[Sequence[Any]] = None,
        order: Optional[List[str]] = None,
    ) -> PendingQuery: ...

    def record_exists(self, connection: Any, table: TableSchema, pk: Any) -> bool: ...

    def record_delete(self, connection: Any, table: TableSchema, pk: Any) -> None: ...

    def update(
        self, connection: Any, table: TableSchema, pk: Any, names: List[str], values: List[Any]
    ) -> None: ...

    def insert(self, connection: Any, table: TableSchema, names: List[str], values: List[Any]) -> Any: ...


class AbstractSqlDialect(abc.ABC):
    """
    DB-API implementation of ``SqlDialect``.

    Subclasses set ``name``, ``placeholder`` and ``driver_errors`` and
    implement ``insert``, which differs in how each database reports the
    generated key.
    """

    name: ClassVar[str]
    placeholder: ClassVar[str]
    driver_errors: ClassVar[Tuple[type, ...]] = ()

    def _column_list(self, table: TableSchema, fields: Optional[List[str]]) -> str:
        if not fields or "*" in fields:
            return "*"
        columns = [check_identifier(name) for name in fields]
        if table.pk not in columns:
            columns.insert(0, table.pk)
        return ", ".join(columns)

    def _bind_list(self, count: int) -> str:
        return ", ".join([self.placeholder] * count)

    def _pk_clause(self, table: TableSchema) -> str:
        return f"{check_identifier(table.pk)} = {self.placeholder}"

    def _execute(self, connection: Any, sql: str, params: Sequence[Any]) -> Any:
        """Run one statement and return its open cursor."""
        log.debug(f"[SQL] {sql}", extra={"params": list(params)})
        return _open_cursor(connection, sql, params, self.driver_errors)

    def _write(self, connection: Any, sql: str, params: Sequence[Any]) -> Any:
        """Run a data-changing statement and commit, rolling back on failure."""
        try:
            cursor = self._execute(connection, sql, params)
            connection.commit()
            return cursor
        except (StorageError, *self.driver_errors) as exc:
            with contextlib.suppress(*self.driver_errors):
                connection.rollback()
            if isinstance(exc, StorageError):
                raise
            raise StorageError(str(exc)) from exc

    def select_single(
        self, connection: Any, table: TableSchema, pk: Any, fields: Optional[List[str]] = None
    ) -> Optional[Dict[str, Any]]:
        """Return one row as a dict keyed by lower-cased column, or None."""
        sql = (
            f"SELECT {self._column_list(table, fields)} FROM {check_identifier(table.name)} "
            f"WHERE {self._pk_clause(table)}"
        )
        query = PendingQuery(connection, sql, [pk], self.driver_errors)
        query.execute()
        try:
            return query.fetchone()
        finally:
            query.close()

    def select_multiple(
        self,
        connection: Any,
        table: TableSchema,
        fields: Optional[List[str]] = None,
        where: Optional[str] = None,
        bindings: Optional[Sequence[Any]] = None,
        order: Optional[List[str]] = None,
    ) -> PendingQuery:
        """Build, without running, a SELECT over the table."""
        sql = f"SELECT {self._column_list(table, fields)} FROM {check_identifier(table.name)}"
        if where:
            sql += f" WHERE {where}"
        if order:
            sql += " ORDER BY " + ", ".join(check_order_term(term) for term in order)
        return PendingQuery(connection, sql, list(bindings or []), self.driver_errors)

    def record_exists(self, connection: Any, table: TableSchema, pk: Any) -> bool:
        sql = f"SELECT COUNT(*) FROM {check_identifier(table.name)} WHERE {self._pk_clause(table)}"
        cursor = self._execute(connection, sql, [pk])
        try:
            row = cursor.fetchone()
        except self.driver_errors as exc:
            raise StorageError(str(exc)) from exc
        finally:
            cursor.close()
        return bool(row and row[0])

    def record_delete(self, connection: Any, table: TableSchema, pk: Any) -> None:
        sql = f"DELETE FROM {check_identifier(table.name)} WHERE {self._pk_clause(table)}"
        self._write(connection, sql, [pk]).close()

    def update(
        self, connection: Any, table: TableSchema, pk: Any, names: List[str], values: List[Any]
    ) -> None:
        if not names:
            return
        assignments = ", ".join(f"{check_identifier(n)} = {self.placeholder}" for n in names)
        sql = (
            f"UPDATE {check_identifier(table.name)} SET {assignments} "
            f"WHERE {self._pk_clause(table)}"
        )
        self._write(connection, sql, [*values, pk]).close()

    @abc.abstractmethod
    def insert(
        self, connection: Any, table: TableSchema, names: List[str], values: List[Any]
    ) -> Any:  # pragma: no cover - interface only
        """Insert a row and return its generated primary key."""
        raise NotImplementedError

    def _insert_sql(self, table: TableSchema, names: List[str]) -> str:
        table_name = check_identifier(table.name)
        if not names:
            return f"INSERT INTO {table_name} DEFAULT VALUES"
        columns = ", ".join(check_identifier(n) for n in names)
        return f"INSERT INTO {table_name} ({columns}) VALUES ({self._bind_list(len(names))})"


__all__ = ["AbstractSqlDialect", "PendingQuery", "SqlDialect", "check_identifier", "check_order_term"]
