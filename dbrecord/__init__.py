"""
dbrecord - row-to-object mapping with change tracking and field validation.

Table classes subclass ``Record`` and declare a ``TableSchema`` plus a SQL
dialect. Records then offer:

- Loading by key, from row mappings, cursors or submitted forms
- Per-field dirty tracking so saves send only changed columns
- Typed fields (text, long text, foreign keys, booleans, choices) that
  normalize, validate and render their values
- Lazy cursors over query results
- Error lists that collect problems instead of raising
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from dbrecord.config import Settings, get_settings
from dbrecord.domain.record import FormInput, Record, is_new_pk
from dbrecord.domain.cursor import RecordCursor
from dbrecord.domain.errors import (
    ConfigurationError,
    DbRecordError,
    ErrorList,
    Media,
    RecordStateError,
    StorageError,
    UnknownFieldError,
)
from dbrecord.domain.schema import FieldDef, TableSchema
from dbrecord.dialects import PostgresDialect, SqliteDialect, available_dialects, resolve_dialect
from dbrecord.infrastructure.db_factory import DedicatedLogin, PooledLogin, open_connection
from dbrecord.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Records
    "FieldDef",
    "FormInput",
    "Record",
    "RecordCursor",
    "TableSchema",
    "is_new_pk",
    # Errors
    "ConfigurationError",
    "DbRecordError",
    "ErrorList",
    "Media",
    "RecordStateError",
    "StorageError",
    "UnknownFieldError",
    # Dialects
    "PostgresDialect",
    "SqliteDialect",
    "available_dialects",
    "resolve_dialect",
    # Connections
    "DedicatedLogin",
    "PooledLogin",
    "open_connection",
    # Logging
    "configure_logging",
    "get_logger",
]
