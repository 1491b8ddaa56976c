"""
Domain package for dbrecord.

Holds the building blocks records are made of: schema declarations, field
types, the dirty-tracking container and the error contracts. The record
engine itself lives in ``dbrecord.domain.record``.
"""

from dbrecord.domain.container import FieldContainer, RecordRef
from dbrecord.domain.errors import (
    ConfigurationError,
    DbRecordError,
    ErrorEntry,
    ErrorList,
    Media,
    RecordStateError,
    StorageError,
    UnknownFieldError,
)
from dbrecord.domain.fields import (
    Boolean,
    Field,
    ForeignKeyReference,
    LongText,
    Radio,
    SingleChoice,
    Text,
    build_field,
)
from dbrecord.domain.schema import FieldDef, TableSchema

__all__ = [
    "Boolean",
    "ConfigurationError",
    "DbRecordError",
    "ErrorEntry",
    "ErrorList",
    "Field",
    "FieldContainer",
    "FieldDef",
    "ForeignKeyReference",
    "LongText",
    "Media",
    "Radio",
    "RecordRef",
    "RecordStateError",
    "SingleChoice",
    "StorageError",
    "TableSchema",
    "Text",
    "UnknownFieldError",
    "build_field",
]
