"""
Declarative table schemas.

A table class describes its columns with a ``TableSchema`` holding one
``FieldDef`` per column. Both are frozen pydantic models so that a schema
is validated once, when the table class is defined.
"""

from __future__ import annotations

import importlib
import re
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dbrecord.domain.errors import ConfigurationError

FieldKind = Literal["text", "long_text", "foreign_key", "boolean", "choice", "radio"]
Casing = Literal["upper", "lower", "title"]

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([km]?)\s*$", re.IGNORECASE)
_SIZE_MULTIPLIERS = {"": 1, "k": 1024, "m": 1024 * 1024}

DEFAULT_TRUE_FALSE_REPS: Dict[str, int] = {
    "1": 1,
    "0": 0,
    "y": 1,
    "n": 0,
    "yes": 1,
    "no": 0,
    "t": 1,
    "f": 0,
    "true": 1,
    "false": 0,
}


def parse_max_size(size: Union[int, str, None]) -> Optional[int]:
    """
    Convert a size declaration to a character count.

    ``"1k"`` is 1024 and ``"1m"`` is 1048576; plain integers pass through.
    """
    if size is None:
        return None
    if isinstance(size, int):
        return size
    match = _SIZE_PATTERN.match(size)
    if not match:
        raise ConfigurationError(f"Invalid max_size declaration: {size!r}")
    return int(match.group(1)) * _SIZE_MULTIPLIERS[match.group(2).lower()]


def import_table_class(path: str) -> Any:
    """Import a ``"package.module:ClassName"`` reference."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Table reference must look like 'module:Class', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import table module {module_name!r}: {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigurationError(f"Module {module_name!r} has no table {attr!r}") from exc


class FieldDef(BaseModel):
    """Declaration of one column and the field type that manages it."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    kind: FieldKind = "text"
    required: bool = False
    desc_short: Optional[str] = None
    desc_long_text: Optional[str] = None
    desc_long_html: Optional[str] = None
    default: Any = None
    write_once: bool = False
    store_in_db: bool = True

    # text
    crunch: bool = False
    trim: bool = False
    ltrim: bool = False
    rtrim: bool = False
    case: Optional[Casing] = None
    display_size: Optional[int] = None
    max_size: Union[int, str, None] = None

    # long text
    rows: int = 5
    cols: int = 40

    # foreign key / choice
    foreign: Any = None
    locked: bool = False

    # choice
    options: Optional[List[Tuple[Any, str]]] = None
    undef_display: Optional[str] = None

    # boolean
    true_false_reps: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_TRUE_FALSE_REPS))
    output_db: Dict[int, Any] = Field(default_factory=lambda: {0: 0, 1: 1})
    output_interface: Dict[int, str] = Field(default_factory=lambda: {0: "No", 1: "Yes"})
    html_img: Optional[Dict[int, str]] = None
    long_zero: bool = False

    @field_validator("max_size")
    @classmethod
    def _check_max_size(cls, value: Union[int, str, None]) -> Union[int, str, None]:
        try:
            parse_max_size(value)
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @field_validator("true_false_reps")
    @classmethod
    def _fold_reps(cls, value: Dict[str, int]) -> Dict[str, int]:
        return {str(word).lower(): (1 if flag else 0) for word, flag in value.items()}

    @model_validator(mode="after")
    def _check_kind_requirements(self) -> "FieldDef":
        if self.kind == "foreign_key" and self.foreign is None:
            raise ValueError("foreign_key fields need a 'foreign' table")
        return self

    @property
    def max_chars(self) -> Optional[int]:
        return parse_max_size(self.max_size)

    def foreign_class(self) -> Any:
        """Return the referenced table class, importing it on first use."""
        if isinstance(self.foreign, str):
            return import_table_class(self.foreign)
        return self.foreign


class TableSchema(BaseModel):
    """A table name, its primary key column and its field declarations."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    pk: str = "id"
    fields: Dict[str, FieldDef]
    display_fields: List[str] = Field(default_factory=list)

    @field_validator("pk")
    @classmethod
    def _fold_pk(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("fields")
    @classmethod
    def _fold_field_names(cls, value: Dict[str, FieldDef]) -> Dict[str, FieldDef]:
        folded: Dict[str, FieldDef] = {}
        for name, definition in value.items():
            key = name.strip().lower()
            if key in folded:
                raise ValueError(f"duplicate field name {name!r}")
            folded[key] = definition
        return folded

    @field_validator("display_fields")
    @classmethod
    def _fold_display_fields(cls, value: List[str]) -> List[str]:
        return [name.strip().lower() for name in value]

    @model_validator(mode="after")
    def _check_display_fields(self) -> "TableSchema":
        if self.pk in self.fields:
            raise ValueError(f"primary key {self.pk!r} must not be declared as a field")
        unknown = [name for name in self.display_fields if name not in self.fields]
        if unknown:
            raise ValueError(f"display_fields not declared in fields: {unknown}")
        return self

    def field_names(self) -> List[str]:
        return list(self.fields)

    def definition(self, name: str) -> FieldDef:
        try:
            return self.fields[name.lower()]
        except KeyError as exc:
            raise ConfigurationError(f"Table {self.name!r} has no field {name!r}") from exc


__all__ = [
    "DEFAULT_TRUE_FALSE_REPS",
    "FieldDef",
    "FieldKind",
    "TableSchema",
    "import_table_class",
    "parse_max_size",
]
