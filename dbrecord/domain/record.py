"""
Record engine.

A ``Record`` is one row of one table. Table classes subclass ``Record`` and
declare two collaborators as class attributes:

- ``schema``: the ``TableSchema`` describing the columns.
- ``dialect``: the ``SqlDialect`` that talks to the database.

They may also override the lifecycle hooks (``before_insert``,
``after_update`` ...) and ``record_level_validate``.

A record is *new* until it has been inserted. Field writes go through the
record's ``FieldContainer`` so that ``save`` sends exactly the changed
columns, and only after validating them.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field as dataclass_field
from decimal import Decimal
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union

from dbrecord.config import Settings, get_settings
from dbrecord.dialects.abstract import SqlDialect, check_identifier, check_order_term
from dbrecord.domain.container import FieldContainer, RecordRef
from dbrecord.domain.cursor import RecordCursor
from dbrecord.domain.errors import ConfigurationError, ErrorList, RecordStateError, StorageError
from dbrecord.domain.fields import Field, build_field
from dbrecord.domain.schema import TableSchema
from dbrecord.infrastructure.db_factory import resolve_connection
from dbrecord.utils.logging import get_logger
from dbrecord.utils.text import as_list, crunch, has_content

log = get_logger(__name__)

R = TypeVar("R", bound="Record")
FieldSelection = Union[str, Sequence[str], None]

_NEW_PK = re.compile(r"^-(?:\d+(?:\.\d*)?|\.\d+)$")


def is_new_pk(pk: Any) -> bool:
    """
    Return True when ``pk`` identifies a record that has not been stored.

    That is the case for None, blank strings and negative numbers
    (``-3``, ``"-2.5"``, ``"-.5"``). A minus sign marks a new key even on
    zero, so ``"-0"`` and ``-0.0`` are new while ``0`` is not.
    """
    if pk is None:
        return True
    if isinstance(pk, (int, float, Decimal)) and not isinstance(pk, bool):
        return pk < 0 or math.copysign(1, pk) < 0
    text = str(pk).strip()
    if not text:
        return True
    return bool(_NEW_PK.match(text))


@dataclass(frozen=True)
class FormInput:
    """
    Parameters submitted through a form.

    Fields are only read from ``params`` when the form was submitted and not
    cancelled; otherwise only the primary key is taken.
    """

    params: Mapping[str, Any] = dataclass_field(default_factory=dict)
    submitted: bool = True
    cancelled: bool = False

    @property
    def gate_open(self) -> bool:
        return self.submitted and not self.cancelled

    @classmethod
    def from_params(cls, params: Mapping[str, Any], settings: Optional[Settings] = None) -> "FormInput":
        """Read the submitted and cancelled flags from the configured parameter names."""
        settings = settings or get_settings()
        return cls(
            params=params,
            submitted=has_content(params.get(settings.form_sent_param)),
            cancelled=has_content(params.get(settings.form_cancel_param)),
        )


class Record:
    """Base class for table records."""

    schema: ClassVar[TableSchema]
    dialect: ClassVar[SqlDialect]
    always_record_level_validate: ClassVar[bool] = False

    def __init__(self, login: Any, pk: Any = None, *, errors: Optional[ErrorList] = None) -> None:
        type(self)._check_declaration()
        self.login = login
        self.errors = errors if errors is not None else ErrorList()
        self._pk = None if is_new_pk(pk) else pk
        self.fields = FieldContainer(self._ref())
        if self._pk is None:
            self._populate_new()

    @classmethod
    def _check_declaration(cls) -> None:
        if not isinstance(getattr(cls, "schema", None), TableSchema):
            raise ConfigurationError(f"{cls.__name__} does not declare a TableSchema")
        if getattr(cls, "dialect", None) is None:
            raise ConfigurationError(f"{cls.__name__} does not declare a dialect")

    def _ref(self) -> RecordRef:
        return RecordRef(pk=self._pk, table=self.schema.name, login=self.login)

    def _new_field(self, name: str) -> Field:
        return build_field(name, self.schema.definition(name), self.login)

    def _populate_new(self) -> None:
        for name, definition in self.schema.fields.items():
            field = self._new_field(name)
            field.set_from_interface(definition.default)
            self.fields.store(name, field)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(pk={self._pk!r})"

    # -- identity --------------------------------------------------------------

    @property
    def pk(self) -> Any:
        return self._pk

    @pk.setter
    def pk(self, value: Any) -> None:
        raise RecordStateError("The primary key of a record cannot be reassigned")

    @property
    def is_new(self) -> bool:
        return self._pk is None

    def get_connection(self) -> Any:
        return resolve_connection(self.login)

    def __getitem__(self, name: str) -> Field:
        return self.fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.fields[name] = value

    def changed(self) -> List[str]:
        return self.fields.changed()

    def reset(self) -> None:
        self.fields.reset()

    def still_valid(self) -> bool:
        return self.fields.validated

    # -- construction ----------------------------------------------------------

    @classmethod
    def create(
        cls: Type[R],
        login: Any,
        source: Any = None,
        *,
        fields: FieldSelection = None,
        errors: Optional[ErrorList] = None,
    ) -> Optional[R]:
        """
        Build a record from whatever ``source`` is.

        Parameters
        ----------
        login : Any
            Connection or login object.
        source : Any
            A primary key (or None / a negative number for a new record), a
            row mapping, an object with ``fetchone()``, or a ``FormInput``.
        fields : str or list of str, optional
            For a key, fields to load right away. For form input, the fields
            to read from the submission (``"*"`` for all); required there.
        errors : ErrorList, optional
            Where problems are reported.

        Returns
        -------
        Record or None
            None when a key or cursor yields no row.
        """
        if isinstance(source, FormInput):
            return cls.from_form(login, source, fields, errors=errors)
        if isinstance(source, Mapping):
            return cls.from_row(login, source, errors=errors)
        if callable(getattr(source, "fetchone", None)):
            return cls.from_cursor(login, source, errors=errors)
        if source is None or isinstance(source, (str, int, float, Decimal)):
            if is_new_pk(source) or fields is None:
                return cls(login, source, errors=errors)
            return cls.load(login, source, fields, errors=errors)
        raise TypeError(f"Cannot build {cls.__name__} from {type(source).__name__}")

    @classmethod
    def load(
        cls: Type[R],
        login: Any,
        pk: Any,
        fields: FieldSelection = "*",
        *,
        errors: Optional[ErrorList] = None,
    ) -> Optional[R]:
        """Load an existing record, returning None when it cannot be found."""
        record = cls(login, pk, errors=errors)
        if record.is_new:
            record.errors.add(text="Cannot load a record without a primary key")
            return None
        if not record.set_fields(fields):
            return None
        return record

    @classmethod
    def from_row(
        cls: Type[R],
        login: Any,
        row: Mapping[str, Any],
        *,
        errors: Optional[ErrorList] = None,
        trusted: bool = False,
    ) -> Optional[R]:
        """
        Build a record from a column-to-value mapping.

        Rows with a stored key are trusted as database values, except
        write-once columns, which are re-read from the database unless
        ``trusted`` says the row came straight from it. Rows without a stored
        key are new data and go through interface normalization.

        Returns None, with an entry in ``errors``, when the write-once
        columns cannot be re-read.
        """
        values = {str(name).lower(): value for name, value in row.items()}
        record = cls(login, values.get(cls.schema.pk), errors=errors)
        if record.is_new:
            record._apply_interface(values)
        elif not record._apply_storage(values, trusted):
            return None
        return record

    @classmethod
    def from_cursor(
        cls: Type[R], login: Any, cursor: Any, *, errors: Optional[ErrorList] = None
    ) -> Optional[R]:
        """Build a record from the cursor's next row, or return None when it has none."""
        try:
            row = cursor.fetchone()
        except StorageError as exc:
            if errors is not None:
                errors.add_storage_error(exc)
            return None
        if row is None:
            return None
        if not isinstance(row, Mapping):
            columns = [column[0] for column in cursor.description]
            row = dict(zip(columns, row))
        return cls.from_row(login, row, errors=errors, trusted=True)

    @classmethod
    def from_form(
        cls: Type[R],
        login: Any,
        form: FormInput,
        fields: FieldSelection,
        *,
        errors: Optional[ErrorList] = None,
    ) -> R:
        """Build a record from submitted form parameters."""
        if fields is None:
            raise ConfigurationError(
                f"{cls.__name__}: a field list is required to read form input"
            )
        params = {str(name).lower(): value for name, value in form.params.items()}
        record = cls(login, params.get(cls.schema.pk), errors=errors)
        if not form.gate_open:
            return record
        names = cls._normalize_names(fields, with_pk=False) or cls.schema.field_names()
        for name in names:
            field = record.fields.get(name) or record._new_field(name)
            field.set_from_interface(params.get(name))
            record.fields.store(name, field)
        return record

    def _apply_interface(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            if name not in self.schema.fields:
                continue
            if value is None:
                value = self.schema.fields[name].default
            self.fields[name] = value

    def _apply_storage(self, values: Mapping[str, Any], trusted: bool = False) -> bool:
        known = {name: value for name, value in values.items() if name in self.schema.fields}
        write_once = [] if trusted else [name for name in known if self.schema.fields[name].write_once]
        if write_once and not self._fetch_into_fields(self._normalize_names(write_once)):
            return False
        for name, value in known.items():
            if name not in write_once:
                self._store_from_storage(name, value)
        return True

    def _store_from_storage(self, name: str, value: Any) -> None:
        field = self.fields.get(name) or self._new_field(name)
        field.set_from_storage(value)
        self.fields.store(name, field, from_storage=True)

    # -- loading ---------------------------------------------------------------

    @classmethod
    def _normalize_names(cls, fields: FieldSelection, with_pk: bool = True) -> Optional[List[str]]:
        """
        Clean a field selection.

        Returns None for "all fields"; otherwise lower-cased names with the
        primary key first when ``with_pk`` is set.
        """
        names = [crunch(name).lower() for name in as_list(fields) if has_content(name)]
        if not names or "*" in names:
            return None
        for name in names:
            if name != cls.schema.pk and name not in cls.schema.fields:
                raise ConfigurationError(f"Table {cls.schema.name!r} has no field {name!r}")
        names = [name for name in names if name != cls.schema.pk]
        return [cls.schema.pk, *names] if with_pk else names

    def set_fields(self, fields: FieldSelection = None) -> bool:
        """
        Load fields from the database, all of them by default.

        Returns False, with an entry in ``errors``, for a new record or when
        the row does not exist.
        """
        self.errors.clear()
        if self.is_new:
            return self.errors.add(text="Cannot load fields of a record that has not been saved yet")
        return self._fetch_into_fields(self._normalize_names(fields))

    def _fetch_into_fields(self, names: Optional[List[str]]) -> bool:
        try:
            row = self.dialect.select_single(self.get_connection(), self.schema, self._pk, names)
        except StorageError as exc:
            log.warning(f"[RECORD LOAD FAILED] {self.schema.name}", extra={"pk": self._pk, "error": str(exc)})
            return self.errors.add_storage_error(exc)
        if row is None:
            return self.errors.add(text="no such record found")
        for name, value in row.items():
            name = name.lower()
            if name in self.schema.fields and (names is None or name in names):
                self._store_from_storage(name, value)
        return True

    # -- validation ------------------------------------------------------------

    def validate(self) -> bool:
        """Validate changed fields and then the record as a whole."""
        self.errors.clear()
        return self._validate()

    def _validate(self) -> bool:
        if self.fields.validated:
            return True
        ok = self.validate_fields()
        if ok or self.always_record_level_validate:
            ok = self.record_level_validate(self.errors) and ok
        if ok:
            self.fields.validated = True
        return ok

    def validate_fields(self) -> bool:
        ok = True
        for name in self.fields.changed():
            if not self.fields[name].validate(self, self.errors):
                ok = False
        return ok

    def record_level_validate(self, errors: ErrorList) -> bool:
        """Cross-field checks; override in table classes."""
        return True

    # -- hooks -----------------------------------------------------------------

    def before_insert(self) -> bool:
        return True

    def after_insert(self) -> bool:
        return True

    def before_update(self) -> bool:
        return True

    def after_update(self) -> bool:
        return True

    def before_delete(self) -> bool:
        return True

    def after_delete(self) -> bool:
        return True

    # -- persistence -----------------------------------------------------------

    def save(self) -> bool:
        """
        Write changed fields to the database.

        New records are inserted and receive their key; existing records are
        updated with their changed, non write-once fields. Nothing is sent
        when nothing changed.
        """
        self.errors.clear()
        names = self.fields.changed()
        if not self.is_new:
            names = [name for name in names if not self.fields[name].write_once]
        names = [name for name in names if self.fields[name].store_in_db]
        if not names:
            return True
        if not self._validate():
            return False

        values = [self.fields[name].to_storage() for name in names]
        if self.is_new:
            ok = self._insert(names, values)
        else:
            ok = self._update(names, values)
        return ok

    def _insert(self, names: List[str], values: List[Any]) -> bool:
        if not self.before_insert():
            return False
        try:
            pk = self.dialect.insert(self.get_connection(), self.schema, names, values)
        except StorageError as exc:
            log.warning(f"[RECORD INSERT FAILED] {self.schema.name}", extra={"error": str(exc)})
            return self.errors.add_storage_error(exc)
        if pk is None:
            return self.errors.add(text="The database did not return a key for the new record")
        self._pk = pk
        self.fields.owner = self._ref()
        self.fields.reset()
        log.info(f"[RECORD INSERT] {self.schema.name}", extra={"pk": pk, "fields": names})
        self.after_insert()
        return True

    def _update(self, names: List[str], values: List[Any]) -> bool:
        if not self.before_update():
            return False
        try:
            self.dialect.update(self.get_connection(), self.schema, self._pk, names, values)
        except StorageError as exc:
            log.warning(
                f"[RECORD UPDATE FAILED] {self.schema.name}", extra={"pk": self._pk, "error": str(exc)}
            )
            return self.errors.add_storage_error(exc)
        self.fields.reset()
        log.info(f"[RECORD UPDATE] {self.schema.name}", extra={"pk": self._pk, "fields": names})
        self.after_update()
        return True

    def delete(self) -> bool:
        self.errors.clear()
        if self.is_new:
            return self.errors.add(text="Cannot delete record that has not been saved yet")
        if not self.before_delete():
            return False
        try:
            self.dialect.record_delete(self.get_connection(), self.schema, self._pk)
        except StorageError as exc:
            log.warning(
                f"[RECORD DELETE FAILED] {self.schema.name}", extra={"pk": self._pk, "error": str(exc)}
            )
            return self.errors.add_storage_error(exc)
        log.info(f"[RECORD DELETE] {self.schema.name}", extra={"pk": self._pk})
        self.after_delete()
        return True

    def exists(self) -> bool:
        return type(self).key_exists(self.login, self._pk, errors=self.errors)

    @classmethod
    def key_exists(cls, login: Any, pk: Any, *, errors: Optional[ErrorList] = None) -> bool:
        """Check for a stored row with this key. New-shaped keys never exist."""
        if is_new_pk(pk):
            return False
        try:
            return cls.dialect.record_exists(resolve_connection(login), cls.schema, pk)
        except StorageError as exc:
            if errors is None:
                raise
            return errors.add_storage_error(exc)

    # -- bulk retrieval --------------------------------------------------------

    @classmethod
    def get_records(
        cls,
        login: Any,
        *,
        fields: FieldSelection = None,
        where: Optional[str] = None,
        bindings: Any = None,
        order: FieldSelection = None,
        errors: Optional[ErrorList] = None,
    ) -> RecordCursor:
        """
        Return a cursor over matching records.

        ``where`` is raw SQL using the dialect's placeholder for each entry in
        ``bindings``; ``order`` is one or more ORDER BY terms.
        """
        cls._check_declaration()
        errors = errors if errors is not None else ErrorList()
        errors.clear()
        names = cls._normalize_names(fields)
        order_terms = [
            check_order_term(crunch(term).lower()) for term in as_list(order) if has_content(term)
        ]
        query = cls.dialect.select_multiple(
            resolve_connection(login),
            cls.schema,
            names,
            where,
            as_list(bindings),
            order_terms or None,
        )
        log.debug(f"[QUERY BUILT] {cls.schema.name}", extra={"where": where})
        return RecordCursor(query, cls, login, errors)

    def children(
        self,
        child_class: Type["Record"],
        *,
        foreign_key: Optional[str] = None,
        where: Optional[str] = None,
        bindings: Any = None,
        **options: Any,
    ) -> RecordCursor:
        """Records of ``child_class`` whose foreign key column holds this record's key."""
        if self.is_new:
            raise RecordStateError("A record that has not been saved yet has no children")
        column = check_identifier((foreign_key or self.schema.pk).strip().lower())
        clause = f"{column} = {child_class.dialect.placeholder}"
        if where:
            clause = f"({where}) AND {clause}"
        options.setdefault("errors", self.errors)
        return child_class.get_records(
            self.login, where=clause, bindings=[*as_list(bindings), self._pk], **options
        )

    # -- display ---------------------------------------------------------------

    @classmethod
    def _display_fields(cls) -> List[str]:
        if not cls.schema.display_fields:
            raise ConfigurationError(f"{cls.__name__} declares no display_fields")
        return list(cls.schema.display_fields)

    def display_str(self) -> str:
        """Short human-readable label built from the display fields."""
        names = self._display_fields()
        missing = [name for name in names if name not in self.fields]
        if missing and not self.is_new:
            self._fetch_into_fields(self._normalize_names(missing))
        parts = [self.fields[name].text_display() for name in names if name in self.fields]
        return " ".join(part for part in parts if has_content(part))

    @classmethod
    def display_record(cls: Type[R], login: Any, pk: Any) -> Optional[R]:
        """Load only the display fields of one record."""
        return cls.load(login, pk, cls._display_fields())

    @classmethod
    def display_record_str(cls, login: Any, pk: Any) -> Optional[str]:
        record = cls.display_record(login, pk)
        return record.display_str() if record is not None else None

    @classmethod
    def display_set(
        cls,
        login: Any,
        *,
        where: Optional[str] = None,
        bindings: Any = None,
        order: FieldSelection = None,
    ) -> List[Tuple[Any, str]]:
        """``(pk, label)`` pairs for every matching record, ordered by the display fields."""
        names = cls._display_fields()
        errors = ErrorList()
        cursor = cls.get_records(
            login, fields=names, where=where, bindings=bindings, order=order or names, errors=errors
        )
        pairs = [(record.pk, record.display_str()) for record in cursor]
        if errors:
            raise StorageError(errors.format_report())
        return pairs

    def as_dict(self) -> Dict[str, Any]:
        """Loaded field values in display form, keyed by name, key first."""
        values: Dict[str, Any] = {self.schema.pk: self._pk}
        values.update({name: self.fields[name].text_display() for name in self.fields})
        return values


__all__ = ["FieldSelection", "FormInput", "Record", "is_new_pk"]
