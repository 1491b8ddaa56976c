"""
Dirty-tracking field container.

``FieldContainer`` is the mapping a record keeps its fields in. Names are
case-insensitive. Every write goes through the container so it can track
which fields changed since the last load or save, and whether the record
still needs validating.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set

from dbrecord.domain.errors import UnknownFieldError
from dbrecord.domain.fields import Field


@dataclass(frozen=True)
class RecordRef:
    """Identifying data of the record that owns a container."""

    pk: Any
    table: str
    login: Any = None


class FieldContainer(MutableMapping):
    """Case-insensitive mapping of field name to ``Field`` with a dirty set."""

    def __init__(self, owner: RecordRef) -> None:
        self.owner = owner
        self._cache: Dict[str, Field] = {}
        self._dirty: Set[str] = set()
        self.validated = False

    @staticmethod
    def _key(name: str) -> str:
        return name.lower()

    def store(self, name: str, field: Field, from_storage: bool = False) -> None:
        """
        Put a field object in the container.

        Parameters
        ----------
        name : str
            Field name, any case.
        field : Field
            The field to keep under ``name``.
        from_storage : bool
            True when the value was read from the database. Such writes clear
            the name from the dirty set; all other writes add it and mark the
            container as needing validation.
        """
        key = self._key(name)
        self._cache[key] = field
        if from_storage:
            self._dirty.discard(key)
        else:
            self._dirty.add(key)
            self.validated = False

    def __getitem__(self, name: str) -> Field:
        return self._cache[self._key(name)]

    def __setitem__(self, name: str, value: Any) -> None:
        if isinstance(value, Field):
            self.store(name, value)
            return
        key = self._key(name)
        field = self._cache.get(key)
        if field is None:
            raise UnknownFieldError(f"Record in table {self.owner.table!r} has no field {name!r}")
        field.set_from_interface(value)
        self._dirty.add(key)
        self.validated = False

    def __delitem__(self, name: str) -> None:
        key = self._key(name)
        del self._cache[key]
        self._dirty.discard(key)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._cache

    def __iter__(self) -> Iterator[str]:
        return iter(self._cache)

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, name: str, default: Optional[Field] = None) -> Optional[Field]:
        return self._cache.get(self._key(name), default)

    def clear(self) -> None:
        self._cache.clear()
        self._dirty.clear()

    def changed(self) -> List[str]:
        """Names written since construction or the last ``reset``, in field order."""
        return [name for name in self._cache if name in self._dirty]

    def is_changed(self, name: str) -> bool:
        return self._key(name) in self._dirty

    def reset(self) -> None:
        """Forget pending changes and mark the container as validated."""
        self._dirty.clear()
        self.validated = True

    def mark_all_changed(self) -> None:
        self._dirty = set(self._cache)
        self.validated = False

    def __repr__(self) -> str:
        return f"FieldContainer(table={self.owner.table!r}, pk={self.owner.pk!r}, changed={self.changed()!r})"


__all__ = ["FieldContainer", "RecordRef"]
