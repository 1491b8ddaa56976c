"""
Lazy, single-pass iteration over query results as records.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Iterator, Optional, Type

from dbrecord.dialects.abstract import PendingQuery
from dbrecord.domain.errors import ErrorList, StorageError
from dbrecord.utils.logging import get_logger

if TYPE_CHECKING:
    from dbrecord.domain.record import Record

log = get_logger(__name__)


class CursorState(str, enum.Enum):
    UNEXECUTED = "unexecuted"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class RecordCursor:
    """
    Turns a pending query into records, one per advance.

    The query runs on the first advance. Once no row is left the cursor is
    exhausted for good: the query handle is closed and every further advance
    returns None without touching the database.
    """

    def __init__(
        self,
        query: PendingQuery,
        record_class: Type["Record"],
        login: Any,
        errors: Optional[ErrorList] = None,
    ) -> None:
        self.query = query
        self.record_class = record_class
        self.login = login
        self.errors = errors if errors is not None else ErrorList()
        self.state = CursorState.UNEXECUTED
        self.count = 0

    def next(self) -> Optional["Record"]:
        """Return the next record, or None when there are no more."""
        if self.state == CursorState.EXHAUSTED:
            return None
        if self.state == CursorState.UNEXECUTED:
            try:
                self.query.execute()
            except StorageError as exc:
                log.warning(
                    f"[QUERY FAILED] {self.record_class.schema.name}", extra={"error": str(exc)}
                )
                self.errors.add_storage_error(exc)
                self.close()
                return None
            self.state = CursorState.ACTIVE

        record = self.record_class.from_cursor(self.login, self.query, errors=self.errors)
        if record is None:
            self.close()
            return None
        self.count += 1
        return record

    def close(self) -> None:
        self.query.close()
        self.state = CursorState.EXHAUSTED

    def __iter__(self) -> Iterator["Record"]:
        return self

    def __next__(self) -> "Record":
        record = self.next()
        if record is None:
            raise StopIteration
        return record


__all__ = ["CursorState", "RecordCursor"]
