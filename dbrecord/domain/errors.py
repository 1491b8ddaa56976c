"""
Error contracts for dbrecord.

Two families live here:

- Exceptions (``DbRecordError`` and subclasses) signal programming and
  configuration mistakes, or wrap driver failures raised by a dialect.
- ``ErrorList`` accumulates user-facing problems (validation failures,
  missing rows, storage failures) for one unit of work. Operations that
  fill it return ``False`` or ``None`` instead of raising.
"""

from __future__ import annotations

import enum
from typing import Iterator, List, Optional

from pydantic import BaseModel, model_validator

from dbrecord.utils.text import html_escape, strip_html


class DbRecordError(Exception):
    """Base class for every exception raised by dbrecord."""


class ConfigurationError(DbRecordError):
    """Raised when a table, field or login is declared incorrectly."""


class UnknownFieldError(ConfigurationError, KeyError):
    """Raised when a raw value is assigned to a field the record does not have."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class StorageError(DbRecordError):
    """Raised by dialects when the database driver reports a failure."""


class RecordStateError(DbRecordError):
    """Raised when a record is used in a way its lifecycle does not allow."""


class Media(enum.IntEnum):
    """Target output for rendering fields and errors."""

    TEXT = 1
    HTML = 2
    HTML_FORM = 3


class ErrorEntry(BaseModel):
    """One accumulated problem, carrying a plain-text and/or markup message."""

    model_config = {"frozen": True}

    text: Optional[str] = None
    html: Optional[str] = None

    @model_validator(mode="after")
    def _require_message(self) -> "ErrorEntry":
        if not self.text and not self.html:
            raise ValueError("an error entry needs text or html")
        return self

    def output(self, media: Media = Media.TEXT) -> str:
        """
        Render the entry for the given media.

        Plain text falls back to the tag-stripped markup; markup falls back to
        the escaped text.
        """
        if media == Media.TEXT:
            return self.text if self.text else strip_html(self.html)
        return self.html if self.html else html_escape(self.text)


class ErrorList:
    """
    Ordered accumulator of ``ErrorEntry`` items for one unit of work.

    Record operations clear the list they are given before doing work;
    rendering never clears it.
    """

    def __init__(self) -> None:
        self._entries: List[ErrorEntry] = []

    def add(self, text: Optional[str] = None, html: Optional[str] = None) -> bool:
        """
        Append an entry.

        Always returns False so validators can write ``return errors.add(...)``.
        """
        self._entries.append(ErrorEntry(text=text, html=html))
        return False

    def add_storage_error(self, exc: BaseException) -> bool:
        return self.add(text=f"Database error: {exc}")

    def extend(self, other: "ErrorList") -> None:
        self._entries.extend(other)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def entries(self) -> List[ErrorEntry]:
        return list(self._entries)

    def render(self, media: Media = Media.TEXT) -> List[str]:
        return [entry.output(media) for entry in self._entries]

    def format_report(self, separator: str = "\n") -> str:
        """Join the plain-text form of every entry."""
        return separator.join(self.render(Media.TEXT))

    def __iter__(self) -> Iterator[ErrorEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"ErrorList({self.render()!r})"


__all__ = [
    "ConfigurationError",
    "DbRecordError",
    "ErrorEntry",
    "ErrorList",
    "Media",
    "RecordStateError",
    "StorageError",
    "UnknownFieldError",
]
