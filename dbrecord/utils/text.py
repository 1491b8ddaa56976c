"""
Small text helpers shared by fields, errors and reporters.

These cover the whitespace and markup handling the field types need when
normalizing interface input and rendering values as plain text or HTML.
"""

from __future__ import annotations

import html
import re
from typing import Any, Iterable, List, Optional

_WHITESPACE = re.compile(r"\s+")
_INLINE_TAG = re.compile(r"</?(?:a|i|b|tt|code)\b[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")


def crunch(value: Optional[str]) -> str:
    """Trim the value and collapse internal whitespace runs to one space."""
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value)).strip()


def title_case(value: str) -> str:
    """Capitalize the first letter of every word and lowercase the rest."""
    return re.sub(r"\w+", lambda m: m.group(0)[:1].upper() + m.group(0)[1:].lower(), value)


def html_escape(value: Any) -> str:
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def has_content(value: Any) -> bool:
    """Return True when the value holds at least one non-whitespace character."""
    if value is None:
        return False
    return bool(str(value).strip())


def strip_html(markup: Optional[str]) -> str:
    """
    Reduce an HTML fragment to plain text.

    Inline formatting tags (a, i, b, tt, code) disappear without leaving a
    gap; every other tag is replaced by a single space. Entities are decoded
    and whitespace is crunched.
    """
    if not markup:
        return ""
    text = _INLINE_TAG.sub("", markup)
    text = _ANY_TAG.sub(" ", text)
    return crunch(html.unescape(text))


def as_list(value: Any) -> List[Any]:
    """Normalize None, a scalar or an iterable of values into a list."""
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


__all__ = ["as_list", "crunch", "has_content", "html_escape", "strip_html", "title_case"]
