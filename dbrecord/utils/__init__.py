"""
Utilities package for dbrecord.

Exports shared helpers for logging and text handling.
Keep this package lightweight and free of domain-specific logic.
"""

from dbrecord.utils.logging import configure_logging, get_logger
from dbrecord.utils.text import as_list, crunch, has_content, html_escape, strip_html, title_case

__all__ = [
    "as_list",
    "configure_logging",
    "crunch",
    "get_logger",
    "has_content",
    "html_escape",
    "strip_html",
    "title_case",
]
