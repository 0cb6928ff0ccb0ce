"""Text processing utilities for page-delimited chapter documents."""

from .pages import format_pages, normalize_document, split_document
from .quality import analyze_formatting, readability_score

__all__ = [
    "analyze_formatting",
    "format_pages",
    "normalize_document",
    "readability_score",
    "split_document",
]
