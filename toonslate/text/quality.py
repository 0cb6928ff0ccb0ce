"""Deterministic quality heuristics for translated chapter text.

Responsibilities:
- Report page-header presence and speech-bubble tag usage.
- Compute a simple readability score for reviewer feedback.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
import re

_PAGE_HEADER_LOOSE_PATTERN = re.compile(r"===\s*Page\s+\d+\s*===")
_TAG_PATTERNS = {
    '""': re.compile(r'""\s*:'),
    "()": re.compile(r"\(\)\s*:"),
    "[]": re.compile(r"\[\]\s*:"),
}
_SENTENCE_SPLIT_PATTERN = re.compile(r"[.!?]+")
_COMPLEX_WORD_MIN_CHARS = 8


@dataclass(frozen=True, slots=True)
class FormattingReport:
    """Formatting diagnostics for a translated document.

    Attributes:
        page_headers_present: Whether at least one `=== Page N ===` header exists.
        tag_consistency: Whether dialogue, thought, and narration tags all appear.
        missing_tags: Tag prefixes that never occur in the text.
    """

    page_headers_present: bool
    tag_consistency: bool
    missing_tags: tuple[str, ...]


def analyze_formatting(text: str) -> FormattingReport:
    """Inspect page headers and bubble tag prefixes in translated text."""

    missing = tuple(tag for tag, pattern in _TAG_PATTERNS.items() if not pattern.search(text))
    return FormattingReport(
        page_headers_present=bool(_PAGE_HEADER_LOOSE_PATTERN.search(text)),
        tag_consistency=not missing,
        missing_tags=missing,
    )


def readability_score(text: str) -> int:
    """Return a 0-100 readability score (higher is easier to read).

    The score is `100 - (avg_words_per_sentence * 0.5 + pct_complex_words * 0.5)`
    clamped to the valid range, where complex words are longer than 7 characters.
    """

    sentences = [part for part in _SENTENCE_SPLIT_PATTERN.split(text) if part.strip()]
    words = text.split()
    if not sentences or not words:
        return 0

    avg_words_per_sentence = len(words) / len(sentences)
    complex_words = sum(1 for word in words if len(word) >= _COMPLEX_WORD_MIN_CHARS)
    percent_complex = complex_words / len(words) * 100
    raw_score = avg_words_per_sentence * 0.5 + percent_complex * 0.5
    clamped = min(100.0, max(0.0, 100.0 - raw_score))
    return int(math.floor(clamped + 0.5))
