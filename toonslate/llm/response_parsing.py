"""Parsing helpers for free-text LLM responses.

Responsibilities:
- Locate and decode JSON objects/arrays embedded in free-form model output.
- Split structured translate-and-review responses into their numbered sections.

Every helper raises `ParseError` (or a subclass chosen by the caller) instead of
returning partially parsed data, so call sites can apply a documented fallback.
"""

from __future__ import annotations

from dataclasses import replace
import json
import re
from typing import Any

from ..errors import ParseError
from ..models.datatypes import GlossaryTerm, QualityReport, ReviewStatus, TranslationResult
from ..text.pages import PAGE_MARKER_PATTERN, collapse_blank_lines

_CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)

_SECTION_TITLES = (
    "IMPROVED TEXT",
    "ISSUES",
    "SUGGESTIONS",
    "CULTURAL NOTES",
    "GLOSSARY ENTRIES",
    "CHAPTER MEMORY",
    "CHAPTER SUMMARY",
)
_SECTION_HEADER_PATTERN = re.compile(
    r"^\s*(?:\d+\.\s*)?\*\*(" + "|".join(_SECTION_TITLES) + r"):?\*\*:?\s*",
    re.IGNORECASE | re.MULTILINE,
)
_BULLET_SPLIT_PATTERN = re.compile(r"(?:^|\n)\s*(?:[-*•]|\d+[.)])\s+")


def _decode_candidates(text: str, opener: str) -> Any:
    """Decode the first JSON value starting at any `opener` position in text."""

    decoder = json.JSONDecoder()
    closer = "}" if opener == "{" else "]"
    start = text.find(opener)
    end = text.rfind(closer)
    if start != -1 and end > start:
        try:
            return json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            pass
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
            return value
        except json.JSONDecodeError:
            start = text.find(opener, start + 1)
    return None


def extract_json_object(text: str, error_type: type[ParseError] = ParseError) -> dict[str, Any]:
    """Locate and decode a JSON object inside free-form model output.

    Fenced ```json blocks are preferred; otherwise the widest `{...}` span is
    tried first, then each `{` position is scanned.

    Raises:
        ParseError: (or `error_type`) when no JSON object can be decoded.
    """

    for fenced in _CODE_FENCE_PATTERN.findall(text):
        value = _decode_candidates(fenced, "{")
        if isinstance(value, dict):
            return value
    value = _decode_candidates(text, "{")
    if isinstance(value, dict):
        return value
    raise error_type("Could not locate a JSON object in model response.")


def extract_json_array(text: str, error_type: type[ParseError] = ParseError) -> list[Any]:
    """Locate and decode a JSON array inside free-form model output."""

    for fenced in _CODE_FENCE_PATTERN.findall(text):
        value = _decode_candidates(fenced, "[")
        if isinstance(value, list):
            return value
    value = _decode_candidates(text, "[")
    if isinstance(value, list):
        return value
    raise error_type("Could not locate a JSON array in model response.")


def split_sections(text: str) -> dict[str, str]:
    """Return raw section bodies keyed by upper-case section title."""

    matches = list(_SECTION_HEADER_PATTERN.finditer(text))
    sections: dict[str, str] = {}
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        title = match.group(1).upper()
        if title not in sections:
            sections[title] = text[match.end() : end].strip()
    return sections


def parse_bullets(section: str) -> tuple[str, ...]:
    """Split a bulleted section into trimmed items, skipping bold sub-headings."""

    if not section.strip():
        return ()
    items = []
    for raw_item in _BULLET_SPLIT_PATTERN.split(f"\n{section.strip()}"):
        item = " ".join(raw_item.split())
        if not item or item.startswith("**") or item.lower() in {"none", "n/a", "none."}:
            continue
        items.append(item)
    return tuple(items)


def _clean_improved_text(section: str) -> str:
    """Strip fences and normalize page header spacing inside translated text."""

    cleaned = section.replace("```", "").strip()
    cleaned = PAGE_MARKER_PATTERN.sub(lambda match: f"\n\n{match.group(0)}\n\n", cleaned)
    return collapse_blank_lines(cleaned).strip()


def _parse_glossary_entries(section: str) -> tuple[GlossaryTerm, ...]:
    """Parse the glossary entry JSON array, ignoring malformed entries."""

    if not section.strip():
        return ()
    try:
        raw_entries = extract_json_array(section)
    except ParseError:
        return ()
    terms: list[GlossaryTerm] = []
    for raw_entry in raw_entries:
        if not isinstance(raw_entry, dict):
            continue
        try:
            term = GlossaryTerm.from_dict(raw_entry)
        except ValueError:
            continue
        terms.append(replace(term, auto_suggested=True, status=ReviewStatus.PENDING))
    return tuple(terms)


def parse_review_response(text: str) -> TranslationResult:
    """Parse a structured translate-and-review response into a `TranslationResult`.

    Raises:
        ParseError: When no translated text can be extracted.
    """

    sections = split_sections(text)
    improved = _clean_improved_text(sections.get("IMPROVED TEXT", ""))
    if not improved and text.strip().startswith("==="):
        improved = _clean_improved_text(text)
    if not improved:
        raise ParseError("No translation text extracted from model response.")

    chapter_memory = sections.get("CHAPTER MEMORY", "").strip()
    report = QualityReport(
        issues=parse_bullets(sections.get("ISSUES", "")),
        suggestions=parse_bullets(sections.get("SUGGESTIONS", "")),
        cultural_notes=parse_bullets(sections.get("CULTURAL NOTES", "")),
        glossary_suggestions=_parse_glossary_entries(sections.get("GLOSSARY ENTRIES", "")),
        chapter_memory=chapter_memory,
        chapter_summary=sections.get("CHAPTER SUMMARY", "").strip(),
    )
    return TranslationResult(text=improved, quality_report=report, chapter_memory=chapter_memory)
