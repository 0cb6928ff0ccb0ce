"""Unit tests for free-text LLM response parsing helpers."""

from __future__ import annotations

import pytest

from toonslate.errors import ParseError, SuggestionParseError
from toonslate.llm.response_parsing import (
    extract_json_array,
    extract_json_object,
    parse_bullets,
    parse_review_response,
    split_sections,
)
from toonslate.models.datatypes import EntityType, Gender, ReviewStatus

_REVIEW_RESPONSE = """1. **IMPROVED TEXT:**
=== Page 1 ===
"": Hello there.
=== End Page 1 ===

2. **ISSUES:**
- Awkward phrasing on page 1
- Missing honorific

3. **SUGGESTIONS:**
None

4. **CULTURAL NOTES:**
- Oppa is kept as an honorific

5. **GLOSSARY ENTRIES:**
```json
[
  {"sourceTerm": "김철수", "translatedTerm": "Kim Cheolsu", "entityType": "Person", "gender": "male"},
  "not an entry",
  {"translatedTerm": "orphan"}
]
```

6. **CHAPTER MEMORY:**
Cheolsu meets Younghee at the academy.

7. **CHAPTER SUMMARY:**
A first meeting.
"""


def test_extract_json_object_handles_prose_and_fences() -> None:
    """Objects are located inside surrounding prose or fenced blocks."""

    assert extract_json_object('Sure! Here it is: {"a": 1} Hope that helps.') == {"a": 1}
    assert extract_json_object('```json\n{"x": [1, 2]}\n```') == {"x": [1, 2]}
    assert extract_json_object('{"a": 1} and later {"b": 2}') == {"a": 1}


def test_extract_json_object_raises_configured_error_type() -> None:
    """Missing objects raise `ParseError` or the caller-selected subclass."""

    with pytest.raises(ParseError):
        extract_json_object("no structured data here")
    with pytest.raises(SuggestionParseError):
        extract_json_object("[1, 2, 3]", error_type=SuggestionParseError)


def test_extract_json_array_finds_first_array() -> None:
    """Arrays are decoded from free text."""

    assert extract_json_array('Entries: [{"sourceTerm": "a"}] done') == [{"sourceTerm": "a"}]
    with pytest.raises(ParseError):
        extract_json_array('{"not": "an array"}')


def test_split_sections_keeps_first_occurrence_per_title() -> None:
    """Repeated section titles keep the first body."""

    sections = split_sections("**ISSUES:**\nfirst\n**ISSUES:**\nsecond\n**CHAPTER SUMMARY:** done")

    assert sections["ISSUES"] == "first"
    assert sections["CHAPTER SUMMARY"] == "done"


def test_parse_bullets_skips_placeholders_and_subheadings() -> None:
    """Bullet parsing ignores `None` placeholders and bold sub-headings."""

    assert parse_bullets("- one\n* two\n1. three") == ("one", "two", "three")
    assert parse_bullets("None") == ()
    assert parse_bullets("- **Heading**\n- real item") == ("real item",)
    assert parse_bullets("   ") == ()


def test_parse_review_response_extracts_every_section() -> None:
    """A well-formed response yields text, quality report, and memory."""

    result = parse_review_response(_REVIEW_RESPONSE)

    assert result.text.startswith("=== Page 1 ===\n\n")
    assert '"": Hello there.' in result.text
    assert result.text.endswith("=== End Page 1 ===")
    report = result.quality_report
    assert report.issues == ("Awkward phrasing on page 1", "Missing honorific")
    assert report.suggestions == ()
    assert report.cultural_notes == ("Oppa is kept as an honorific",)
    assert report.chapter_summary == "A first meeting."
    assert result.chapter_memory == "Cheolsu meets Younghee at the academy."
    assert report.chapter_memory == result.chapter_memory


def test_parse_review_response_keeps_only_valid_glossary_entries() -> None:
    """Malformed glossary entries are dropped and kept ones await review."""

    terms = parse_review_response(_REVIEW_RESPONSE).quality_report.glossary_suggestions

    assert len(terms) == 1
    term = terms[0]
    assert term.source_term == "김철수"
    assert term.translated_term == "Kim Cheolsu"
    assert term.entity_type is EntityType.PERSON
    assert term.gender is Gender.MALE
    assert term.auto_suggested is True
    assert term.status is ReviewStatus.PENDING


def test_parse_review_response_accepts_bare_page_document() -> None:
    """A response that is only a delimited document is used as the translation."""

    result = parse_review_response("=== Page 1 ===\nHi\n=== End Page 1 ===")

    assert result.text.startswith("=== Page 1 ===")
    assert "Hi" in result.text
    assert result.quality_report.issues == ()


def test_parse_review_response_without_text_raises() -> None:
    """Responses without translated text are a parse failure."""

    with pytest.raises(ParseError):
        parse_review_response("**ISSUES:**\n- none found")
