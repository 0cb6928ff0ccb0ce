"""Core datatypes shared across Toonslate modules.

Responsibilities:
- Represent immutable records exchanged between pipeline stages.
- Provide explicit typing and JSON-friendly serialization helpers.

Key types:
- `Page`, `ImageInput`, `ImageExtractionResult`, `ExtractionReport`,
  `GlossaryTerm`, `QualityReport`, `TranslationResult`, `TranslationRequest`,
  `SeriesMetadata`, `ChapterRecord`, and `MemoryEntry`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping

from ..parsing import normalize_optional_string


class EntityType(str, Enum):
    """Kind of entity a glossary term names."""

    PERSON = "Person"
    PLACE = "Place"
    TECHNIQUE = "Technique"
    ORGANIZATION = "Organization"
    ITEM = "Item"
    TERM = "Term"


class Gender(str, Enum):
    """Character gender used to keep pronouns consistent across chapters."""

    MALE = "Male"
    FEMALE = "Female"
    UNKNOWN = "Unknown"


class CharacterRole(str, Enum):
    """Narrative role of a character term."""

    PROTAGONIST = "Protagonist"
    ANTAGONIST = "Antagonist"
    SUPPORTING = "Supporting"
    MINOR = "Minor"
    MENTOR = "Mentor"
    FAMILY = "Family"
    OTHER = "Other"


class ReviewStatus(str, Enum):
    """Review lifecycle of a suggestion or glossary term."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _parse_enum(enum_type: type[Enum], value: object, default: Any) -> Any:
    """Parse an enum by value or name, case-insensitively, returning a default otherwise."""

    normalized = normalize_optional_string(value)
    if normalized is None:
        return default
    lowered = normalized.lower()
    for member in enum_type:
        if member.value.lower() == lowered or member.name.lower() == lowered:
            return member
    # Loose LLM labels such as "Person/Place" resolve to their first known token.
    for token in lowered.replace("/", " ").replace(",", " ").split():
        for member in enum_type:
            if member.value.lower() == token:
                return member
    return default


@dataclass(frozen=True, slots=True)
class Page:
    """One source image's extraction result.

    Attributes:
        page_number: Page position supplied by the uploader.
        extracted_text: OCR text for the page.
        overview: Optional short description of the page contents.
    """

    page_number: int
    extracted_text: str
    overview: str = ""


@dataclass(frozen=True, slots=True)
class ImageInput:
    """Page image bytes queued for OCR extraction."""

    page_number: int
    data: bytes
    mime_type: str = "image/png"
    file_name: str = ""


@dataclass(frozen=True, slots=True)
class ImageExtractionResult:
    """Per-image OCR outcome.

    Attributes:
        page_number: Page number of the source image.
        extracted_text: Cleaned OCR text, empty on failure.
        success: Whether OCR succeeded for the image.
        error: Failure message, when the image failed.
        error_kind: Failure classification (`rate_limit`, `transient`, `parse`,
            `provider`, `chunk`, `cancelled`).
        file_name: Source file name for diagnostics.
    """

    page_number: int
    extracted_text: str = ""
    success: bool = True
    error: str | None = None
    error_kind: str | None = None
    file_name: str = ""

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable representation."""

        return {
            "page_number": self.page_number,
            "extracted_text": self.extracted_text,
            "success": self.success,
            "error": self.error,
            "error_kind": self.error_kind,
            "file_name": self.file_name,
        }


@dataclass(frozen=True, slots=True)
class ExtractionReport:
    """Aggregate OCR outcome for a batch of images, sorted by page number."""

    results: tuple[ImageExtractionResult, ...]
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        """Return the number of successfully extracted images."""

        return sum(1 for result in self.results if result.success)

    @property
    def failure_count(self) -> int:
        """Return the number of failed images."""

        return sum(1 for result in self.results if not result.success)

    @property
    def rate_limited_pages(self) -> list[int]:
        """Return page numbers that failed because of rate limiting."""

        return [
            result.page_number
            for result in self.results
            if not result.success and result.error_kind == "rate_limit"
        ]

    def pages(self) -> list[Page]:
        """Return successful results as pages in report order."""

        return [
            Page(page_number=result.page_number, extracted_text=result.extracted_text)
            for result in self.results
            if result.success
        ]

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable representation."""

        return {
            "results": [result.to_dict() for result in self.results],
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True, slots=True)
class GlossaryTerm:
    """A source-language term mapped to its approved translation and metadata.

    Attributes:
        source_term: Term in source language, unique per series.
        translated_term: Target-language rendering (or preserved honorific).
        entity_type: Kind of entity the term names.
        gender: Optional character gender.
        role: Optional character role.
        notes: Free-form usage notes.
        auto_suggested: Whether the term was proposed automatically.
        term_type: Display category such as `Honorific - Korean`.
        language: Detected source language, when known.
        source_context: Leading excerpt of the text the term was found in.
        status: Review lifecycle status.
    """

    source_term: str
    translated_term: str
    entity_type: EntityType = EntityType.TERM
    gender: Gender | None = None
    role: CharacterRole | None = None
    notes: str = ""
    auto_suggested: bool = False
    term_type: str = "Other"
    language: str | None = None
    source_context: str = ""
    status: ReviewStatus = ReviewStatus.PENDING

    def with_status(self, status: ReviewStatus) -> GlossaryTerm:
        """Return a copy of this term with a different review status."""

        return replace(self, status=status)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable representation."""

        return {
            "source_term": self.source_term,
            "translated_term": self.translated_term,
            "entity_type": self.entity_type.value,
            "gender": self.gender.value if self.gender is not None else None,
            "role": self.role.value if self.role is not None else None,
            "notes": self.notes,
            "auto_suggested": self.auto_suggested,
            "term_type": self.term_type,
            "language": self.language,
            "source_context": self.source_context,
            "status": self.status.value,
        }

    def to_context_entry(self) -> dict[str, str]:
        """Return the compact mapping used inside translation prompts."""

        entry = {"translation": self.translated_term}
        if self.gender is not None:
            entry["gender"] = self.gender.value
        if self.role is not None:
            entry["role"] = self.role.value
        if self.notes:
            entry["notes"] = self.notes
        return entry

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> GlossaryTerm:
        """Build a term from stored or LLM-provided mappings with loose field names."""

        source_term = normalize_optional_string(
            payload.get("source_term", payload.get("sourceTerm"))
        )
        if source_term is None:
            raise ValueError("Glossary term requires a non-empty `source_term`.")
        translated_term = (
            normalize_optional_string(
                payload.get("translated_term", payload.get("translatedTerm"))
            )
            or ""
        )
        return cls(
            source_term=source_term,
            translated_term=translated_term,
            entity_type=_parse_enum(
                EntityType, payload.get("entity_type", payload.get("entityType")), EntityType.TERM
            ),
            gender=_parse_enum(Gender, payload.get("gender"), None),
            role=_parse_enum(
                CharacterRole,
                payload.get("role", payload.get("characterRole")),
                None,
            ),
            notes=normalize_optional_string(payload.get("notes")) or "",
            auto_suggested=bool(payload.get("auto_suggested", payload.get("autoSuggested", False))),
            term_type=normalize_optional_string(
                payload.get("term_type", payload.get("termType"))
            )
            or "Other",
            language=normalize_optional_string(payload.get("language")),
            source_context=normalize_optional_string(payload.get("source_context")) or "",
            status=_parse_enum(ReviewStatus, payload.get("status"), ReviewStatus.PENDING),
        )


@dataclass(frozen=True, slots=True)
class QualityReport:
    """Review payload produced alongside a translation."""

    issues: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    cultural_notes: tuple[str, ...] = ()
    glossary_suggestions: tuple[GlossaryTerm, ...] = ()
    chapter_memory: str = ""
    chapter_summary: str = ""


@dataclass(frozen=True, slots=True)
class TranslationResult:
    """Translated chapter text plus its quality report."""

    text: str
    quality_report: QualityReport = field(default_factory=QualityReport)
    chapter_memory: str = ""


@dataclass(frozen=True, slots=True)
class SeriesMetadata:
    """Series-level context injected into translation prompts."""

    series_id: str
    title: str = ""
    genres: tuple[str, ...] = ()
    tone_notes: str = ""
    description: str = ""
    source_language: str = "Korean"

    @classmethod
    def from_dict(cls, series_id: str, payload: Mapping[str, Any]) -> SeriesMetadata:
        """Build metadata from a stored mapping, tolerating missing keys."""

        raw_genres = payload.get("genres") or ()
        if isinstance(raw_genres, str):
            raw_genres = raw_genres.split(",")
        genres = tuple(
            genre for genre in (normalize_optional_string(item) for item in raw_genres) if genre
        )
        return cls(
            series_id=series_id,
            title=normalize_optional_string(payload.get("title")) or "",
            genres=genres,
            tone_notes=normalize_optional_string(payload.get("tone_notes")) or "",
            description=normalize_optional_string(payload.get("description")) or "",
            source_language=normalize_optional_string(payload.get("source_language")) or "Korean",
        )


@dataclass(frozen=True, slots=True)
class TranslationRequest:
    """Assembled input for one translate-and-review provider call.

    Attributes:
        combined_text: Page-delimited source document.
        glossary: Mapping of source term to compact glossary entry.
        series: Series metadata for tone and genre guidance.
        prior_memory: Rendered memory context from earlier chapters.
        source_language: Source language name.
        target_language: Target language name.
        chapter_label: Human-readable chapter identifier for prompts.
        authoritative_glossary: Whether glossary entries must be applied verbatim.
        approved_suggestions: Reviewer-approved suggestions to incorporate.
    """

    combined_text: str
    glossary: Mapping[str, Mapping[str, str]]
    series: SeriesMetadata
    prior_memory: str = ""
    source_language: str = "Korean"
    target_language: str = "English"
    chapter_label: str = ""
    authoritative_glossary: bool = False
    approved_suggestions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class MemoryEntry:
    """Rich chapter memory log entry."""

    summary: str
    tags: tuple[str, ...] = ()
    key_events: tuple[str, ...] = ()
    entry_id: str = ""
    chapter_id: str = ""

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serializable representation."""

        return {
            "entry_id": self.entry_id,
            "chapter_id": self.chapter_id,
            "summary": self.summary,
            "tags": list(self.tags),
            "key_events": list(self.key_events),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> MemoryEntry:
        """Build an entry from a stored mapping."""

        return cls(
            summary=str(payload.get("summary", "")),
            tags=tuple(str(tag) for tag in payload.get("tags", ()) or ()),
            key_events=tuple(
                str(event) for event in payload.get("key_events", payload.get("keyEvents", ())) or ()
            ),
            entry_id=str(payload.get("entry_id", "")),
            chapter_id=str(payload.get("chapter_id", "")),
        )


@dataclass(frozen=True, slots=True)
class ChapterRecord:
    """Persisted chapter state.

    Attributes:
        chapter_id: Chapter identifier.
        series_id: Owning series identifier.
        chapter_number: Sort key within the series.
        extracted_text: Combined source document.
        translated_text: Final translated document.
        memory_summary: Rolling narrative summary for the chapter.
        history: Earlier translated texts with timestamps, oldest first.
    """

    chapter_id: str
    series_id: str = ""
    chapter_number: float = 0.0
    extracted_text: str = ""
    translated_text: str = ""
    memory_summary: str = ""
    history: tuple[Mapping[str, str], ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ChapterRecord:
        """Build a record from a stored mapping."""

        raw_number = payload.get("chapter_number", 0)
        try:
            chapter_number = float(raw_number)
        except (TypeError, ValueError):
            chapter_number = 0.0
        return cls(
            chapter_id=str(payload.get("chapter_id", "")),
            series_id=str(payload.get("series_id", "")),
            chapter_number=chapter_number,
            extracted_text=str(payload.get("extracted_text", "") or ""),
            translated_text=str(payload.get("translated_text", "") or ""),
            memory_summary=str(payload.get("memory_summary", "") or ""),
            history=tuple(dict(item) for item in payload.get("history", ()) or ()),
        )
