"""Translation pipeline orchestration for one chapter.

Responsibilities:
- Drive the chapter state machine from extraction through review to completion.
- Assemble translation requests from glossary, series metadata, and prior memory.
- Gate finalization on resolved review items and regenerate when approved
  glossary terms were edited.
- Hand final text, memory, and approved glossary terms to the persistence gateway.

Key types:
- `PipelineState`: chapter lifecycle states.
- `FinalizedChapter`: immutable record of a completed chapter.
- `TranslationOrchestrator`: state machine facade.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import re
import threading
from typing import Sequence

from ..errors import (
    ConfigurationError,
    PendingReviewError,
    PersistenceError,
    TranslationCancelledError,
    TranslationFailedError,
    ValidationError,
)
from ..glossary.resolver import GlossaryResolver, enforce_honorific_policy
from ..llm.translator import TranslationReviewProvider
from ..memory.manager import DEFAULT_MAX_MEMORY_ENTRIES, ChapterMemoryManager
from ..models.datatypes import (
    ExtractionReport,
    GlossaryTerm,
    ImageExtractionResult,
    ImageInput,
    MemoryEntry,
    Page,
    SeriesMetadata,
    TranslationRequest,
    TranslationResult,
)
from ..ocr.extractor import BatchImageExtractor, ExtractionMode, ProgressCallback
from ..persistence.gateway import PersistenceGateway
from ..persistence.stores import ChapterStore, MemoryStore, SeriesStore
from ..review.session import GlossaryReviewItem, ReviewSession
from ..telemetry.logger import RunLogger
from ..text.pages import format_pages, normalize_document
from .retry import AttemptCallback, RetryPolicy

_QUOTE = "[\"“”]"
_SUGGESTION_PATTERNS = (
    re.compile(rf"replace\s+{_QUOTE}(.+?){_QUOTE}\s+with\s+{_QUOTE}(.+?){_QUOTE}", re.IGNORECASE),
    re.compile(rf"change\s+{_QUOTE}(.+?){_QUOTE}\s+to\s+{_QUOTE}(.+?){_QUOTE}", re.IGNORECASE),
    re.compile(rf"{_QUOTE}(.+?){_QUOTE}\s*(?:→|->)\s*{_QUOTE}(.+?){_QUOTE}"),
)


class PipelineState(str, Enum):
    """Lifecycle state of one chapter translation."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    TRANSLATING = "translating"
    AWAITING_REVIEW = "awaiting_review"
    REGENERATING = "regenerating"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class FinalizedChapter:
    """Outcome of a completed chapter translation.

    Attributes:
        series_id: Owning series identifier.
        chapter_id: Chapter identifier.
        translated_text: Page-normalized final translation.
        memory: Chapter memory text stored with the chapter.
        glossary_terms: Approved glossary terms handed to persistence.
        regenerated: Whether the text came from an authoritative-glossary regeneration.
        memory_entry_saved: Whether the rich memory entry was written.
    """

    series_id: str
    chapter_id: str
    translated_text: str
    memory: str
    glossary_terms: tuple[GlossaryTerm, ...] = ()
    regenerated: bool = False
    memory_entry_saved: bool = False


def parse_suggestion_replacement(suggestion: str) -> tuple[str, str] | None:
    """Return the `(old, new)` pair of a replacement-style suggestion, if recognized."""

    for pattern in _SUGGESTION_PATTERNS:
        match = pattern.search(suggestion)
        if match is not None:
            return match.group(1), match.group(2)
    return None


def apply_suggestions(text: str, suggestions: Sequence[str]) -> tuple[str, int]:
    """Apply recognized replacement suggestions and return the text plus the applied count."""

    applied = 0
    for suggestion in suggestions:
        replacement = parse_suggestion_replacement(suggestion)
        if replacement is None:
            continue
        old, new = replacement
        if old and old in text:
            text = text.replace(old, new)
            applied += 1
    return text, applied


class TranslationOrchestrator:
    """Run one chapter through extraction, translation, review, and persistence."""

    def __init__(
        self,
        *,
        translator: TranslationReviewProvider,
        glossary: GlossaryResolver,
        memory: ChapterMemoryManager,
        gateway: PersistenceGateway,
        extractor: BatchImageExtractor | None = None,
        series_store: SeriesStore | None = None,
        chapter_store: ChapterStore | None = None,
        memory_store: MemoryStore | None = None,
        retry_policy: RetryPolicy | None = None,
        source_language: str | None = None,
        target_language: str = "English",
        max_memory_entries: int = DEFAULT_MAX_MEMORY_ENTRIES,
        suggest_glossary_terms: bool = False,
        attempt_callback: AttemptCallback | None = None,
        cancel_event: threading.Event | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        """Initialize pipeline collaborators and policy settings."""

        self.translator = translator
        self.glossary = glossary
        self.memory = memory
        self.gateway = gateway
        self.extractor = extractor
        self.series_store = series_store
        self.chapter_store = chapter_store
        self.memory_store = memory_store
        self.retry_policy = retry_policy if retry_policy is not None else RetryPolicy()
        self.source_language = source_language
        self.target_language = target_language
        self.max_memory_entries = max_memory_entries
        self.suggest_glossary_terms = suggest_glossary_terms
        self.attempt_callback = attempt_callback
        self.cancel_event = cancel_event
        self.logger = logger
        self._clear()

    def _clear(self) -> None:
        """Reset all per-chapter state."""

        self.state = PipelineState.IDLE
        self.extraction_report: ExtractionReport | None = None
        self.series_id = ""
        self.chapter_id = ""
        self.combined_text = ""
        self.result: TranslationResult | None = None
        self.superseded_result: TranslationResult | None = None
        self.review: ReviewSession | None = None
        self.final: FinalizedChapter | None = None
        self.last_error: Exception | None = None
        self._series: SeriesMetadata | None = None
        self._previous_summary: str | None = None
        self._prior_memory = ""

    @property
    def pages(self) -> list[Page]:
        """Return successfully extracted pages from the latest extraction."""

        if self.extraction_report is None:
            return []
        return self.extraction_report.pages()

    def reset(self) -> None:
        """Discard all chapter state and return to `IDLE`."""

        self._clear()

    def extract(
        self,
        images: Sequence[ImageInput],
        source_language: str | None = None,
        mode: ExtractionMode = ExtractionMode.BATCHED,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionReport:
        """Run OCR over page images; moves to `FAILED` when no image succeeds."""

        self._require_state("extract", PipelineState.IDLE)
        if self.extractor is None:
            raise ConfigurationError("No OCR extractor is configured for this pipeline.")
        if not images:
            raise ValidationError("At least one page image is required for extraction.")

        self.state = PipelineState.EXTRACTING
        try:
            report = self.extractor.extract(
                images,
                source_language or self.source_language or "Korean",
                mode=mode,
                progress_callback=progress_callback,
                cancel_event=cancel_event,
            )
        except ConfigurationError:
            self.state = PipelineState.IDLE
            raise
        self.extraction_report = report
        if report.success_count == 0 and not report.cancelled:
            self.state = PipelineState.FAILED
            if self.logger is not None:
                self.logger.log_stage_failure("extract", "AllImagesFailed", failed=report.failure_count)
        else:
            self.state = PipelineState.IDLE
        return report

    def retry_page(self, image: ImageInput, source_language: str | None = None) -> ImageExtractionResult:
        """Re-extract one image and replace its slot in the extraction report.

        Pages that were rate limited are retried on the least-used credential.
        """

        if self.extractor is None:
            raise ConfigurationError("No OCR extractor is configured for this pipeline.")
        if self.extraction_report is None:
            raise ValidationError("No extraction report exists; run `extract` first.")
        if self.state not in {PipelineState.IDLE, PipelineState.FAILED}:
            raise ValidationError(f"Cannot retry a page while in state `{self.state.value}`.")

        results = list(self.extraction_report.results)
        matches = [
            index
            for index, existing in enumerate(results)
            if existing.page_number == image.page_number
            and (not image.file_name or existing.file_name == image.file_name)
        ]
        if not matches:
            raise ValidationError(f"Page {image.page_number} is not part of the extraction report.")
        failed_matches = [index for index in matches if not results[index].success]
        target = (failed_matches or matches)[0]

        result = self.extractor.extract_single(
            image,
            source_language or self.source_language or "Korean",
            prefer_least_used=results[target].error_kind == "rate_limit",
        )
        results[target] = result
        self.extraction_report = replace(self.extraction_report, results=tuple(results))
        if self.state == PipelineState.FAILED and self.extraction_report.success_count > 0:
            self.state = PipelineState.IDLE
        return result

    def start(
        self,
        series_id: str,
        chapter_id: str,
        pages: Sequence[Page] | None = None,
        text: str | None = None,
    ) -> TranslationResult:
        """Translate a chapter and move to `AWAITING_REVIEW`.

        Raises:
            ValidationError: For empty identifiers or text; state is unchanged.
            TranslationFailedError: When retries are exhausted; state becomes `FAILED`.
            TranslationCancelledError: When cancelled mid-call; state reverts.
            ConfigurationError: When no credential is available; state reverts.
        """

        self._require_state("start", PipelineState.IDLE)
        if not series_id.strip() or not chapter_id.strip():
            raise ValidationError("Series and chapter identifiers must be non-empty.")
        if text is not None:
            combined = normalize_document(text)
        else:
            combined = format_pages(pages if pages is not None else self.pages)
        if not combined.strip():
            raise ValidationError("Chapter text is empty; extract pages or provide text first.")

        self.series_id = series_id.strip()
        self.chapter_id = chapter_id.strip()
        self.combined_text = combined
        self._prepare_context()
        return self._translate()

    def retry(self) -> TranslationResult:
        """Re-run translation from `FAILED` using the retained combined text."""

        self._require_state("retry", PipelineState.FAILED)
        if not self.combined_text or not self.series_id or not self.chapter_id:
            raise ValidationError("Nothing to retry; start a translation first.")
        if self._series is None:
            self._prepare_context()
        return self._translate()

    def finalize(self, custom_translation: str | None = None) -> FinalizedChapter:
        """Resolve the review, regenerate if needed, and persist the chapter.

        Raises:
            PendingReviewError: When review items are unresolved; nothing changes.
            TranslationFailedError: When regeneration fails; state becomes `FAILED`.
            PersistenceError: When the primary chapter write fails; state becomes `FAILED`.
        """

        self._require_state("finalize", PipelineState.AWAITING_REVIEW)
        if self.review is None or self.result is None:
            raise ValidationError("No translation result is awaiting review.")
        pending = self.review.pending_ids()
        if pending:
            raise PendingReviewError(pending)

        approved_items = self.review.approved_glossary_items()
        approved_suggestions = self.review.approved_suggestions()
        regenerated = self.review.has_glossary_modifications()

        if regenerated:
            final_text, memory_text = self._regenerate(approved_items, approved_suggestions)
        else:
            if custom_translation is not None:
                text = custom_translation
            else:
                text, applied = apply_suggestions(self.result.text, approved_suggestions)
                if self.logger is not None:
                    self.logger.log_event(
                        "review",
                        "suggestions_applied",
                        applied=applied,
                        approved=len(approved_suggestions),
                    )
            final_text = normalize_document(text)
            memory_text = self.review.memory_draft.strip()

        if not memory_text:
            memory_text = self.memory.derive_summary(final_text, self._previous_summary)

        if self.logger is not None:
            self.logger.log_stage_start("persist", chapter=self.chapter_id)
        try:
            self.gateway.save_chapter_result(
                self.chapter_id,
                self.combined_text,
                final_text,
                memory_text,
                series_id=self.series_id,
            )
        except PersistenceError as exc:
            self.state = PipelineState.FAILED
            self.last_error = exc
            if self.logger is not None:
                self.logger.log_stage_failure("persist", type(exc).__name__, chapter=self.chapter_id)
            raise

        committed = self.glossary.commit(self.series_id, approved_items)
        entry = self._memory_entry(final_text, memory_text)
        memory_saved = self.gateway.save_memory_entry(self.series_id, entry)

        self.final = FinalizedChapter(
            series_id=self.series_id,
            chapter_id=self.chapter_id,
            translated_text=final_text,
            memory=memory_text,
            glossary_terms=tuple(committed),
            regenerated=regenerated,
            memory_entry_saved=memory_saved,
        )
        self.state = PipelineState.COMPLETE
        if self.logger is not None:
            self.logger.log_stage_complete(
                "persist",
                chapter=self.chapter_id,
                glossary_terms=len(committed),
                regenerated=regenerated,
            )
        return self.final

    def _require_state(self, operation: str, *allowed: PipelineState) -> None:
        """Reject operations that are not valid in the current state."""

        if self.state not in allowed:
            expected = ", ".join(state.value for state in allowed)
            raise ValidationError(
                f"Cannot {operation} while in state `{self.state.value}` (expected {expected})."
            )

    def _prepare_context(self) -> None:
        """Load series metadata and render prior memory for the current chapter."""

        if self.series_store is not None:
            self._series = self.series_store.get(self.series_id)
        else:
            self._series = SeriesMetadata(series_id=self.series_id)
        self._previous_summary = self._find_previous_summary()
        memories: list[MemoryEntry] = []
        if self.memory_store is not None:
            memories = [
                entry
                for entry in self.memory_store.list_by_series_id(self.series_id)
                if entry.chapter_id != self.chapter_id
            ]
        relevant = self.memory.select_relevant(self.combined_text, memories, self.max_memory_entries)
        self._prior_memory = self.memory.build_prior_memory(self._previous_summary, relevant)

    def _find_previous_summary(self) -> str | None:
        """Return the memory summary of the chapter preceding the current one."""

        if self.chapter_store is None:
            return None
        chapters = self.chapter_store.list_by_series_id(self.series_id)
        ids = [record.chapter_id for record in chapters]
        if self.chapter_id in ids:
            candidates = chapters[: ids.index(self.chapter_id)]
        else:
            candidates = chapters
        for record in reversed(candidates):
            if record.memory_summary:
                return record.memory_summary
        return None

    def _build_request(
        self,
        glossary: dict[str, dict[str, str]],
        *,
        authoritative: bool = False,
        approved_suggestions: Sequence[str] = (),
    ) -> TranslationRequest:
        """Assemble the provider request for the current chapter."""

        series = self._series if self._series is not None else SeriesMetadata(self.series_id)
        return TranslationRequest(
            combined_text=self.combined_text,
            glossary=glossary,
            series=series,
            prior_memory=self._prior_memory,
            source_language=self.source_language or series.source_language,
            target_language=self.target_language,
            chapter_label=f"Chapter {self.chapter_id}",
            authoritative_glossary=authoritative,
            approved_suggestions=tuple(approved_suggestions),
        )

    def _call_provider(self, request: TranslationRequest, stage: str) -> TranslationResult:
        """Invoke the translator through the retry loop and honor cancellation."""

        pre_call_state = self.state
        self.state = PipelineState.REGENERATING if stage == "regenerate" else PipelineState.TRANSLATING
        if self.logger is not None:
            self.logger.log_stage_start(stage, chapter=self.chapter_id, series=self.series_id)
        try:
            result = self.retry_policy.run(
                lambda: self.translator.translate_and_review(request),
                stage=stage,
                attempt_callback=self.attempt_callback,
                logger=self.logger,
            )
        except TranslationFailedError as exc:
            self.state = PipelineState.FAILED
            self.last_error = exc
            if self.logger is not None:
                self.logger.log_stage_failure(
                    stage,
                    type(exc.last_error).__name__ if exc.last_error is not None else "Unknown",
                    attempts=exc.attempts,
                )
            raise
        except Exception as exc:
            self.state = pre_call_state
            self.last_error = exc
            if self.logger is not None:
                self.logger.log_stage_failure(stage, type(exc).__name__, chapter=self.chapter_id)
            raise
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.state = pre_call_state
            if self.logger is not None:
                self.logger.log_warning(stage, "cancelled", chapter=self.chapter_id)
            raise TranslationCancelledError(
                f"{stage.capitalize()} was cancelled; the provider result was discarded."
            )
        if self.logger is not None:
            self.logger.log_stage_complete(stage, chapter=self.chapter_id)
        return result

    def _translate(self) -> TranslationResult:
        """Translate the retained combined text and open a review session."""

        glossary_map = self.glossary.context_map(self.series_id)
        result = self._call_provider(self._build_request(glossary_map), "translate")

        known = {key.casefold() for key in glossary_map}
        glossary_terms = [
            enforce_honorific_policy(term)
            for term in result.quality_report.glossary_suggestions
            if term.source_term.casefold() not in known
        ]
        if self.suggest_glossary_terms:
            glossary_terms.extend(self._proposed_terms(glossary_map, glossary_terms))

        self.result = result
        self.superseded_result = None
        self.last_error = None
        self.review = ReviewSession(
            suggestions=result.quality_report.suggestions,
            glossary_terms=glossary_terms,
            memory_draft=result.chapter_memory or result.quality_report.chapter_memory,
        )
        self.state = PipelineState.AWAITING_REVIEW
        if self.logger is not None:
            self.logger.log_event(
                "review",
                "awaiting_review",
                suggestions=len(self.review.suggestions),
                glossary_items=len(self.review.glossary_items),
            )
        return result

    def _proposed_terms(
        self,
        glossary_map: dict[str, dict[str, str]],
        already_suggested: Sequence[GlossaryTerm],
    ) -> list[GlossaryTerm]:
        """Propose glossary terms for source candidates the translator did not cover."""

        covered = dict(glossary_map)
        covered.update({term.source_term: {} for term in already_suggested})
        candidates = self.glossary.detect_candidates(self.combined_text, covered)
        source_language = self._series.source_language if self._series is not None else None
        return self.glossary.propose_terms_with_fallback(
            candidates,
            covered,
            self.combined_text,
            self.source_language or source_language,
        )

    def _regenerate(
        self,
        approved_items: Sequence[GlossaryReviewItem],
        approved_suggestions: Sequence[str],
    ) -> tuple[str, str]:
        """Re-translate with the reviewed glossary as authoritative; return text and memory."""

        glossary_map = self.glossary.context_map(self.series_id)
        for item in approved_items:
            glossary_map[item.term.source_term] = item.term.to_context_entry()
        request = self._build_request(
            glossary_map,
            authoritative=True,
            approved_suggestions=approved_suggestions,
        )
        regenerated = self._call_provider(request, "regenerate")
        self.superseded_result = self.result
        self.result = regenerated
        memory_text = regenerated.chapter_memory or regenerated.quality_report.chapter_memory
        return normalize_document(regenerated.text), memory_text.strip()

    def _memory_entry(self, final_text: str, memory_text: str) -> MemoryEntry:
        """Derive the rich memory entry, falling back to the stored chapter memory."""

        entry = self.memory.derive_enhanced_entry(final_text, self._previous_summary)
        if not entry.tags and not entry.key_events and entry.summary == (self._previous_summary or ""):
            entry = MemoryEntry(summary=memory_text)
        return replace(entry, entry_id=self.chapter_id, chapter_id=self.chapter_id)
