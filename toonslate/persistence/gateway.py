"""Persistence gateway for finalized translation results.

Responsibilities:
- Write chapter results with a hard-failing primary write and best-effort memory write.
- Upsert approved glossary terms and refresh the derived glossary view.
- Broadcast glossary changes without letting notifier failures surface.
"""

from __future__ import annotations

from dataclasses import replace

from ..errors import PersistenceError
from ..models.datatypes import ChapterRecord, GlossaryTerm, MemoryEntry
from ..telemetry.logger import RunLogger
from .stores import ChangeNotifier, ChapterStore, GlossaryStore, MemoryStore

GLOSSARY_CHANGED_TOPIC = "glossary-changed"


class PersistenceGateway:
    """Single write path from the pipeline into the configured stores."""

    def __init__(
        self,
        chapters: ChapterStore,
        glossary: GlossaryStore,
        notifier: ChangeNotifier,
        memory: MemoryStore | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        """Initialize store dependencies."""

        self.chapters = chapters
        self.glossary = glossary
        self.notifier = notifier
        self.memory = memory
        self.logger = logger

    def save_chapter_result(
        self,
        chapter_id: str,
        extracted_text: str,
        translated_text: str,
        memory: str,
        *,
        series_id: str = "",
    ) -> bool:
        """Persist the final chapter texts, then the chapter memory summary.

        Returns:
            Whether the memory summary was also written.

        Raises:
            PersistenceError: If the primary text write fails.
        """

        try:
            existing = self.chapters.get(chapter_id)
            base = existing if existing is not None else ChapterRecord(chapter_id=chapter_id)
            record = replace(
                base,
                series_id=series_id or base.series_id,
                extracted_text=extracted_text,
                translated_text=translated_text,
            )
            self.chapters.save(record)
        except Exception as exc:
            self._warn("write_failed", target="chapter", error_type=type(exc).__name__)
            raise PersistenceError(
                f"Failed to save translated text for chapter `{chapter_id}`: {exc}"
            ) from exc

        if not memory:
            return True
        try:
            self.chapters.save(replace(record, memory_summary=memory))
        except Exception as exc:  # noqa: BLE001 - memory is a secondary write.
            self._warn("write_failed", target="chapter_memory", error_type=type(exc).__name__)
            return False
        return True

    def save_glossary_terms(self, series_id: str, terms: list[GlossaryTerm]) -> bool:
        """Insert terms and refresh the derived view; return False on any store failure."""

        if not terms:
            return True
        try:
            for term in terms:
                self.glossary.insert(series_id, term)
            self.glossary.refresh_derived_view(series_id)
        except Exception as exc:  # noqa: BLE001 - glossary writes are best-effort.
            self._warn("write_failed", target="glossary", error_type=type(exc).__name__)
            return False
        if self.logger is not None:
            self.logger.log_event("persist", "glossary_saved", series=series_id, terms=len(terms))
        return True

    def save_memory_entry(self, series_id: str, entry: MemoryEntry) -> bool:
        """Append a memory entry; return False when no store is configured or it fails."""

        if self.memory is None:
            return False
        try:
            self.memory.append(series_id, entry)
        except Exception as exc:  # noqa: BLE001 - memory log is best-effort.
            self._warn("write_failed", target="memory_entry", error_type=type(exc).__name__)
            return False
        return True

    def broadcast_glossary_changed(self, series_id: str) -> None:
        """Publish a glossary change for other sessions; failures are logged only."""

        try:
            self.notifier.publish(GLOSSARY_CHANGED_TOPIC, {"series_id": series_id})
        except Exception as exc:  # noqa: BLE001 - notification is fire-and-forget.
            self._warn("broadcast_failed", series=series_id, error_type=type(exc).__name__)

    def _warn(self, event: str, **context: object) -> None:
        """Emit a persistence warning when a logger is configured."""

        if self.logger is not None:
            self.logger.log_warning("persist", event, **context)
