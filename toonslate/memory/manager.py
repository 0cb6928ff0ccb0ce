"""Chapter memory derivation and selection.

Responsibilities:
- Summarize translated chapters into rolling summaries and rich memory entries.
- Pick the memory entries most relevant to a new chapter.
- Render prior-memory context for translation prompts.

Memory is best-effort context: provider and parse failures fall back to the
prior summary or an unfiltered selection instead of failing the pipeline.
"""

from __future__ import annotations

from typing import Sequence

from ..errors import ConfigurationError, ParseError, ProviderError
from ..llm.glossary_assistant import MemoryFilterProvider
from ..llm.response_parsing import extract_json_object
from ..llm.summarizer import Summarizer
from ..models.datatypes import MemoryEntry
from ..telemetry.logger import RunLogger

DEFAULT_MAX_MEMORY_ENTRIES = 5

_RECOVERABLE_ERRORS = (ProviderError, ParseError, ConfigurationError)


class ChapterMemoryManager:
    """Derive and select chapter memory with graceful fallbacks."""

    def __init__(
        self,
        summarizer: Summarizer | None = None,
        memory_filter: MemoryFilterProvider | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        """Initialize summarizer and memory filter dependencies."""

        self.summarizer = summarizer
        self.memory_filter = memory_filter
        self.logger = logger

    def derive_summary(self, translated_text: str, prior_summary: str | None = None) -> str:
        """Return a short rolling summary, or the prior summary on failure."""

        entry = self._summarize(translated_text, prior_summary)
        if entry is None:
            return prior_summary or ""
        return entry.summary

    def derive_enhanced_entry(
        self,
        translated_text: str,
        prior_summary: str | None = None,
    ) -> MemoryEntry:
        """Return summary, tags, and key events; tags and events are empty on failure."""

        entry = self._summarize(translated_text, prior_summary)
        if entry is None:
            return MemoryEntry(summary=prior_summary or "")
        return entry

    def select_relevant(
        self,
        chapter_text: str,
        memories: Sequence[MemoryEntry],
        max_entries: int = DEFAULT_MAX_MEMORY_ENTRIES,
    ) -> list[MemoryEntry]:
        """Return at most `max_entries` memories chosen by the filter assistant.

        Falls back to the first `max_entries` entries when the filter is not
        configured, fails, or selects nothing.
        """

        if max_entries <= 0:
            return []
        fallback = list(memories[:max_entries])
        if len(memories) <= max_entries or self.memory_filter is None:
            return fallback

        try:
            raw_text = self.memory_filter.filter_memories(chapter_text, memories, max_entries)
            payload = extract_json_object(raw_text)
        except _RECOVERABLE_ERRORS as exc:
            self._warn("memory_filter_fallback", error_type=type(exc).__name__)
            return fallback

        selected_ids = payload.get("relevantMemoryIds")
        if not isinstance(selected_ids, list):
            self._warn("memory_filter_fallback", error_type="MissingIds")
            return fallback
        by_id = {entry.entry_id: entry for entry in memories if entry.entry_id}
        selected: list[MemoryEntry] = []
        for raw_id in selected_ids:
            entry = by_id.get(str(raw_id))
            if entry is not None and entry not in selected:
                selected.append(entry)
        if not selected:
            return fallback
        return selected[:max_entries]

    @staticmethod
    def build_prior_memory(previous_summary: str | None, memories: Sequence[MemoryEntry]) -> str:
        """Render the previous chapter summary and relevant memories as prompt context."""

        sections: list[str] = []
        if previous_summary:
            sections.append(f"Previous Chapter Summary: {previous_summary.strip()}")
        if memories:
            lines = []
            for entry in memories:
                line = f"- {entry.summary}"
                if entry.key_events:
                    line += f" (Key events: {'; '.join(entry.key_events)})"
                lines.append(line)
            sections.append("Relevant Story Memory:\n" + "\n".join(lines))
        return "\n\n".join(sections)

    def _summarize(self, translated_text: str, prior_summary: str | None) -> MemoryEntry | None:
        """Run the summarizer, returning `None` on recoverable failure."""

        if self.summarizer is None or not translated_text.strip():
            return None
        try:
            return self.summarizer.summarize(translated_text, prior_summary)
        except _RECOVERABLE_ERRORS as exc:
            self._warn("summary_fallback", error_type=type(exc).__name__)
            return None

    def _warn(self, event: str, **context: object) -> None:
        """Emit a memory warning when a logger is configured."""

        if self.logger is not None:
            self.logger.log_warning("memory", event, **context)
