"""Assistant-model integrations for glossary suggestions and memory filtering.

Responsibilities:
- Define protocols for batched glossary suggestion and memory relevance filtering.
- Provide Gemini-backed implementations that return raw model text for callers to parse.
"""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from ..models.datatypes import MemoryEntry
from .gemini_client import GeminiClient
from .key_pool import KeyRotationPool
from .prompts import PromptLibrary


class GlossarySuggestionProvider(Protocol):
    """Protocol for batched glossary suggestion providers."""

    def suggest_terms(
        self,
        source_terms: Sequence[str],
        existing_glossary: Mapping[str, object],
        context: str,
    ) -> str:
        """Return raw model text expected to contain a `suggestedTerms` JSON object."""


class MemoryFilterProvider(Protocol):
    """Protocol for memory relevance filtering providers."""

    def filter_memories(
        self,
        chapter_text: str,
        memories: Sequence[MemoryEntry],
        max_entries: int,
    ) -> str:
        """Return raw model text expected to contain a `relevantMemoryIds` JSON object."""


class GeminiGlossaryAssistant:
    """Gemini-backed assistant for glossary suggestions and memory filtering."""

    def __init__(
        self,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        model: str = "gemini-2.0-flash",
    ) -> None:
        """Initialize assistant settings and Gemini client dependencies."""

        self.client = client
        self.key_pool = key_pool
        self.model = model
        self.prompts = PromptLibrary()

    def suggest_terms(
        self,
        source_terms: Sequence[str],
        existing_glossary: Mapping[str, object],
        context: str,
    ) -> str:
        """Request suggestions for all candidate terms in one call."""

        return self.client.generate_text(
            api_key=self.key_pool.get_next_key(),
            model=self.model,
            prompt=self.prompts.glossary_suggestion_prompt(source_terms, existing_glossary, context),
            temperature=0.2,
            max_output_tokens=2048,
        )

    def filter_memories(
        self,
        chapter_text: str,
        memories: Sequence[MemoryEntry],
        max_entries: int,
    ) -> str:
        """Request the identifiers of the most relevant memory entries."""

        return self.client.generate_text(
            api_key=self.key_pool.get_next_key(),
            model=self.model,
            prompt=self.prompts.memory_filter_prompt(chapter_text, memories, max_entries),
            temperature=0.0,
            max_output_tokens=256,
        )
