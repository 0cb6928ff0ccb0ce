"""Chapter summarization interfaces and provider integrations.

Responsibilities:
- Define a protocol for chapter memory summarizers.
- Provide a Gemini-backed summarizer returning summary, tags, and key events.
"""

from __future__ import annotations

from typing import Protocol

from ..errors import ParseError
from ..models.datatypes import MemoryEntry
from .gemini_client import GeminiClient
from .key_pool import KeyRotationPool
from .prompts import PromptLibrary
from .response_parsing import extract_json_object


def _string_items(value: object) -> tuple[str, ...]:
    """Return non-empty string items from a JSON list value."""

    if not isinstance(value, list):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())


class Summarizer(Protocol):
    """Protocol for chapter summarizers."""

    def summarize(self, text: str, prior_summary: str | None) -> MemoryEntry:
        """Summarize translated chapter text into a memory entry."""


class GeminiSummarizer:
    """Gemini-backed chapter summarizer."""

    def __init__(
        self,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        model: str = "gemini-2.0-flash",
    ) -> None:
        """Initialize summarizer settings and Gemini client dependencies."""

        self.client = client
        self.key_pool = key_pool
        self.model = model
        self.prompts = PromptLibrary()

    def summarize(self, text: str, prior_summary: str | None) -> MemoryEntry:
        """Summarize one chapter.

        Raises:
            ParseError: When the response has no JSON object with a non-empty summary.
        """

        raw_text = self.client.generate_text(
            api_key=self.key_pool.get_next_key(),
            model=self.model,
            prompt=self.prompts.summary_prompt(text, prior_summary),
            temperature=0.2,
            max_output_tokens=1024,
        )
        payload = extract_json_object(raw_text)
        summary = payload.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise ParseError("Summary response is missing a non-empty `summary` field.")
        return MemoryEntry(
            summary=summary.strip(),
            tags=_string_items(payload.get("tags")),
            key_events=_string_items(payload.get("keyEvents", payload.get("key_events"))),
        )
