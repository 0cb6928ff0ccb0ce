"""Translation interfaces and provider integrations.

Responsibilities:
- Define a protocol for combined translate-and-review implementations.
- Provide a Gemini-backed implementation drawing one rotating credential per call.
"""

from __future__ import annotations

from typing import Protocol

from ..models.datatypes import TranslationRequest, TranslationResult
from .gemini_client import GeminiClient
from .key_pool import KeyRotationPool
from .prompts import PromptLibrary
from .response_parsing import parse_review_response


class TranslationReviewProvider(Protocol):
    """Protocol for translate-and-review providers."""

    def translate_and_review(self, request: TranslationRequest) -> TranslationResult:
        """Translate a combined document and return it with a quality report."""


class GeminiTranslationReviewer:
    """Gemini-backed translator that also produces the quality review payload."""

    def __init__(
        self,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        model: str = "gemini-2.0-flash",
        max_output_tokens: int = 8192,
    ) -> None:
        """Initialize translator settings and Gemini client dependencies."""

        self.client = client
        self.key_pool = key_pool
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.prompts = PromptLibrary()

    def translate_and_review(self, request: TranslationRequest) -> TranslationResult:
        """Translate and review one chapter; raises `ParseError` on unstructured output."""

        raw_text = self.client.generate_text(
            api_key=self.key_pool.get_next_key(),
            model=self.model,
            prompt=self.prompts.translate_and_review_prompt(request),
            temperature=0.3,
            max_output_tokens=self.max_output_tokens,
        )
        return parse_review_response(raw_text)
