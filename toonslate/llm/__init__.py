"""LLM-facing abstractions for OCR, translation, and assistant steps.

This package defines the Gemini HTTP client, prompt library, provider
interfaces, credential rotation, and request pacing.
"""

from .gemini_client import GeminiClient
from .glossary_assistant import GeminiGlossaryAssistant, GlossarySuggestionProvider, MemoryFilterProvider
from .key_pool import KeyRotationPool
from .prompts import PromptLibrary
from .rate_limiter import RateLimiter
from .summarizer import GeminiSummarizer, Summarizer
from .translator import GeminiTranslationReviewer, TranslationReviewProvider

__all__ = [
    "GeminiClient",
    "GeminiGlossaryAssistant",
    "GeminiSummarizer",
    "GeminiTranslationReviewer",
    "GlossarySuggestionProvider",
    "KeyRotationPool",
    "MemoryFilterProvider",
    "PromptLibrary",
    "RateLimiter",
    "Summarizer",
    "TranslationReviewProvider",
]
