"""OCR provider interfaces and Gemini vision integration.

Responsibilities:
- Define single-image and batched OCR provider protocols.
- Provide a Gemini-backed implementation that classifies bubble text with tag prefixes.
- Clean raw OCR responses into page text.
"""

from __future__ import annotations

import re
from typing import Protocol, Sequence, runtime_checkable

from ..errors import ParseError
from ..llm.gemini_client import GeminiClient
from ..llm.prompts import NO_TEXT_MARKER, PromptLibrary
from ..llm.response_parsing import extract_json_array
from ..models.datatypes import ImageInput
from ..text.pages import clean_page_headers

_LEADING_LABEL_PATTERN = re.compile(r"^\s*(?:Original Text|Translation):\s*", re.IGNORECASE)


def clean_ocr_text(raw_text: str) -> str:
    """Normalize one OCR response into page text.

    Leading `Original Text:` / `Translation:` labels are removed, the
    no-text marker maps to an empty page, and bracketed page headers are
    rewritten to canonical delimiters.
    """

    cleaned = _LEADING_LABEL_PATTERN.sub("", raw_text.strip())
    cleaned = _LEADING_LABEL_PATTERN.sub("", cleaned).strip()
    if cleaned == NO_TEXT_MARKER:
        return ""
    return clean_page_headers(cleaned.replace(NO_TEXT_MARKER, "")).strip()


class OCRProvider(Protocol):
    """Protocol for single-image OCR providers."""

    def extract_text(
        self,
        image_bytes: bytes,
        mime_type: str,
        source_language: str,
        credential: str,
    ) -> str:
        """Return cleaned text for one image."""


@runtime_checkable
class BatchOCRProvider(Protocol):
    """Protocol for providers that accept several images in one request."""

    def extract_batch(
        self,
        images: Sequence[ImageInput],
        source_language: str,
        credential: str,
    ) -> list[tuple[int, str]]:
        """Return `(index, text)` pairs keyed by each image's position in `images`."""


class GeminiOCRProvider:
    """Gemini vision OCR provider for manhwa, manhua, and manga pages."""

    def __init__(
        self,
        client: GeminiClient,
        model: str = "gemini-2.0-flash",
        max_output_tokens: int = 4096,
        prompts: PromptLibrary | None = None,
    ) -> None:
        """Initialize OCR provider settings and Gemini client dependency."""

        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.prompts = prompts if prompts is not None else PromptLibrary()

    def extract_text(
        self,
        image_bytes: bytes,
        mime_type: str,
        source_language: str,
        credential: str,
    ) -> str:
        """Run OCR for one image and return cleaned text."""

        raw_text = self.client.generate_text(
            api_key=credential,
            model=self.model,
            prompt=self.prompts.ocr_prompt(source_language),
            images=[(image_bytes, mime_type)],
            temperature=0.2,
            max_output_tokens=self.max_output_tokens,
        )
        return clean_ocr_text(raw_text)

    def extract_batch(
        self,
        images: Sequence[ImageInput],
        source_language: str,
        credential: str,
    ) -> list[tuple[int, str]]:
        """Run OCR for several images in one request.

        Raises:
            ParseError: When the response is not a JSON array with one entry per image.
        """

        raw_text = self.client.generate_text(
            api_key=credential,
            model=self.model,
            prompt=self.prompts.ocr_batch_prompt(source_language, len(images)),
            images=[(image.data, image.mime_type) for image in images],
            temperature=0.2,
            max_output_tokens=self.max_output_tokens * max(1, len(images)),
        )
        entries = extract_json_array(raw_text)
        results: dict[int, str] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                raise ParseError("Batch OCR response contains a non-object entry.")
            index = entry.get("index")
            text = entry.get("text")
            if not isinstance(index, int) or isinstance(index, bool) or not isinstance(text, str):
                raise ParseError("Batch OCR entry requires integer `index` and string `text`.")
            if not 0 <= index < len(images) or index in results:
                raise ParseError(f"Batch OCR response has unexpected index {index}.")
            results[index] = clean_ocr_text(text)
        if len(results) != len(images):
            raise ParseError(
                f"Batch OCR response covered {len(results)} of {len(images)} images."
            )
        return sorted(results.items())
