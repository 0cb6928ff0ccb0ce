"""Unit tests for OCR response cleaning and the Gemini OCR provider."""

from __future__ import annotations

from typing import Any

import pytest

from toonslate.errors import ParseError
from toonslate.llm.prompts import NO_TEXT_MARKER
from toonslate.models.datatypes import ImageInput
from toonslate.ocr.provider import BatchOCRProvider, GeminiOCRProvider, clean_ocr_text


class _FakeGeminiClient:
    """Gemini client double returning a fixed response and recording calls."""

    def __init__(self, response: str) -> None:
        """Initialize with the response text to return."""

        self.response = response
        self.calls: list[dict[str, Any]] = []

    def generate_text(self, **kwargs: Any) -> str:
        """Record call arguments and return the configured response."""

        self.calls.append(kwargs)
        return self.response


def _image(index: int) -> ImageInput:
    """Build a small image input for batch tests."""

    return ImageInput(page_number=index + 1, data=f"img-{index}".encode("ascii"))


def test_clean_ocr_text_strips_labels_and_markers() -> None:
    """Leading labels are removed and no-text responses become empty pages."""

    assert clean_ocr_text("Original Text: Translation: \"\": 안녕") == '"": 안녕'
    assert clean_ocr_text(f"  {NO_TEXT_MARKER}  ") == ""
    assert clean_ocr_text("[=== Page 2 ===]\n[]: 다음 날") == "=== Page 2 ===\n[]: 다음 날"


def test_extract_text_sends_image_and_cleans_response() -> None:
    """Single-image OCR forwards the credential and inline image."""

    client = _FakeGeminiClient('Original Text: "": 오빠!')
    provider = GeminiOCRProvider(client, model="vision-model")  # type: ignore[arg-type]

    text = provider.extract_text(b"png-bytes", "image/png", "Korean", "key-1")

    assert text == '"": 오빠!'
    call = client.calls[0]
    assert call["api_key"] == "key-1"
    assert call["model"] == "vision-model"
    assert call["images"] == [(b"png-bytes", "image/png")]
    assert call["prompt"].startswith("You are an expert OCR assistant")
    assert "Korean" in call["prompt"]


def test_extract_batch_matches_entries_by_index() -> None:
    """Batch responses are keyed by image index regardless of entry order."""

    client = _FakeGeminiClient(
        f'[{{"index": 1, "text": "second"}}, {{"index": 0, "text": "{NO_TEXT_MARKER}"}}]'
    )
    provider = GeminiOCRProvider(client, max_output_tokens=100)  # type: ignore[arg-type]

    pairs = provider.extract_batch([_image(0), _image(1)], "Japanese", "key-2")

    assert pairs == [(0, ""), (1, "second")]
    assert isinstance(provider, BatchOCRProvider)
    assert len(client.calls[0]["images"]) == 2
    assert client.calls[0]["max_output_tokens"] == 200


@pytest.mark.parametrize(
    "response",
    [
        '[{"index": 0, "text": "only one"}]',
        '[{"index": 0, "text": "a"}, {"index": 0, "text": "b"}]',
        '[{"index": true, "text": "a"}, {"index": 1, "text": "b"}]',
        '[{"index": 0, "text": "a"}, {"index": 5, "text": "b"}]',
        '["a", "b"]',
        "I could not read these images.",
    ],
)
def test_extract_batch_rejects_incomplete_or_malformed_responses(response: str) -> None:
    """Batch responses must cover every image exactly once."""

    provider = GeminiOCRProvider(_FakeGeminiClient(response))  # type: ignore[arg-type]

    with pytest.raises(ParseError):
        provider.extract_batch([_image(0), _image(1)], "Korean", "key")
