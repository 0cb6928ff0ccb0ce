"""Unit tests for the Gemini HTTP client and its failure classification."""

from __future__ import annotations

import json
from typing import Any

import pytest

from toonslate.errors import ParseError, ProviderError, RateLimitError, TransientProviderError
from toonslate.llm import gemini_client as gemini_http
from toonslate.llm.gemini_client import GeminiClient


class _MockRequestsResponse:
    """Minimal requests response mock for HTTP transport patching."""

    def __init__(self, *, payload: bytes, status_code: int = 200) -> None:
        """Initialize response with raw payload bytes and HTTP status."""

        self.content = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        """Raise HTTPError when the response status represents a failure."""

        if self.status_code >= 400:
            raise gemini_http.requests.HTTPError(
                f"HTTP {self.status_code} error",
                response=self,  # type: ignore[arg-type]
            )


def _candidate_payload(*texts: str) -> bytes:
    """Build a successful `generateContent` response body."""

    return json.dumps(
        {"candidates": [{"content": {"parts": [{"text": text} for text in texts]}}]}
    ).encode("utf-8")


def _error_payload(status: str, message: str) -> bytes:
    """Build a Gemini error response body."""

    return json.dumps({"error": {"status": status, "message": message}}).encode("utf-8")


def test_generate_text_sends_expected_request(monkeypatch: pytest.MonkeyPatch) -> None:
    """Client should post text and inline image parts with the key header."""

    captured: dict[str, Any] = {}

    def _mock_post(url: str, **kwargs: Any) -> _MockRequestsResponse:
        captured["url"] = url
        captured.update(kwargs)
        return _MockRequestsResponse(payload=_candidate_payload("Hello ", "world"))

    monkeypatch.setattr("toonslate.llm.gemini_client.requests.post", _mock_post)

    client = GeminiClient(timeout_seconds=12.0)
    text = client.generate_text(
        api_key=" secret-key ",
        model="gemini-2.0-flash",
        prompt="Extract text",
        images=[(b"\x89PNG", "image/png")],
        temperature=0.2,
        max_output_tokens=64,
    )

    assert text == "Hello world"
    assert captured["url"] == (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    )
    assert captured["headers"]["x-goog-api-key"] == "secret-key"
    assert captured["timeout"] == 12.0
    parts = captured["json"]["contents"][0]["parts"]
    assert parts[0] == {"text": "Extract text"}
    assert parts[1]["inlineData"] == {"data": "iVBORw==", "mimeType": "image/png"}
    assert captured["json"]["generationConfig"] == {
        "temperature": 0.2,
        "topK": 40,
        "topP": 0.95,
        "maxOutputTokens": 64,
    }


def test_generate_text_requires_api_key() -> None:
    """A blank credential is rejected before any request is sent."""

    client = GeminiClient()

    with pytest.raises(ProviderError) as exc_info:
        client.generate_text(api_key="  ", model="m", prompt="p")

    assert exc_info.value.failure_kind == "invalid_api_key"


@pytest.mark.parametrize(
    ("status_code", "body", "error_type", "failure_kind"),
    [
        (429, _error_payload("RESOURCE_EXHAUSTED", "Quota exceeded"), RateLimitError, "rate_limit"),
        (403, _error_payload("PERMISSION_DENIED", "Forbidden"), ProviderError, "invalid_api_key"),
        (400, _error_payload("INVALID_ARGUMENT", "API key not valid"), ProviderError, "invalid_api_key"),
        (404, _error_payload("NOT_FOUND", "models/x is not found"), ProviderError, "invalid_model"),
        (503, _error_payload("UNAVAILABLE", "Overloaded"), TransientProviderError, "server_error"),
        (504, b"gateway timeout", TransientProviderError, "timeout"),
        (400, _error_payload("INVALID_ARGUMENT", "Bad request"), ProviderError, "http_error"),
    ],
)
def test_http_errors_are_classified(
    monkeypatch: pytest.MonkeyPatch,
    status_code: int,
    body: bytes,
    error_type: type[ProviderError],
    failure_kind: str,
) -> None:
    """HTTP failures map onto the provider error taxonomy."""

    monkeypatch.setattr(
        "toonslate.llm.gemini_client.requests.post",
        lambda _url, **_kwargs: _MockRequestsResponse(payload=body, status_code=status_code),
    )

    with pytest.raises(error_type) as exc_info:
        GeminiClient().generate_text(api_key="k", model="m", prompt="p")

    assert exc_info.value.failure_kind == failure_kind
    assert exc_info.value.status_code == status_code


def test_non_transient_errors_are_not_transient(monkeypatch: pytest.MonkeyPatch) -> None:
    """Authentication failures must not be retried as transient errors."""

    monkeypatch.setattr(
        "toonslate.llm.gemini_client.requests.post",
        lambda _url, **_kwargs: _MockRequestsResponse(
            payload=_error_payload("UNAUTHENTICATED", "bad"), status_code=401
        ),
    )

    with pytest.raises(ProviderError) as exc_info:
        GeminiClient().generate_text(api_key="k", model="m", prompt="p")

    assert not isinstance(exc_info.value, TransientProviderError)


def test_transport_and_timeout_failures_are_transient(monkeypatch: pytest.MonkeyPatch) -> None:
    """Network-layer failures classify as transient transport or timeout errors."""

    def _raise_connection(_url: str, **_kwargs: Any) -> _MockRequestsResponse:
        raise gemini_http.requests.ConnectionError("network down")

    def _raise_timeout(_url: str, **_kwargs: Any) -> _MockRequestsResponse:
        raise gemini_http.requests.Timeout("read timed out")

    monkeypatch.setattr("toonslate.llm.gemini_client.requests.post", _raise_connection)
    with pytest.raises(TransientProviderError, match="transport error") as transport_info:
        GeminiClient().generate_text(api_key="k", model="m", prompt="p")
    assert transport_info.value.failure_kind == "transport"

    monkeypatch.setattr("toonslate.llm.gemini_client.requests.post", _raise_timeout)
    with pytest.raises(TransientProviderError, match="timed out") as timeout_info:
        GeminiClient().generate_text(api_key="k", model="m", prompt="p")
    assert timeout_info.value.failure_kind == "timeout"


def test_error_messages_redact_keys_and_are_capped(monkeypatch: pytest.MonkeyPatch) -> None:
    """Provider messages never echo API-key-like tokens and stay short."""

    leaked = "AIzaSyA1234567890abcdefghij"
    message = f"Key {leaked} rejected. " + "x" * 400
    monkeypatch.setattr(
        "toonslate.llm.gemini_client.requests.post",
        lambda _url, **_kwargs: _MockRequestsResponse(
            payload=_error_payload("INVALID_ARGUMENT", message), status_code=400
        ),
    )

    with pytest.raises(ProviderError) as exc_info:
        GeminiClient().generate_text(api_key="k", model="m", prompt="p")

    text = str(exc_info.value)
    assert leaked not in text
    assert "[redacted-key]" in text
    assert text.endswith("...")


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        json.dumps({"candidates": []}).encode("utf-8"),
        json.dumps({"candidates": [{"content": {}}]}).encode("utf-8"),
        _candidate_payload("   "),
    ],
)
def test_malformed_success_payloads_raise_parse_error(
    monkeypatch: pytest.MonkeyPatch, payload: bytes
) -> None:
    """Unusable success bodies raise `ParseError` so callers can retry."""

    monkeypatch.setattr(
        "toonslate.llm.gemini_client.requests.post",
        lambda _url, **_kwargs: _MockRequestsResponse(payload=payload),
    )

    with pytest.raises(ParseError):
        GeminiClient().generate_text(api_key="k", model="m", prompt="p")


def test_blocked_prompt_reports_block_reason(monkeypatch: pytest.MonkeyPatch) -> None:
    """Safety-blocked prompts surface the block reason."""

    payload = json.dumps({"promptFeedback": {"blockReason": "SAFETY"}}).encode("utf-8")
    monkeypatch.setattr(
        "toonslate.llm.gemini_client.requests.post",
        lambda _url, **_kwargs: _MockRequestsResponse(payload=payload),
    )

    with pytest.raises(ParseError, match="SAFETY"):
        GeminiClient().generate_text(api_key="k", model="m", prompt="p")
