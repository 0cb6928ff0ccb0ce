"""Gemini HTTP client utilities for OCR and text-generation stages.

Responsibilities:
- Send minimal `generateContent` requests (text plus optional inline images)
  to Google's Generative Language REST API.
- Normalize response extraction for deterministic stage integrations.
- Raise classified provider exceptions (`RateLimitError`,
  `TransientProviderError`, `ProviderError`, `ParseError`) for pipeline-level
  retry and error mapping.
"""

from __future__ import annotations

import base64
import json
import re
import socket
from typing import Any, Sequence

import requests

from ..errors import ParseError, ProviderError, RateLimitError, TransientProviderError
from .rate_limiter import RateLimiter

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiClient:
    """Minimal requests-based Gemini `generateContent` HTTP client."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize Gemini HTTP client settings."""

        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()

    def generate_text(
        self,
        *,
        api_key: str,
        model: str,
        prompt: str,
        images: Sequence[tuple[bytes, str]] = (),
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
    ) -> str:
        """Return the first candidate text for a prompt with optional inline images.

        Args:
            api_key: Credential drawn from the key rotation pool.
            model: Gemini model identifier.
            prompt: Text prompt part.
            images: Sequence of `(image_bytes, mime_type)` inline image parts.
            temperature: Sampling temperature.
            max_output_tokens: Output token cap.
        """

        normalized_key = self._require_api_key(api_key)
        parts: list[dict[str, Any]] = [{"text": prompt}]
        for image_bytes, mime_type in images:
            parts.append(
                {
                    "inlineData": {
                        "data": base64.b64encode(image_bytes).decode("ascii"),
                        "mimeType": mime_type,
                    }
                }
            )
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": max_output_tokens,
            },
        }
        self.rate_limiter.acquire(normalized_key)
        raw_payload = self._execute_json_post_bytes(
            endpoint_path=f"/models/{model}:generateContent",
            api_key=normalized_key,
            payload=payload,
        ).decode("utf-8", errors="replace")
        return self._extract_candidate_text(raw_payload)

    @staticmethod
    def _require_api_key(api_key: str | None) -> str:
        """Require API key presence before issuing Gemini requests."""

        normalized = api_key.strip() if isinstance(api_key, str) else ""
        if not normalized:
            raise ProviderError(
                "Missing Gemini API key. Set `GEMINI_API_KEYS` or run "
                "`toonslate credentials --set-api-keys`.",
                failure_kind="invalid_api_key",
            )
        return normalized

    def _execute_json_post_bytes(
        self,
        *,
        endpoint_path: str,
        api_key: str,
        payload: dict[str, Any],
    ) -> bytes:
        """Execute a Gemini JSON POST request and map failures consistently."""

        endpoint = f"{self.base_url}{endpoint_path}"
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(
                endpoint,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            return bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = "Gemini request timed out."
            else:
                detail = (
                    "Gemini request transport error: "
                    f"{self._short_message(self._redact_sensitive_tokens(str(exc)))}"
                )
            raise TransientProviderError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise TransientProviderError(
                "Gemini request timed out.",
                failure_kind="timeout",
            ) from exc

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        try:
            return bytes(response.content).decode("utf-8", errors="replace").strip()
        except (TypeError, ValueError):
            return ""

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bAIza[0-9A-Za-z_-]{10,}\b", "[redacted-key]", text)
        redacted = re.sub(r"(?i)([?&]key=)[^&\s]+", r"\1[redacted-key]", redacted)
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise provider-facing message and optional provider status code."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                status_value = error_payload.get("status")
                if isinstance(status_value, str) and status_value.strip():
                    provider_code = status_value.strip()
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        if message is None:
            message = body

        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify Gemini HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.upper() if provider_code is not None else ""

        if status_code == 429 or normalized_code == "RESOURCE_EXHAUSTED":
            return "rate_limit"
        if status_code in {401, 403} or "api key" in message_lower:
            return "invalid_api_key"
        if status_code == 404 or (
            "model" in message_lower
            and any(phrase in message_lower for phrase in ("not found", "does not exist", "not supported"))
        ):
            return "invalid_model"
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return "timeout"
        if status_code >= 500:
            return "server_error"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> ProviderError:
        """Convert HTTP errors into classified provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "rate_limit": "Gemini rate limit reached",
            "invalid_api_key": "Gemini authentication failed",
            "invalid_model": "Gemini rejected the selected model",
            "timeout": "Gemini request timed out",
            "server_error": "Gemini service error",
        }.get(failure_kind, "Gemini request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        error_type: type[ProviderError] = ProviderError
        if failure_kind == "rate_limit":
            error_type = RateLimitError
        elif failure_kind in {"timeout", "server_error"}:
            error_type = TransientProviderError
        return error_type(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )

    @staticmethod
    def _extract_candidate_text(raw_payload: str) -> str:
        """Extract joined text parts of the first candidate from a Gemini payload."""

        try:
            payload = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise ParseError("Gemini returned invalid JSON payload.") from exc

        if not isinstance(payload, dict):
            raise ParseError("Gemini response payload is not an object.")
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            block_reason = ""
            feedback = payload.get("promptFeedback")
            if isinstance(feedback, dict) and isinstance(feedback.get("blockReason"), str):
                block_reason = f" (blocked: {feedback['blockReason']})"
            raise ParseError(f"Gemini response missing non-empty `candidates` list{block_reason}.")

        first_candidate = candidates[0]
        content = first_candidate.get("content") if isinstance(first_candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise ParseError("Gemini response missing `candidates[0].content.parts` list.")

        text = "".join(
            part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
        ).strip()
        if not text:
            raise ParseError("Gemini response candidate text is empty.")
        return text
