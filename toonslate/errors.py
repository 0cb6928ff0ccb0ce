"""Domain exceptions for pipeline stages, providers, and CLI diagnostics.

Responsibilities:
- Define the CLI-facing stage error with actionable hints.
- Define the translation pipeline error taxonomy shared by all components.

Key types:
- `PipelineStageError`: stage-scoped error rendered by CLI commands.
- `ProviderError`, `TransientProviderError`, `RateLimitError`: provider failures.
- `ValidationError`, `ParseError`, `SuggestionParseError`, `PendingReviewError`,
  `ConfigurationError`, `PersistenceError`: pipeline sequencing and data errors.
"""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific pipeline stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class ToonslateError(RuntimeError):
    """Base class for translation pipeline errors."""


class ConfigurationError(ToonslateError):
    """Raised when required runtime configuration (for example credentials) is missing."""


class ValidationError(ToonslateError):
    """Raised for invalid caller input such as empty text or missing identifiers."""


class ParseError(ToonslateError):
    """Raised when an LLM response does not contain the structure a step requires."""


class SuggestionParseError(ParseError):
    """Raised when a glossary suggestion response contains no usable JSON object."""


class PendingReviewError(ToonslateError):
    """Raised when finalization is requested while review items are still pending."""

    def __init__(self, pending_ids: list[str]) -> None:
        """Initialize with the identifiers of unresolved review items."""

        super().__init__(
            f"{len(pending_ids)} review item(s) are still pending: {', '.join(pending_ids)}."
        )
        self.pending_ids = list(pending_ids)


class PersistenceError(ToonslateError):
    """Raised when the primary translated-text write for a chapter fails."""


class TranslationCancelledError(ToonslateError):
    """Raised when a translation call was cancelled and its result discarded."""


class TranslationFailedError(ToonslateError):
    """Raised when translation retries are exhausted and manual retry is required."""

    def __init__(self, message: str, *, attempts: int, last_error: Exception | None) -> None:
        """Initialize with attempt count and the final underlying failure."""

        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class ProviderError(ToonslateError):
    """Raised when a provider request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        """Initialize provider error metadata for stage-aware diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code


class TransientProviderError(ProviderError):
    """Retryable provider failure: network, timeout, or server-side error."""


class RateLimitError(TransientProviderError):
    """Provider rejected the request because of rate limiting (HTTP 429)."""
