"""Exponential-backoff retry loop for provider calls.

Responsibilities:
- Re-run retryable provider calls with delays of `base * factor**attempt`.
- Stop immediately on non-retryable provider failures.
- Report attempt progress and surface exhaustion as `TranslationFailedError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import sleep
from typing import Callable, TypeVar

from ..errors import ParseError, ProviderError, TransientProviderError, TranslationFailedError
from ..telemetry.logger import RunLogger

T = TypeVar("T")

AttemptCallback = Callable[[int, int], None]

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (TransientProviderError, ParseError)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry settings; `max_retries` counts retries after the first attempt."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    factor: float = 2.0
    sleeper: Callable[[float], None] = sleep

    @property
    def max_attempts(self) -> int:
        """Return the total number of attempts including the first."""

        return self.max_retries + 1

    def delay_for(self, retry_index: int) -> float:
        """Return the delay before retry `retry_index` (0-based)."""

        return self.base_delay_seconds * (self.factor**retry_index)

    def run(
        self,
        operation: Callable[[], T],
        *,
        stage: str,
        attempt_callback: AttemptCallback | None = None,
        logger: RunLogger | None = None,
    ) -> T:
        """Run `operation` until it succeeds or retries are exhausted.

        Raises:
            TranslationFailedError: On exhaustion or a non-retryable provider failure.
        """

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt_callback is not None:
                attempt_callback(attempt, self.max_attempts)
            try:
                return operation()
            except RETRYABLE_ERRORS as exc:
                last_error = exc
            except ProviderError as exc:
                raise TranslationFailedError(
                    f"{stage.capitalize()} failed with a non-retryable provider error: {exc}",
                    attempts=attempt,
                    last_error=exc,
                ) from exc

            if attempt == self.max_attempts:
                break
            delay = self.delay_for(attempt - 1)
            if logger is not None:
                logger.log_event(
                    stage,
                    "retry_scheduled",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_seconds=delay,
                    error_type=type(last_error).__name__,
                )
            self.sleeper(delay)

        raise TranslationFailedError(
            f"{stage.capitalize()} failed after {self.max_attempts} attempt(s): {last_error}",
            attempts=self.max_attempts,
            last_error=last_error,
        ) from last_error
