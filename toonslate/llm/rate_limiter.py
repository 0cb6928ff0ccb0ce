"""Rate limiting abstraction for provider calls.

Responsibilities:
- Provide a single hook to enforce per-credential request pacing.
- Keep pacing policy independent from provider adapters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
from time import monotonic, sleep
from typing import Callable


@dataclass(slots=True)
class RateLimiter:
    """Per-key minimum-interval limiter used around provider requests."""

    min_interval_seconds: float = 0.0
    clock: Callable[[], float] = monotonic
    sleeper: Callable[[float], None] = sleep
    _next_allowed_at: dict[str, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def acquire(self, key: str) -> None:
        """Block until the key is allowed under the minimum-interval policy."""

        if self.min_interval_seconds <= 0.0:
            return
        with self._lock:
            now = self.clock()
            next_allowed = max(self._next_allowed_at.get(key, 0.0), now)
            # Reserve the slot before sleeping so concurrent callers queue behind it.
            self._next_allowed_at[key] = next_allowed + self.min_interval_seconds
        wait_seconds = next_allowed - now
        if wait_seconds > 0.0:
            self.sleeper(wait_seconds)
