"""Round-robin API credential rotation.

Responsibilities:
- Hand out configured provider credentials in cyclic order across threads.
- Track per-key usage so operators can see how load was spread.
- Fail fast with `ConfigurationError` when no credential is configured.
"""

from __future__ import annotations

import threading
from typing import Sequence

from ..config import ToonslateConfig
from ..errors import ConfigurationError
from ..parsing import normalize_optional_string


def redact_key(key: str) -> str:
    """Return a log-safe label for a credential (last four characters only)."""

    if len(key) <= 4:
        return "key-****"
    return f"key-...{key[-4:]}"


class KeyRotationPool:
    """Thread-safe cyclic credential pool with optional explicit fallback."""

    def __init__(
        self,
        credentials: Sequence[str],
        *,
        fallback_credential: str | None = None,
    ) -> None:
        """Initialize the pool from configured credentials."""

        keys: list[str] = []
        for credential in credentials:
            normalized = normalize_optional_string(credential)
            if normalized is not None and normalized not in keys:
                keys.append(normalized)
        self._keys = tuple(keys)
        self._fallback = normalize_optional_string(fallback_credential)
        self._cursor = 0
        self._usage: dict[str, int] = {key: 0 for key in self._keys}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ToonslateConfig) -> KeyRotationPool:
        """Build a pool from the config's resolved runtime credentials."""

        runtime = config.resolved_provider_runtime()
        return cls(runtime.api_keys, fallback_credential=runtime.fallback_api_key)

    def __len__(self) -> int:
        """Return the number of rotating credentials (fallback excluded)."""

        return len(self._keys)

    def get_next_key(self) -> str:
        """Return the next credential in round-robin order.

        Raises:
            ConfigurationError: If no credentials and no fallback are configured.
        """

        with self._lock:
            if not self._keys:
                if self._fallback is None:
                    raise ConfigurationError(
                        "No API keys configured. Set `GEMINI_API_KEYS`, `api_keys` in config, "
                        "or store keys via `toonslate credentials --set-api-keys`."
                    )
                self._usage[self._fallback] = self._usage.get(self._fallback, 0) + 1
                return self._fallback

            key = self._keys[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._keys)
            self._usage[key] += 1
            return key

    def least_used_key(self, claim: bool = False) -> str:
        """Return the credential with the lowest usage count, preferring earlier keys.

        With `claim`, the returned key's usage count is incremented as if it had
        been drawn by `get_next_key`; the rotation cursor does not move.
        """

        with self._lock:
            if not self._keys:
                if self._fallback is None:
                    raise ConfigurationError("No API keys configured.")
                key = self._fallback
            else:
                key = min(self._keys, key=lambda candidate: self._usage[candidate])
            if claim:
                self._usage[key] = self._usage.get(key, 0) + 1
            return key

    def usage_stats(self) -> dict[str, int]:
        """Return usage counts keyed by redacted credential label."""

        with self._lock:
            return {redact_key(key): count for key, count in self._usage.items()}

    def reset_usage(self) -> None:
        """Reset usage counters without moving the rotation cursor."""

        with self._lock:
            for key in self._usage:
                self._usage[key] = 0
