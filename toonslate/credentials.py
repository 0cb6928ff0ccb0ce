"""Secure credential storage helpers for the Toonslate CLI.

Responsibilities:
- Persist rotating Gemini API keys in an OS-backed secure credential store.
- Provide deterministic read/write/delete operations for provider credentials.
- Avoid logging or exposing secret values in diagnostics.

Key types:
- `CredentialStore`: interface for provider credential persistence.
- `KeyringCredentialStore`: keyring-backed secure credential storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import keyring
from keyring.backends import fail
from keyring.errors import KeyringError

from .parsing import split_key_list


_DEFAULT_SERVICE_NAME = "toonslate"
_DEFAULT_ACCOUNT_NAME = "gemini_api_keys"


class CredentialStore:
    """Interface for secure provider credential operations."""

    def is_available(self) -> bool:
        """Return whether secure credential operations are available."""

        raise NotImplementedError

    def get_api_keys(self) -> tuple[str, ...]:
        """Load the stored API keys from secure storage."""

        raise NotImplementedError

    def set_api_keys(self, api_keys: Sequence[str]) -> None:
        """Persist API keys in secure storage."""

        raise NotImplementedError

    def clear_api_keys(self) -> bool:
        """Delete stored API keys and return whether any existed."""

        raise NotImplementedError


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Secure credential store backed by the `keyring` package.

    Keys are stored as one comma-separated secret under a single account.
    """

    service_name: str = _DEFAULT_SERVICE_NAME
    account_name: str = _DEFAULT_ACCOUNT_NAME

    def is_available(self) -> bool:
        """Return `False` when keyring resolved to its non-functional fail backend."""

        return not isinstance(keyring.get_keyring(), fail.Keyring)

    def get_api_keys(self) -> tuple[str, ...]:
        """Return normalized stored keys, or an empty tuple when none are stored."""

        if not self.is_available():
            return ()
        try:
            value = keyring.get_password(self.service_name, self.account_name)
        except KeyringError:
            return ()
        return split_key_list(value)

    def set_api_keys(self, api_keys: Sequence[str]) -> None:
        """Persist normalized API keys in keyring or raise when unavailable."""

        if not self.is_available():
            raise RuntimeError(
                "Secure credential storage is unavailable because no usable `keyring` "
                "backend was found. Configure a keyring backend to persist API keys securely."
            )

        normalized = split_key_list(list(api_keys))
        if not normalized:
            raise ValueError("At least one non-empty API key is required.")
        keyring.set_password(self.service_name, self.account_name, ",".join(normalized))

    def clear_api_keys(self) -> bool:
        """Remove stored API keys from keyring and report if any were present."""

        if not self.get_api_keys():
            return False

        keyring.delete_password(self.service_name, self.account_name)
        return True


def create_credential_store() -> CredentialStore:
    """Create the default secure credential store implementation."""

    return KeyringCredentialStore()
