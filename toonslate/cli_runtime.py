"""CLI provider runtime resolution helpers.

This module isolates config loading, model/key runtime source assembly,
and secure API-key persistence from the command wiring layer.
"""

from __future__ import annotations

from dataclasses import replace
import os
from pathlib import Path
from typing import Callable, Protocol, Sequence

import typer

from .config import ConfigLoader, RuntimeConfigSources, ToonslateConfig
from .credentials import create_credential_store
from .errors import PipelineStageError
from .parsing import normalize_optional_string, split_key_list


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by CLI runtime resolution."""

    def get_api_keys(self) -> tuple[str, ...]:
        """Return currently stored API keys."""

    def set_api_keys(self, api_keys: Sequence[str]) -> None:
        """Persist API keys in secure storage."""


def _set_runtime_cli_value(
    runtime_cli_values: dict[str, str],
    key: str,
    value: str | None,
) -> None:
    """Set a normalized runtime CLI value when user input is present."""

    normalized = normalize_optional_string(value)
    if normalized is not None:
        runtime_cli_values[key] = normalized


def prompt_for_api_keys(label: str = "Gemini API keys, comma-separated") -> tuple[str, ...]:
    """Prompt for API keys with hidden input and return the normalized list."""

    return split_key_list(
        typer.prompt(
            f"{label} (hidden; leave blank to skip)",
            default="",
            hide_input=True,
            show_default=False,
        )
    )


def resolve_provider_runtime_sources(
    model_ocr: str | None,
    model_translate: str | None,
    model_assist: str | None,
    api_keys: str | None,
    prompt_api_keys: bool,
    store_api_keys: bool,
    credential_store_factory: Callable[[], CredentialStoreProtocol] = create_credential_store,
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve CLI and secure runtime source mappings for provider configuration."""

    runtime_cli_values: dict[str, str] = {}
    _set_runtime_cli_value(runtime_cli_values, "model_ocr", model_ocr)
    _set_runtime_cli_value(runtime_cli_values, "model_translate", model_translate)
    _set_runtime_cli_value(runtime_cli_values, "model_assist", model_assist)
    entered_keys = split_key_list(api_keys)

    if prompt_api_keys and not entered_keys:
        entered_keys = prompt_for_api_keys()
    if entered_keys:
        runtime_cli_values["api_keys"] = ",".join(entered_keys)

    credential_store = credential_store_factory()
    runtime_secure_values: dict[str, str] = {}
    stored_keys = credential_store.get_api_keys()
    if stored_keys:
        runtime_secure_values["api_keys"] = ",".join(stored_keys)

    if entered_keys and store_api_keys:
        try:
            credential_store.set_api_keys(entered_keys)
            typer.echo(f"Stored {len(entered_keys)} API key(s) in secure credential storage.")
        except Exception as exc:
            raise PipelineStageError(
                stage="credentials",
                detail=f"Failed to store API keys securely: {exc}",
                hint=(
                    "Install and configure a keyring backend, or rerun with "
                    "`--no-store-api-keys` for one-off usage."
                ),
            ) from exc

    return runtime_cli_values, runtime_secure_values


def load_base_config(config_file: Path | None, data_dir: Path | None) -> ToonslateConfig:
    """Load YAML or environment config and map failures to stage errors."""

    try:
        if config_file is not None:
            config = ConfigLoader.from_yaml(config_file)
        else:
            config = ConfigLoader.from_env()
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_file}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid configuration: {exc}",
            hint="Fix config schema/values or `TOONSLATE_*` variables and rerun.",
        ) from exc

    if data_dir is not None:
        config = replace(config, data_dir=data_dir)
    return config


def apply_runtime_sources(
    base_config: ToonslateConfig,
    runtime_cli_values: dict[str, str],
    runtime_secure_values: dict[str, str],
) -> ToonslateConfig:
    """Attach runtime source mappings while keeping base config defaults intact."""

    return replace(
        base_config,
        runtime_sources=RuntimeConfigSources(
            cli=runtime_cli_values,
            secure=runtime_secure_values,
            env=os.environ,
        ),
    )
