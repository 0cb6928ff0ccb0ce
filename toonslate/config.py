"""Configuration model and loaders for Toonslate.

Responsibilities:
- Define runtime configuration as a typed dataclass.
- Provide deterministic precedence resolution for runtime provider/model/key settings.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `ToonslateConfig`: normalized runtime settings for the translation pipeline.
- `ProviderRuntimeConfig`: resolved provider/model/credential runtime values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `ToonslateConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import (
    normalize_optional_string,
    parse_permissive_boolean,
    split_key_list,
)


_DEFAULT_OCR_MODEL = "gemini-2.0-flash"
_DEFAULT_TRANSLATE_MODEL = "gemini-2.0-flash"
_DEFAULT_ASSIST_MODEL = "gemini-2.0-flash"
_SUPPORTED_PROVIDER_IDS = frozenset({"gemini"})
_SUPPORTED_OCR_MODES = frozenset({"batched", "single"})


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved runtime provider, model, and credential values for one run.

    Attributes:
        ocr_provider: Provider identifier for the OCR stage.
        translator_provider: Provider identifier for translate/review and assistant stages.
        ocr_model: Model identifier for OCR.
        translate_model: Model identifier for translate-and-review.
        assist_model: Model identifier for glossary, summary, and memory assistants.
        api_keys: Rotating provider credentials (never persisted).
        fallback_api_key: Single credential used only when `api_keys` is empty.
    """

    ocr_provider: str
    translator_provider: str
    ocr_model: str
    translate_model: str
    assist_model: str
    api_keys: tuple[str, ...] = ()
    fallback_api_key: str | None = None

    def as_metadata(self) -> dict[str, str]:
        """Return non-secret runtime metadata safe to print or log."""

        return {
            "provider_ocr": self.ocr_provider,
            "provider_translator": self.translator_provider,
            "model_ocr": self.ocr_model,
            "model_translate": self.translate_model,
            "model_assist": self.assist_model,
            "api_key_count": str(len(self.api_keys)),
            "fallback_api_key": "set" if self.fallback_api_key else "unset",
        }


@dataclass(slots=True)
class ToonslateConfig:
    """Runtime configuration for the translation pipeline.

    Attributes:
        data_dir: Root directory of the filesystem stores.
        source_language: Default source language name.
        target_language: Target language name.
        provider_ocr: OCR provider identifier.
        provider_translator: Translation provider identifier.
        model_ocr: OCR model identifier.
        model_translate: Translate-and-review model identifier.
        model_assist: Assistant model identifier.
        api_keys: Rotating provider credentials.
        fallback_api_key: Credential used only when `api_keys` is empty.
        ocr_mode: `batched` (chunked, concurrent) or `single`.
        ocr_chunk_size: Images per OCR chunk.
        ocr_chunk_delay_ms: Delay between OCR chunks.
        ocr_batch_requests: Whether one multi-image request is sent per chunk.
        translate_max_retries: Retries after the first translation attempt.
        retry_backoff_base_seconds: First retry delay; later delays double.
        request_timeout_seconds: Per-request HTTP timeout.
        min_request_interval_seconds: Minimum spacing between requests per credential.
        max_memory_entries: Memory entries injected into translation context.
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional metadata for future extensions.
    """

    data_dir: Path = field(default_factory=lambda: Path("toonslate-data"))
    source_language: str = "Korean"
    target_language: str = "English"
    provider_ocr: str = "gemini"
    provider_translator: str = "gemini"
    model_ocr: str = _DEFAULT_OCR_MODEL
    model_translate: str = _DEFAULT_TRANSLATE_MODEL
    model_assist: str = _DEFAULT_ASSIST_MODEL
    api_keys: tuple[str, ...] = ()
    fallback_api_key: str | None = None
    ocr_mode: str = "batched"
    ocr_chunk_size: int = 3
    ocr_chunk_delay_ms: int = 500
    ocr_batch_requests: bool = False
    translate_max_retries: int = 3
    retry_backoff_base_seconds: float = 1.0
    request_timeout_seconds: float = 60.0
    min_request_interval_seconds: float = 0.0
    max_memory_entries: int = 5
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate runtime configuration values before pipeline execution."""

        self._validate_provider_id(self.provider_ocr, "provider_ocr")
        self._validate_provider_id(self.provider_translator, "provider_translator")
        self._require_non_empty(self.model_ocr, "model_ocr")
        self._require_non_empty(self.model_translate, "model_translate")
        self._require_non_empty(self.model_assist, "model_assist")
        self._require_non_empty(self.source_language, "source_language")
        self._require_non_empty(self.target_language, "target_language")
        if self.ocr_mode not in _SUPPORTED_OCR_MODES:
            supported = ", ".join(sorted(_SUPPORTED_OCR_MODES))
            raise ValueError(f"Unsupported `ocr_mode` value `{self.ocr_mode}`; supported: {supported}.")
        if self.ocr_chunk_size <= 0:
            raise ValueError("`ocr_chunk_size` must be a positive integer.")
        if self.ocr_chunk_delay_ms < 0:
            raise ValueError("`ocr_chunk_delay_ms` must be a non-negative integer.")
        if self.translate_max_retries < 0:
            raise ValueError("`translate_max_retries` must be a non-negative integer.")
        if self.retry_backoff_base_seconds < 0:
            raise ValueError("`retry_backoff_base_seconds` must be non-negative.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("`request_timeout_seconds` must be positive.")
        if self.min_request_interval_seconds < 0:
            raise ValueError("`min_request_interval_seconds` must be non-negative.")
        if self.max_memory_entries <= 0:
            raise ValueError("`max_memory_entries` must be a positive integer.")

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider, model, and key settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        api_keys_value = self._resolve_optional_runtime_value(
            key="api_keys",
            env_key="GEMINI_API_KEYS",
            default_value=",".join(self.api_keys) or None,
            sources=resolved_sources,
        )
        resolved = ProviderRuntimeConfig(
            ocr_provider=self._resolve_runtime_value(
                key="provider_ocr",
                env_key="TOONSLATE_PROVIDER_OCR",
                default_value=self.provider_ocr,
                sources=resolved_sources,
            ),
            translator_provider=self._resolve_runtime_value(
                key="provider_translator",
                env_key="TOONSLATE_PROVIDER_TRANSLATOR",
                default_value=self.provider_translator,
                sources=resolved_sources,
            ),
            ocr_model=self._resolve_runtime_value(
                key="model_ocr",
                env_key="TOONSLATE_MODEL_OCR",
                default_value=self.model_ocr,
                sources=resolved_sources,
            ),
            translate_model=self._resolve_runtime_value(
                key="model_translate",
                env_key="TOONSLATE_MODEL_TRANSLATE",
                default_value=self.model_translate,
                sources=resolved_sources,
            ),
            assist_model=self._resolve_runtime_value(
                key="model_assist",
                env_key="TOONSLATE_MODEL_ASSIST",
                default_value=self.model_assist,
                sources=resolved_sources,
            ),
            api_keys=split_key_list(api_keys_value),
            fallback_api_key=self._resolve_optional_runtime_value(
                key="fallback_api_key",
                env_key="GEMINI_API_KEY",
                default_value=self.fallback_api_key,
                sources=resolved_sources,
            ),
        )
        self._validate_provider_id(resolved.ocr_provider, "provider_ocr")
        self._validate_provider_id(resolved.translator_provider, "provider_translator")
        self._require_non_empty(resolved.ocr_model, "model_ocr")
        self._require_non_empty(resolved.translate_model, "model_translate")
        self._require_non_empty(resolved.assist_model, "model_assist")
        return resolved

    def _resolve_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str:
        """Resolve a runtime value from sources in deterministic precedence order."""

        resolved = self._resolve_optional_runtime_value(key, env_key, default_value, sources)
        if resolved is None:
            raise ValueError(
                f"`{key}` could not be resolved from CLI, secure storage, env, or defaults."
            )
        return resolved

    def _resolve_optional_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve an optional runtime value from sources in deterministic order."""

        cli_value = self._normalized_lookup(sources.cli, key)
        if cli_value is not None:
            return cli_value

        secure_value = self._normalized_lookup(sources.secure, key)
        if secure_value is not None:
            return secure_value

        env_value = self._normalized_lookup(sources.env, env_key)
        if env_value is not None:
            return env_value

        return normalize_optional_string(default_value)

    @staticmethod
    def _normalized_lookup(mapping: Mapping[str, str], key: str) -> str | None:
        """Return a stripped mapping value for a key or `None` when missing/blank."""

        if key not in mapping:
            return None
        return normalize_optional_string(mapping.get(key))

    @staticmethod
    def _validate_provider_id(provider_id: str, field_name: str) -> None:
        """Validate provider identifiers against currently supported providers."""

        if provider_id not in _SUPPORTED_PROVIDER_IDS:
            supported = ", ".join(sorted(_SUPPORTED_PROVIDER_IDS))
            raise ValueError(
                f"Unsupported `{field_name}` value `{provider_id}`; supported: {supported}."
            )

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that runtime string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `ToonslateConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "data_dir",
            "source_language",
            "target_language",
            "provider_ocr",
            "provider_translator",
            "model_ocr",
            "model_translate",
            "model_assist",
            "api_keys",
            "fallback_api_key",
            "ocr_mode",
            "ocr_chunk_size",
            "ocr_chunk_delay_ms",
            "ocr_batch_requests",
            "translate_max_retries",
            "retry_backoff_base_seconds",
            "request_timeout_seconds",
            "min_request_interval_seconds",
            "max_memory_entries",
            "extra",
        }
    )
    _RUNTIME_ENV_KEYS = frozenset(
        {
            "TOONSLATE_PROVIDER_OCR",
            "TOONSLATE_PROVIDER_TRANSLATOR",
            "TOONSLATE_MODEL_OCR",
            "TOONSLATE_MODEL_TRANSLATE",
            "TOONSLATE_MODEL_ASSIST",
            "GEMINI_API_KEYS",
            "GEMINI_API_KEY",
        }
    )

    @staticmethod
    def from_yaml(path: Path) -> ToonslateConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        payload = ConfigLoader._parse_yaml_payload(path_text, path)
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> ToonslateConfig:
        """Create a validated config from environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        label = "Environment"

        def env_value(key: str) -> str | None:
            return normalize_optional_string(env_map.get(key)) if key in env_map else None

        payload: dict[str, Any] = {}
        for field_name in ConfigLoader._SUPPORTED_YAML_KEYS - {"api_keys", "fallback_api_key", "extra"}:
            value = env_value(f"TOONSLATE_{field_name.upper()}")
            if value is not None:
                payload[field_name] = value
        api_keys = env_value("GEMINI_API_KEYS")
        if api_keys is not None:
            payload["api_keys"] = api_keys
        fallback = env_value("GEMINI_API_KEY")
        if fallback is not None:
            payload["fallback_api_key"] = fallback

        config = ConfigLoader._build_config_from_mapping(payload, source_label=label)
        config.runtime_sources = RuntimeConfigSources(
            env={
                key: value
                for key, value in env_map.items()
                if key in ConfigLoader._RUNTIME_ENV_KEYS
                and normalize_optional_string(value) is not None
            }
        )
        return config

    @staticmethod
    def _parse_yaml_payload(raw_text: str, path: Path) -> Mapping[str, Any]:
        """Parse YAML text and enforce a mapping root payload."""

        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` could not be parsed: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return payload

    @staticmethod
    def _build_config_from_mapping(payload: Mapping[str, Any], source_label: str) -> ToonslateConfig:
        """Build a validated config from a normalized mapping payload."""

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

        def text(key: str, default: str) -> str:
            return ConfigLoader._optional_non_empty_string(payload, key) or default

        data_dir = ConfigLoader._optional_non_empty_string(payload, "data_dir")
        config = ToonslateConfig(
            data_dir=Path(data_dir) if data_dir is not None else Path("toonslate-data"),
            source_language=text("source_language", "Korean"),
            target_language=text("target_language", "English"),
            provider_ocr=text("provider_ocr", "gemini"),
            provider_translator=text("provider_translator", "gemini"),
            model_ocr=text("model_ocr", _DEFAULT_OCR_MODEL),
            model_translate=text("model_translate", _DEFAULT_TRANSLATE_MODEL),
            model_assist=text("model_assist", _DEFAULT_ASSIST_MODEL),
            api_keys=split_key_list(payload.get("api_keys")),
            fallback_api_key=ConfigLoader._optional_non_empty_string(payload, "fallback_api_key"),
            ocr_mode=text("ocr_mode", "batched").lower(),
            ocr_chunk_size=ConfigLoader._optional_int(
                payload, "ocr_chunk_size", source_label, default=3, minimum=1
            ),
            ocr_chunk_delay_ms=ConfigLoader._optional_int(
                payload, "ocr_chunk_delay_ms", source_label, default=500, minimum=0
            ),
            ocr_batch_requests=ConfigLoader._optional_boolean(
                payload, "ocr_batch_requests", source_label, default=False
            ),
            translate_max_retries=ConfigLoader._optional_int(
                payload, "translate_max_retries", source_label, default=3, minimum=0
            ),
            retry_backoff_base_seconds=ConfigLoader._optional_float(
                payload, "retry_backoff_base_seconds", source_label, default=1.0
            ),
            request_timeout_seconds=ConfigLoader._optional_float(
                payload, "request_timeout_seconds", source_label, default=60.0
            ),
            min_request_interval_seconds=ConfigLoader._optional_float(
                payload, "min_request_interval_seconds", source_label, default=0.0
            ),
            max_memory_entries=ConfigLoader._optional_int(
                payload, "max_memory_entries", source_label, default=5, minimum=1
            ),
            extra=ConfigLoader._optional_string_map(payload, "extra", source_label),
        )
        config.validate()
        return config

    @staticmethod
    def _optional_non_empty_string(payload: Mapping[str, Any], key: str) -> str | None:
        """Read an optional string field and normalize blank values to `None`."""

        if key not in payload:
            return None
        return normalize_optional_string(payload[key])

    @staticmethod
    def _optional_int(
        payload: Mapping[str, Any],
        key: str,
        source_label: str,
        default: int,
        minimum: int,
    ) -> int:
        """Read and validate an integer payload field with a lower bound."""

        if key not in payload:
            return default

        raw_value = payload[key]
        message = f"{source_label} field `{key}` must be an integer >= {minimum}."
        if isinstance(raw_value, bool):
            raise ValueError(message)
        if isinstance(raw_value, int):
            parsed = raw_value
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = int(normalized)
            except ValueError as exc:
                raise ValueError(message) from exc

        if parsed < minimum:
            raise ValueError(message)
        return parsed

    @staticmethod
    def _optional_float(
        payload: Mapping[str, Any],
        key: str,
        source_label: str,
        default: float,
    ) -> float:
        """Read and validate a non-negative number payload field."""

        if key not in payload:
            return default

        raw_value = payload[key]
        message = f"{source_label} field `{key}` must be a non-negative number."
        if isinstance(raw_value, bool):
            raise ValueError(message)
        try:
            parsed = float(raw_value)
        except (TypeError, ValueError) as exc:
            raise ValueError(message) from exc
        if parsed < 0:
            raise ValueError(message)
        return parsed

    @staticmethod
    def _optional_boolean(
        payload: Mapping[str, Any], key: str, source_label: str, default: bool
    ) -> bool:
        """Read and validate a boolean field from a payload."""

        if key not in payload:
            return default

        parsed = parse_permissive_boolean(payload[key])
        if parsed is None:
            raise ValueError(
                f"{source_label} field `{key}` must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`)."
            )
        return parsed

    @staticmethod
    def _optional_string_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        if key not in payload:
            return {}

        raw = payload[key]
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `{key}` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
