"""Unit tests for YAML/environment configuration loader behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

from toonslate.config import ConfigLoader, RuntimeConfigSources, ToonslateConfig


def test_config_loader_from_yaml_loads_valid_config_and_normalizes_values(
    tmp_path: Path,
) -> None:
    """YAML loader should parse valid payloads and normalize typed/blank values."""

    config_path = tmp_path / "toonslate.yml"
    config_path.write_text(
        """
data_dir: " library "
source_language: " Japanese "
target_language: " English "
model_ocr: " gemini-vision "
model_translate: " gemini-pro "
api_keys:
  - " key-a "
  - "key-b"
  - "key-a"
fallback_api_key: "   "
ocr_mode: " SINGLE "
ocr_chunk_size: " 4 "
ocr_chunk_delay_ms: 250
ocr_batch_requests: " yes "
translate_max_retries: 2
retry_backoff_base_seconds: "0.5"
min_request_interval_seconds: 1
max_memory_entries: 3
extra:
  profile: " nightly "
""".strip(),
        encoding="utf-8",
    )

    config = ConfigLoader.from_yaml(config_path)

    assert config.data_dir == Path("library")
    assert config.source_language == "Japanese"
    assert config.model_ocr == "gemini-vision"
    assert config.model_translate == "gemini-pro"
    assert config.model_assist == "gemini-2.0-flash"
    assert config.api_keys == ("key-a", "key-b")
    assert config.fallback_api_key is None
    assert config.ocr_mode == "single"
    assert config.ocr_chunk_size == 4
    assert config.ocr_chunk_delay_ms == 250
    assert config.ocr_batch_requests is True
    assert config.translate_max_retries == 2
    assert config.retry_backoff_base_seconds == 0.5
    assert config.min_request_interval_seconds == 1.0
    assert config.max_memory_entries == 3
    assert config.extra == {"profile": "nightly"}


def test_config_loader_from_yaml_empty_file_uses_defaults(tmp_path: Path) -> None:
    """An empty YAML document should produce the default configuration."""

    config_path = tmp_path / "empty.yml"
    config_path.write_text("", encoding="utf-8")

    config = ConfigLoader.from_yaml(config_path)

    assert config == ToonslateConfig()


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("unknown_field: 1\n", "unsupported key"),
        ("- just\n- a list\n", "top-level mapping"),
        ("data_dir: [unclosed\n", "could not be parsed"),
        ("ocr_chunk_size: 0\n", "ocr_chunk_size"),
        ("ocr_chunk_size: true\n", "ocr_chunk_size"),
        ("ocr_chunk_size: lots\n", "ocr_chunk_size"),
        ("retry_backoff_base_seconds: -1\n", "retry_backoff_base_seconds"),
        ("ocr_batch_requests: sometimes\n", "ocr_batch_requests"),
        ("ocr_mode: turbo\n", "ocr_mode"),
        ("provider_ocr: other\n", "provider_ocr"),
        ("request_timeout_seconds: 0\n", "request_timeout_seconds"),
        ("extra:\n  key: ''\n", "blank value"),
    ],
)
def test_config_loader_from_yaml_rejects_invalid_payloads(
    tmp_path: Path, content: str, message: str
) -> None:
    """YAML loader should reject unknown keys and invalid values with clear messages."""

    config_path = tmp_path / "bad.yml"
    config_path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match=message):
        ConfigLoader.from_yaml(config_path)


def test_config_loader_from_env_reads_prefixed_and_runtime_keys() -> None:
    """Environment loader should read `TOONSLATE_*` fields and Gemini key variables."""

    config = ConfigLoader.from_env(
        {
            "TOONSLATE_DATA_DIR": " data ",
            "TOONSLATE_OCR_CHUNK_SIZE": "5",
            "TOONSLATE_OCR_BATCH_REQUESTS": "1",
            "TOONSLATE_MODEL_OCR": "env-ocr",
            "GEMINI_API_KEYS": "k1, k2",
            "GEMINI_API_KEY": "fallback",
            "UNRELATED": "ignored",
        }
    )

    assert config.data_dir == Path("data")
    assert config.ocr_chunk_size == 5
    assert config.ocr_batch_requests is True
    assert config.model_ocr == "env-ocr"
    assert config.api_keys == ("k1", "k2")
    assert config.fallback_api_key == "fallback"
    assert dict(config.runtime_sources.env) == {
        "TOONSLATE_MODEL_OCR": "env-ocr",
        "GEMINI_API_KEYS": "k1, k2",
        "GEMINI_API_KEY": "fallback",
    }


def test_resolved_provider_runtime_uses_cli_secure_env_default_precedence() -> None:
    """Runtime values should resolve in `cli > secure > env > default` order."""

    config = ToonslateConfig(api_keys=("config-key",), model_assist="config-assist")
    sources = RuntimeConfigSources(
        cli={"model_ocr": "cli-ocr", "api_keys": " "},
        secure={"model_ocr": "secure-ocr", "api_keys": "secure-1,secure-2"},
        env={
            "TOONSLATE_MODEL_OCR": "env-ocr",
            "TOONSLATE_MODEL_TRANSLATE": "env-translate",
            "GEMINI_API_KEYS": "env-key",
            "GEMINI_API_KEY": "env-fallback",
        },
    )

    runtime = config.resolved_provider_runtime(sources)

    assert runtime.ocr_model == "cli-ocr"
    assert runtime.translate_model == "env-translate"
    assert runtime.assist_model == "config-assist"
    assert runtime.api_keys == ("secure-1", "secure-2")
    assert runtime.fallback_api_key == "env-fallback"
    assert runtime.as_metadata() == {
        "provider_ocr": "gemini",
        "provider_translator": "gemini",
        "model_ocr": "cli-ocr",
        "model_translate": "env-translate",
        "model_assist": "config-assist",
        "api_key_count": "2",
        "fallback_api_key": "set",
    }


def test_resolved_provider_runtime_falls_back_to_config_keys() -> None:
    """Config keys apply when no runtime source provides any."""

    runtime = ToonslateConfig(api_keys=("a", "b")).resolved_provider_runtime()

    assert runtime.api_keys == ("a", "b")
    assert runtime.fallback_api_key is None


def test_resolved_provider_runtime_rejects_unsupported_provider() -> None:
    """Unsupported provider identifiers should fail resolution."""

    sources = RuntimeConfigSources(env={"TOONSLATE_PROVIDER_TRANSLATOR": "openai"})

    with pytest.raises(ValueError, match="provider_translator"):
        ToonslateConfig().resolved_provider_runtime(sources)
