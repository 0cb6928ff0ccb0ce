"""Unit tests for provider factory wiring."""

from __future__ import annotations

from pathlib import Path

import pytest

from toonslate.config import ProviderRuntimeConfig, RuntimeConfigSources, ToonslateConfig
from toonslate.errors import ConfigurationError
from toonslate.llm.gemini_client import GeminiClient
from toonslate.llm.glossary_assistant import GeminiGlossaryAssistant
from toonslate.llm.summarizer import GeminiSummarizer
from toonslate.llm.translator import GeminiTranslationReviewer
from toonslate.ocr.provider import GeminiOCRProvider
from toonslate.pipeline.orchestrator import PipelineState
from toonslate.provider_factory import ProviderFactory


def _runtime(**overrides: object) -> ProviderRuntimeConfig:
    values: dict[str, object] = {
        "ocr_provider": "gemini",
        "translator_provider": "gemini",
        "ocr_model": "ocr-model",
        "translate_model": "translate-model",
        "assist_model": "assist-model",
        "api_keys": ("key-a", "key-b"),
    }
    values.update(overrides)
    return ProviderRuntimeConfig(**values)  # type: ignore[arg-type]


def test_create_client_uses_timeout_and_pacing_settings() -> None:
    """The shared client inherits timeout and per-key interval from config."""

    config = ToonslateConfig(request_timeout_seconds=12.5, min_request_interval_seconds=0.25)

    client = ProviderFactory.create_client(config)

    assert isinstance(client, GeminiClient)
    assert client.timeout_seconds == 12.5
    assert client.rate_limiter.min_interval_seconds == 0.25


def test_create_key_pool_rotates_runtime_keys() -> None:
    """Key pools rotate over resolved keys."""

    pool = ProviderFactory.create_key_pool(_runtime())

    assert [pool.get_next_key() for _ in range(3)] == ["key-a", "key-b", "key-a"]


def test_create_key_pool_uses_fallback_without_keys() -> None:
    """A single fallback credential is used when no rotating keys exist."""

    pool = ProviderFactory.create_key_pool(_runtime(api_keys=(), fallback_api_key="solo"))

    assert len(pool) == 0
    assert pool.get_next_key() == "solo"


def test_create_key_pool_without_any_key_fails_on_use() -> None:
    """An empty pool raises a configuration error on first use."""

    pool = ProviderFactory.create_key_pool(_runtime(api_keys=()))

    with pytest.raises(ConfigurationError):
        pool.get_next_key()


def test_stage_factories_bind_models() -> None:
    """Stage factories bind the configured model identifiers."""

    runtime = _runtime()
    client = ProviderFactory.create_client(ToonslateConfig())
    pool = ProviderFactory.create_key_pool(runtime)

    ocr = ProviderFactory.create_ocr_provider("gemini", client, runtime.ocr_model)
    translator = ProviderFactory.create_translator("gemini", client, pool, runtime.translate_model)
    assistant = ProviderFactory.create_assistant("gemini", client, pool, runtime.assist_model)
    summarizer = ProviderFactory.create_summarizer("gemini", client, pool, runtime.assist_model)

    assert isinstance(ocr, GeminiOCRProvider) and ocr.model == "ocr-model"
    assert isinstance(translator, GeminiTranslationReviewer) and translator.model == "translate-model"
    assert isinstance(assistant, GeminiGlossaryAssistant) and assistant.model == "assist-model"
    assert isinstance(summarizer, GeminiSummarizer) and summarizer.model == "assist-model"


@pytest.mark.parametrize(
    "factory_name",
    ["create_translator", "create_assistant", "create_summarizer"],
)
def test_unsupported_provider_ids_are_rejected(factory_name: str) -> None:
    """Unknown provider identifiers raise `ValueError`."""

    client = ProviderFactory.create_client(ToonslateConfig())
    pool = ProviderFactory.create_key_pool(_runtime())
    factory = getattr(ProviderFactory, factory_name)

    with pytest.raises(ValueError, match="Unsupported"):
        factory("openai", client, pool, "model")


def test_unsupported_ocr_provider_is_rejected() -> None:
    """Unknown OCR provider identifiers raise `ValueError`."""

    client = ProviderFactory.create_client(ToonslateConfig())

    with pytest.raises(ValueError, match="Unsupported OCR provider `openai`"):
        ProviderFactory.create_ocr_provider("openai", client, "model")


def test_create_extractor_applies_chunk_policy() -> None:
    """Extractor settings come from OCR config fields."""

    config = ToonslateConfig(ocr_chunk_size=4, ocr_chunk_delay_ms=250, ocr_batch_requests=True)
    runtime = _runtime()
    client = ProviderFactory.create_client(config)

    extractor = ProviderFactory.create_extractor(
        config, runtime, client, ProviderFactory.create_key_pool(runtime)
    )

    assert extractor.chunk_size == 4
    assert extractor.inter_chunk_delay_seconds == 0.25
    assert extractor.use_batch_requests is True


def test_create_orchestrator_wires_configuration(tmp_path: Path) -> None:
    """The orchestrator is assembled from config with an idle initial state."""

    sleeps: list[float] = []
    config = ToonslateConfig(
        data_dir=tmp_path,
        target_language="German",
        translate_max_retries=2,
        retry_backoff_base_seconds=0.5,
        max_memory_entries=3,
        runtime_sources=RuntimeConfigSources(cli={"api_keys": "cli-key"}),
    )

    orchestrator = ProviderFactory.create_orchestrator(
        config,
        suggest_glossary_terms=True,
        sleeper=sleeps.append,
    )

    assert orchestrator.state is PipelineState.IDLE
    assert orchestrator.target_language == "German"
    assert orchestrator.max_memory_entries == 3
    assert orchestrator.suggest_glossary_terms is True
    assert orchestrator.retry_policy.max_retries == 2
    assert orchestrator.retry_policy.base_delay_seconds == 0.5
    assert orchestrator.extractor is not None
    assert orchestrator.extractor.key_pool.get_next_key() == "cli-key"


def test_create_orchestrator_rejects_unsupported_provider(tmp_path: Path) -> None:
    """Unsupported provider ids fail during runtime resolution."""

    config = ToonslateConfig(data_dir=tmp_path, provider_translator="openai")

    with pytest.raises(ValueError, match="provider_translator"):
        ProviderFactory.create_orchestrator(config)
