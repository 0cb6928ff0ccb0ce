"""Provider factory helpers for OCR, translation, and assistant stages.

Responsibilities:
- Resolve provider identifiers to concrete stage implementations.
- Assemble the key pool, HTTP client, stores, and orchestrator from configuration.
- Keep orchestration independent from concrete provider class construction.

Notes:
- Only `gemini` is implemented at the moment.
"""

from __future__ import annotations

import threading
from time import sleep
from typing import Callable

from .config import ProviderRuntimeConfig, ToonslateConfig
from .glossary.resolver import GlossaryResolver
from .llm.gemini_client import GeminiClient
from .llm.glossary_assistant import GeminiGlossaryAssistant
from .llm.key_pool import KeyRotationPool
from .llm.rate_limiter import RateLimiter
from .llm.summarizer import GeminiSummarizer
from .llm.translator import GeminiTranslationReviewer, TranslationReviewProvider
from .memory.manager import ChapterMemoryManager
from .ocr.extractor import BatchImageExtractor
from .ocr.provider import GeminiOCRProvider, OCRProvider
from .persistence.gateway import PersistenceGateway
from .persistence.stores import FileStores
from .pipeline.orchestrator import TranslationOrchestrator
from .pipeline.retry import AttemptCallback, RetryPolicy
from .telemetry.logger import RunLogger


class ProviderFactory:
    """Factory for provider-backed stage clients used by the pipeline."""

    @staticmethod
    def create_key_pool(runtime: ProviderRuntimeConfig) -> KeyRotationPool:
        """Create the rotating credential pool for resolved runtime keys."""

        return KeyRotationPool(runtime.api_keys, fallback_credential=runtime.fallback_api_key)

    @staticmethod
    def create_client(
        config: ToonslateConfig,
        sleeper: Callable[[float], None] = sleep,
    ) -> GeminiClient:
        """Create the shared Gemini HTTP client with per-key request pacing."""

        return GeminiClient(
            timeout_seconds=config.request_timeout_seconds,
            rate_limiter=RateLimiter(
                min_interval_seconds=config.min_request_interval_seconds,
                sleeper=sleeper,
            ),
        )

    @staticmethod
    def create_ocr_provider(provider_id: str, client: GeminiClient, model: str) -> OCRProvider:
        """Create an OCR provider for a configured provider identifier."""

        if provider_id == "gemini":
            return GeminiOCRProvider(client, model=model)
        raise ValueError(f"Unsupported OCR provider `{provider_id}`.")

    @staticmethod
    def create_translator(
        provider_id: str,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        model: str,
    ) -> TranslationReviewProvider:
        """Create a translate-and-review client for a configured provider identifier."""

        if provider_id == "gemini":
            return GeminiTranslationReviewer(client, key_pool, model=model)
        raise ValueError(f"Unsupported translator provider `{provider_id}`.")

    @staticmethod
    def create_assistant(
        provider_id: str,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        model: str,
    ) -> GeminiGlossaryAssistant:
        """Create the glossary and memory-filter assistant for a provider identifier."""

        if provider_id == "gemini":
            return GeminiGlossaryAssistant(client, key_pool, model=model)
        raise ValueError(f"Unsupported assistant provider `{provider_id}`.")

    @staticmethod
    def create_summarizer(
        provider_id: str,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        model: str,
    ) -> GeminiSummarizer:
        """Create the chapter summarizer for a provider identifier."""

        if provider_id == "gemini":
            return GeminiSummarizer(client, key_pool, model=model)
        raise ValueError(f"Unsupported summarizer provider `{provider_id}`.")

    @staticmethod
    def create_extractor(
        config: ToonslateConfig,
        runtime: ProviderRuntimeConfig,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        logger: RunLogger | None = None,
        sleeper: Callable[[float], None] = sleep,
    ) -> BatchImageExtractor:
        """Create the chunked OCR extractor."""

        return BatchImageExtractor(
            ProviderFactory.create_ocr_provider(runtime.ocr_provider, client, runtime.ocr_model),
            key_pool,
            chunk_size=config.ocr_chunk_size,
            inter_chunk_delay_seconds=config.ocr_chunk_delay_ms / 1000.0,
            use_batch_requests=config.ocr_batch_requests,
            sleeper=sleeper,
            logger=logger,
        )

    @staticmethod
    def create_glossary_resolver(
        config: ToonslateConfig,
        runtime: ProviderRuntimeConfig,
        stores: FileStores,
        client: GeminiClient,
        key_pool: KeyRotationPool,
        logger: RunLogger | None = None,
    ) -> GlossaryResolver:
        """Create a glossary resolver bound to the configured stores."""

        gateway = PersistenceGateway(
            stores.chapters, stores.glossary, stores.notifier, memory=stores.memory, logger=logger
        )
        assistant = ProviderFactory.create_assistant(
            runtime.translator_provider, client, key_pool, runtime.assist_model
        )
        return GlossaryResolver(stores.glossary, provider=assistant, gateway=gateway, logger=logger)

    @staticmethod
    def create_orchestrator(
        config: ToonslateConfig,
        *,
        logger: RunLogger | None = None,
        attempt_callback: AttemptCallback | None = None,
        cancel_event: threading.Event | None = None,
        suggest_glossary_terms: bool = False,
        sleeper: Callable[[float], None] = sleep,
    ) -> TranslationOrchestrator:
        """Assemble a fully wired orchestrator from validated configuration."""

        runtime = config.resolved_provider_runtime()
        key_pool = ProviderFactory.create_key_pool(runtime)
        client = ProviderFactory.create_client(config, sleeper=sleeper)
        stores = FileStores.open(config.data_dir)
        gateway = PersistenceGateway(
            stores.chapters, stores.glossary, stores.notifier, memory=stores.memory, logger=logger
        )
        assistant = ProviderFactory.create_assistant(
            runtime.translator_provider, client, key_pool, runtime.assist_model
        )
        memory = ChapterMemoryManager(
            summarizer=ProviderFactory.create_summarizer(
                runtime.translator_provider, client, key_pool, runtime.assist_model
            ),
            memory_filter=assistant,
            logger=logger,
        )
        return TranslationOrchestrator(
            translator=ProviderFactory.create_translator(
                runtime.translator_provider, client, key_pool, runtime.translate_model
            ),
            glossary=GlossaryResolver(
                stores.glossary, provider=assistant, gateway=gateway, logger=logger
            ),
            memory=memory,
            gateway=gateway,
            extractor=ProviderFactory.create_extractor(
                config, runtime, client, key_pool, logger=logger, sleeper=sleeper
            ),
            series_store=stores.series,
            chapter_store=stores.chapters,
            memory_store=stores.memory,
            retry_policy=RetryPolicy(
                max_retries=config.translate_max_retries,
                base_delay_seconds=config.retry_backoff_base_seconds,
                sleeper=sleeper,
            ),
            source_language=config.source_language,
            target_language=config.target_language,
            max_memory_entries=config.max_memory_entries,
            suggest_glossary_terms=suggest_glossary_terms,
            attempt_callback=attempt_callback,
            cancel_event=cancel_event,
            logger=logger,
        )
