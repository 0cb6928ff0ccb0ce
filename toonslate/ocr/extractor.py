"""Chunked concurrent OCR extraction over uploaded page images.

Responsibilities:
- Split uploads into consecutive chunks and run each chunk's requests concurrently.
- Draw one rotating credential per provider request.
- Convert every per-image or per-chunk failure into a failed result slot so one
  bad image never aborts the batch.
- Report progress after each chunk and honor cooperative cancellation between chunks.

Key types:
- `ExtractionMode`: batched (chunked, concurrent) or single (sequential) processing.
- `BatchImageExtractor`: extraction entry point returning an `ExtractionReport`.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
import threading
from time import sleep
from typing import Callable, Sequence

from ..errors import ConfigurationError, ParseError, ProviderError, RateLimitError, TransientProviderError
from ..llm.key_pool import KeyRotationPool
from ..models.datatypes import ExtractionReport, ImageExtractionResult, ImageInput
from ..telemetry.logger import RunLogger
from .provider import BatchOCRProvider, OCRProvider

ProgressCallback = Callable[[int, int], None]


class ExtractionMode(str, Enum):
    """How uploaded images are dispatched to the OCR provider."""

    BATCHED = "batched"
    SINGLE = "single"


def _classify_failure(exc: Exception) -> str:
    """Map an extraction exception onto a result `error_kind`."""

    if isinstance(exc, RateLimitError):
        return "rate_limit"
    if isinstance(exc, TransientProviderError):
        return "transient"
    if isinstance(exc, ParseError):
        return "parse"
    return "provider"


def _failed(image: ImageInput, message: str, error_kind: str) -> ImageExtractionResult:
    """Build a failed result slot for one image."""

    return ImageExtractionResult(
        page_number=image.page_number,
        success=False,
        error=message,
        error_kind=error_kind,
        file_name=image.file_name,
    )


class BatchImageExtractor:
    """Run OCR over page images in chunks with bounded concurrency."""

    def __init__(
        self,
        provider: OCRProvider,
        key_pool: KeyRotationPool,
        *,
        chunk_size: int = 3,
        inter_chunk_delay_seconds: float = 0.5,
        use_batch_requests: bool = False,
        sleeper: Callable[[float], None] = sleep,
        logger: RunLogger | None = None,
    ) -> None:
        """Initialize extraction policy, provider, and credential pool."""

        if chunk_size < 1:
            raise ValueError("`chunk_size` must be at least 1.")
        if inter_chunk_delay_seconds < 0:
            raise ValueError("`inter_chunk_delay_seconds` must be non-negative.")
        self.provider = provider
        self.key_pool = key_pool
        self.chunk_size = chunk_size
        self.inter_chunk_delay_seconds = inter_chunk_delay_seconds
        self.use_batch_requests = use_batch_requests
        self.sleeper = sleeper
        self.logger = logger

    def extract(
        self,
        images: Sequence[ImageInput],
        source_language: str,
        mode: ExtractionMode = ExtractionMode.BATCHED,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionReport:
        """Extract text from every image and return one result per input.

        Results are ordered by page number, ties broken by upload order. Images
        left undispatched after cancellation are reported as `cancelled` failures.
        """

        total = len(images)
        slots: list[ImageExtractionResult | None] = [None] * total
        if total == 0:
            return ExtractionReport(results=())

        chunk_size = self.chunk_size if mode == ExtractionMode.BATCHED else 1
        chunks = [
            list(range(start, min(start + chunk_size, total)))
            for start in range(0, total, chunk_size)
        ]
        self._log_event("start", images=total, chunks=len(chunks), mode=mode.value)

        processed = 0
        cancelled = False
        for chunk_number, indices in enumerate(chunks):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            if chunk_number > 0 and mode == ExtractionMode.BATCHED and self.inter_chunk_delay_seconds:
                self.sleeper(self.inter_chunk_delay_seconds)
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break

            chunk_images = [images[index] for index in indices]
            try:
                chunk_results = self._run_chunk(chunk_images, source_language)
            except ConfigurationError:
                raise
            except Exception as exc:  # noqa: BLE001 - a failed batch request fails only its chunk.
                message = f"Chunk {chunk_number + 1} failed: {exc}"
                chunk_results = [_failed(image, message, "chunk") for image in chunk_images]
                self._log_warning("chunk_failed", chunk=chunk_number + 1, error_type=type(exc).__name__)
            for index, result in zip(indices, chunk_results):
                slots[index] = result

            processed += len(indices)
            rate_limited = sum(1 for result in chunk_results if result.error_kind == "rate_limit")
            if rate_limited:
                self._log_warning("rate_limited", chunk=chunk_number + 1, images=rate_limited)
            self._log_event("chunk_complete", chunk=chunk_number + 1, processed=processed, total=total)
            if progress_callback is not None:
                progress_callback(processed, total)

        filled = [
            slot if slot is not None else _failed(image, "Extraction was cancelled.", "cancelled")
            for slot, image in zip(slots, images)
        ]
        ordered = sorted(range(total), key=lambda index: (images[index].page_number, index))
        report = ExtractionReport(
            results=tuple(filled[index] for index in ordered),
            cancelled=cancelled,
        )
        if self.logger is not None:
            self.logger.log_stage_complete(
                "extract",
                succeeded=report.success_count,
                failed=report.failure_count,
                cancelled=cancelled,
            )
            self.logger.log_event("keys", "usage", **self.key_pool.usage_stats())
        return report

    def extract_single(
        self,
        image: ImageInput,
        source_language: str,
        *,
        prefer_least_used: bool = False,
    ) -> ImageExtractionResult:
        """Extract one image through the single-image path; never raises provider errors.

        With `prefer_least_used`, the least-used credential is drawn instead of the
        next one in rotation.
        """

        return self._extract_one(image, source_language, prefer_least_used=prefer_least_used)

    def _run_chunk(
        self,
        chunk_images: list[ImageInput],
        source_language: str,
    ) -> list[ImageExtractionResult]:
        """Process one chunk and return results in chunk order."""

        provider = self.provider
        if self.use_batch_requests and len(chunk_images) > 1 and isinstance(provider, BatchOCRProvider):
            return self._run_batch_request(provider, chunk_images, source_language)
        if len(chunk_images) == 1:
            return [self._extract_one(chunk_images[0], source_language)]
        with ThreadPoolExecutor(max_workers=len(chunk_images)) as executor:
            futures = [
                executor.submit(self._extract_one, image, source_language)
                for image in chunk_images
            ]
            return [future.result() for future in futures]

    def _run_batch_request(
        self,
        provider: BatchOCRProvider,
        chunk_images: list[ImageInput],
        source_language: str,
    ) -> list[ImageExtractionResult]:
        """Process a chunk with one multi-image request."""

        try:
            credential = self.key_pool.get_next_key()
            pairs = provider.extract_batch(chunk_images, source_language, credential)
        except ConfigurationError:
            raise
        except (ProviderError, ParseError) as exc:
            kind = _classify_failure(exc)
            return [_failed(image, str(exc), kind if kind == "rate_limit" else "chunk") for image in chunk_images]
        texts = dict(pairs)
        return [
            ImageExtractionResult(
                page_number=image.page_number,
                extracted_text=texts.get(position, ""),
                file_name=image.file_name,
            )
            for position, image in enumerate(chunk_images)
        ]

    def _extract_one(
        self,
        image: ImageInput,
        source_language: str,
        *,
        prefer_least_used: bool = False,
    ) -> ImageExtractionResult:
        """Run OCR for one image and convert failures into a failed slot."""

        try:
            if prefer_least_used:
                credential = self.key_pool.least_used_key(claim=True)
            else:
                credential = self.key_pool.get_next_key()
            text = self.provider.extract_text(image.data, image.mime_type, source_language, credential)
        except ConfigurationError:
            raise
        except (ProviderError, ParseError) as exc:
            return _failed(image, str(exc), _classify_failure(exc))
        except Exception as exc:  # noqa: BLE001 - one image never aborts its siblings.
            self._log_warning(
                "image_failed", page=image.page_number, error_type=type(exc).__name__
            )
            return _failed(image, f"Unexpected OCR error: {exc}", "provider")
        return ImageExtractionResult(
            page_number=image.page_number,
            extracted_text=text,
            file_name=image.file_name,
        )

    def _log_event(self, event: str, **context: object) -> None:
        """Emit an extraction log event when a logger is configured."""

        if self.logger is not None:
            self.logger.log_event("extract", event, **context)

    def _log_warning(self, event: str, **context: object) -> None:
        """Emit an extraction warning when a logger is configured."""

        if self.logger is not None:
            self.logger.log_warning("extract", event, **context)
