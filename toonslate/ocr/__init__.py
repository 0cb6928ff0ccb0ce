"""OCR providers and chunked page-image extraction."""

from .extractor import BatchImageExtractor, ExtractionMode
from .provider import BatchOCRProvider, GeminiOCRProvider, OCRProvider, clean_ocr_text

__all__ = [
    "BatchImageExtractor",
    "BatchOCRProvider",
    "ExtractionMode",
    "GeminiOCRProvider",
    "OCRProvider",
    "clean_ocr_text",
]
