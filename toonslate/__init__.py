"""Top-level package for Toonslate.

This package translates webtoon/manhwa chapters: page images are OCR'd in
rate-limited chunks, translated with a series glossary and story memory, gated
on human review, and persisted per series. The main orchestration entry point
is `TranslationOrchestrator`.
"""

from .config import ConfigLoader, ToonslateConfig
from .pipeline import PipelineState, TranslationOrchestrator

__all__ = [
    "ConfigLoader",
    "PipelineState",
    "ToonslateConfig",
    "TranslationOrchestrator",
    "__version__",
]

__version__ = "0.1.0"
