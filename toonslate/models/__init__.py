"""Shared typed data models for Toonslate.

This package contains dataclasses used across pipeline modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    ChapterRecord,
    CharacterRole,
    EntityType,
    ExtractionReport,
    Gender,
    GlossaryTerm,
    ImageExtractionResult,
    ImageInput,
    MemoryEntry,
    Page,
    QualityReport,
    ReviewStatus,
    SeriesMetadata,
    TranslationRequest,
    TranslationResult,
)

__all__ = [
    "ChapterRecord",
    "CharacterRole",
    "EntityType",
    "ExtractionReport",
    "Gender",
    "GlossaryTerm",
    "ImageExtractionResult",
    "ImageInput",
    "MemoryEntry",
    "Page",
    "QualityReport",
    "ReviewStatus",
    "SeriesMetadata",
    "TranslationRequest",
    "TranslationResult",
]
