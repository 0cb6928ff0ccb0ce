"""Chapter memory derivation and relevance selection."""

from .manager import DEFAULT_MAX_MEMORY_ENTRIES, ChapterMemoryManager

__all__ = ["ChapterMemoryManager", "DEFAULT_MAX_MEMORY_ENTRIES"]
