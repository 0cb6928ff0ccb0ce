"""Persistence protocols, filesystem bindings, and the write gateway."""

from .gateway import GLOSSARY_CHANGED_TOPIC, PersistenceGateway
from .stores import (
    ChangeNotifier,
    ChapterStore,
    FileChapterStore,
    FileGlossaryStore,
    FileMemoryStore,
    FileSeriesStore,
    FileStores,
    GlossaryStore,
    JsonDocumentStore,
    JsonlChangeNotifier,
    MemoryStore,
    SeriesStore,
)

__all__ = [
    "ChangeNotifier",
    "ChapterStore",
    "FileChapterStore",
    "FileGlossaryStore",
    "FileMemoryStore",
    "FileSeriesStore",
    "FileStores",
    "GLOSSARY_CHANGED_TOPIC",
    "GlossaryStore",
    "JsonDocumentStore",
    "JsonlChangeNotifier",
    "MemoryStore",
    "PersistenceGateway",
    "SeriesStore",
]
