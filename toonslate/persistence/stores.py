"""Storage protocols and filesystem JSON bindings.

Responsibilities:
- Define the chapter, glossary, memory, series, and change-notification seams
  the pipeline persists through.
- Provide deterministic filesystem bindings rooted at one data directory.

Layout under the data directory:
- `series/<id>/series.json`: series metadata.
- `series/<id>/glossary.json`: glossary terms, upserted by source term.
- `series/<id>/glossary_index.json`: derived source-term lookup view.
- `series/<id>/memory.json`: ordered chapter memory entries.
- `chapters/<id>.json`: chapter record with translation history.
- `events.jsonl`: published change notifications, one JSON object per line.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
from pathlib import Path
import threading
from typing import Any, Callable, Protocol

from ..models.datatypes import ChapterRecord, GlossaryTerm, MemoryEntry, SeriesMetadata


class ChapterStore(Protocol):
    """Persistence seam for chapter records."""

    def get(self, chapter_id: str) -> ChapterRecord | None:
        """Return a stored chapter record, if any."""

    def save(self, record: ChapterRecord) -> None:
        """Upsert a chapter record, keeping earlier translations in its history."""

    def list_by_series_id(self, series_id: str) -> list[ChapterRecord]:
        """Return a series' chapters ordered by chapter number."""


class GlossaryStore(Protocol):
    """Persistence seam for series glossary terms."""

    def list_by_series_id(self, series_id: str) -> list[GlossaryTerm]:
        """Return all stored terms for a series."""

    def insert(self, series_id: str, term: GlossaryTerm) -> None:
        """Insert a term, replacing any term with the same source term (case-insensitive)."""

    def refresh_derived_view(self, series_id: str) -> None:
        """Rebuild derived lookup data after glossary writes."""


class MemoryStore(Protocol):
    """Persistence seam for chapter memory entries."""

    def list_by_series_id(self, series_id: str) -> list[MemoryEntry]:
        """Return memory entries for a series, oldest first."""

    def append(self, series_id: str, entry: MemoryEntry) -> None:
        """Append or replace (by entry id) one memory entry."""


class SeriesStore(Protocol):
    """Persistence seam for series metadata."""

    def get(self, series_id: str) -> SeriesMetadata:
        """Return series metadata, falling back to defaults when unknown."""

    def save(self, metadata: SeriesMetadata) -> None:
        """Persist series metadata."""


class ChangeNotifier(Protocol):
    """Publish/subscribe seam for change broadcasts."""

    def publish(self, topic: str, payload: dict[str, object]) -> None:
        """Publish one payload on a topic."""


def _utc_now() -> datetime:
    """Return the current UTC time."""

    return datetime.now(timezone.utc)


def _path_segment(identifier: str, field_name: str) -> str:
    """Validate an identifier used as one filesystem path segment."""

    segment = identifier.strip()
    if not segment or segment in {".", ".."} or "/" in segment or "\\" in segment:
        raise ValueError(f"`{field_name}` is not a valid storage identifier: {identifier!r}.")
    return segment


class JsonDocumentStore:
    """Filesystem JSON document access shared by the concrete stores."""

    def __init__(self, root: Path) -> None:
        """Initialize the store with a root data directory."""

        self.root = root
        self._lock = threading.Lock()

    def read_json(self, relative_path: Path, default: Any) -> Any:
        """Load a JSON document, returning `default` when it does not exist."""

        path = self.root / relative_path
        if not path.exists():
            return default
        return json.loads(path.read_text(encoding="utf-8"))

    def write_json(self, relative_path: Path, payload: object) -> Path:
        """Save a JSON-serializable payload and return the final path."""

        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        temp_path.write_text(
            json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )
        temp_path.replace(path)
        return path

    def append_line(self, relative_path: Path, payload: dict[str, object]) -> Path:
        """Append one compact JSON line to a log file."""

        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False, sort_keys=True) + "\n")
        return path


class FileChapterStore:
    """Chapter records stored as `chapters/<id>.json`."""

    def __init__(self, documents: JsonDocumentStore, clock: Callable[[], datetime] = _utc_now) -> None:
        """Initialize with shared document access and a timestamp clock."""

        self.documents = documents
        self.clock = clock

    @staticmethod
    def _relative_path(chapter_id: str) -> Path:
        return Path("chapters") / f"{_path_segment(chapter_id, 'chapter_id')}.json"

    def get(self, chapter_id: str) -> ChapterRecord | None:
        """Return a stored chapter record, if any."""

        payload = self.documents.read_json(self._relative_path(chapter_id), None)
        if not isinstance(payload, dict):
            return None
        return ChapterRecord.from_dict(payload)

    def save(self, record: ChapterRecord) -> None:
        """Upsert a chapter, appending a replaced translation to its history."""

        existing = self.get(record.chapter_id)
        history = list(existing.history) if existing is not None else list(record.history)
        if (
            existing is not None
            and existing.translated_text
            and existing.translated_text != record.translated_text
        ):
            history.append(
                {
                    "translated_text": existing.translated_text,
                    "saved_at": self.clock().isoformat(),
                }
            )
        payload = {
            "chapter_id": record.chapter_id,
            "series_id": record.series_id or (existing.series_id if existing else ""),
            "chapter_number": record.chapter_number or (existing.chapter_number if existing else 0.0),
            "extracted_text": record.extracted_text,
            "translated_text": record.translated_text,
            "memory_summary": record.memory_summary,
            "history": [dict(item) for item in history],
            "updated_at": self.clock().isoformat(),
        }
        self.documents.write_json(self._relative_path(record.chapter_id), payload)

    def list_by_series_id(self, series_id: str) -> list[ChapterRecord]:
        """Return a series' chapters ordered by chapter number, then identifier."""

        chapters_dir = self.documents.root / "chapters"
        if not chapters_dir.exists():
            return []
        records = []
        for path in sorted(chapters_dir.glob("*.json")):
            record = self.get(path.stem)
            if record is not None and record.series_id == series_id:
                records.append(record)
        return sorted(records, key=lambda record: (record.chapter_number, record.chapter_id))


class FileGlossaryStore:
    """Glossary terms stored per series with a derived lookup index."""

    def __init__(self, documents: JsonDocumentStore) -> None:
        """Initialize with shared document access."""

        self.documents = documents

    @staticmethod
    def _series_dir(series_id: str) -> Path:
        return Path("series") / _path_segment(series_id, "series_id")

    def list_by_series_id(self, series_id: str) -> list[GlossaryTerm]:
        """Return all stored terms for a series in insertion order."""

        payload = self.documents.read_json(self._series_dir(series_id) / "glossary.json", [])
        return [GlossaryTerm.from_dict(item) for item in payload if isinstance(item, dict)]

    def insert(self, series_id: str, term: GlossaryTerm) -> None:
        """Upsert a term by case-insensitive source term."""

        terms = self.list_by_series_id(series_id)
        key = term.source_term.casefold()
        replaced = False
        for index, existing in enumerate(terms):
            if existing.source_term.casefold() == key:
                terms[index] = term
                replaced = True
                break
        if not replaced:
            terms.append(term)
        self.documents.write_json(
            self._series_dir(series_id) / "glossary.json",
            [item.to_dict() for item in terms],
        )

    def refresh_derived_view(self, series_id: str) -> None:
        """Rebuild the source-term index used for fast prompt assembly."""

        index = {
            term.source_term: term.to_context_entry()
            for term in self.list_by_series_id(series_id)
        }
        self.documents.write_json(self._series_dir(series_id) / "glossary_index.json", index)


class FileMemoryStore:
    """Chapter memory entries stored as one ordered list per series."""

    def __init__(self, documents: JsonDocumentStore) -> None:
        """Initialize with shared document access."""

        self.documents = documents

    @staticmethod
    def _relative_path(series_id: str) -> Path:
        return Path("series") / _path_segment(series_id, "series_id") / "memory.json"

    def list_by_series_id(self, series_id: str) -> list[MemoryEntry]:
        """Return memory entries for a series, oldest first."""

        payload = self.documents.read_json(self._relative_path(series_id), [])
        return [MemoryEntry.from_dict(item) for item in payload if isinstance(item, dict)]

    def append(self, series_id: str, entry: MemoryEntry) -> None:
        """Append an entry, replacing an earlier one with the same entry id."""

        entries = [
            existing
            for existing in self.list_by_series_id(series_id)
            if not entry.entry_id or existing.entry_id != entry.entry_id
        ]
        entries.append(entry)
        self.documents.write_json(
            self._relative_path(series_id),
            [item.to_dict() for item in entries],
        )


class FileSeriesStore:
    """Series metadata stored as `series/<id>/series.json`."""

    def __init__(self, documents: JsonDocumentStore) -> None:
        """Initialize with shared document access."""

        self.documents = documents

    @staticmethod
    def _relative_path(series_id: str) -> Path:
        return Path("series") / _path_segment(series_id, "series_id") / "series.json"

    def get(self, series_id: str) -> SeriesMetadata:
        """Return stored metadata, or defaults for an unknown series."""

        payload = self.documents.read_json(self._relative_path(series_id), {})
        if not isinstance(payload, dict):
            payload = {}
        return SeriesMetadata.from_dict(series_id, payload)

    def save(self, metadata: SeriesMetadata) -> None:
        """Persist series metadata."""

        self.documents.write_json(
            self._relative_path(metadata.series_id),
            {
                "title": metadata.title,
                "genres": list(metadata.genres),
                "tone_notes": metadata.tone_notes,
                "description": metadata.description,
                "source_language": metadata.source_language,
            },
        )


class JsonlChangeNotifier:
    """Change notifier that appends events to `events.jsonl` and fans out to subscribers."""

    def __init__(
        self,
        documents: JsonDocumentStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize with shared document access and a timestamp clock."""

        self.documents = documents
        self.clock = clock
        self._subscribers: list[Callable[[str, dict[str, object]], None]] = []

    def subscribe(self, callback: Callable[[str, dict[str, object]], None]) -> None:
        """Register an in-process subscriber for published events."""

        self._subscribers.append(callback)

    def publish(self, topic: str, payload: dict[str, object]) -> None:
        """Record one event and deliver it to in-process subscribers."""

        self.documents.append_line(
            Path("events.jsonl"),
            {"topic": topic, "payload": payload, "published_at": self.clock().isoformat()},
        )
        for callback in list(self._subscribers):
            callback(topic, payload)


@dataclass(frozen=True, slots=True)
class FileStores:
    """Filesystem store bundle rooted at one data directory."""

    chapters: FileChapterStore
    glossary: FileGlossaryStore
    memory: FileMemoryStore
    series: FileSeriesStore
    notifier: JsonlChangeNotifier

    @classmethod
    def open(cls, data_dir: Path) -> FileStores:
        """Create all filesystem bindings sharing one document store."""

        documents = JsonDocumentStore(data_dir)
        return cls(
            chapters=FileChapterStore(documents),
            glossary=FileGlossaryStore(documents),
            memory=FileMemoryStore(documents),
            series=FileSeriesStore(documents),
            notifier=JsonlChangeNotifier(documents),
        )
