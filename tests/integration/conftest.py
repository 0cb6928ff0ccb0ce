"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Sequence

import pytest

from toonslate.llm.gemini_client import GeminiClient

TRANSLATION_RESPONSE = """1. **IMPROVED TEXT:**
=== Page 1 ===
"": Hi, Minji. Welcome to Seoul.
[]: The next morning.
=== End Page 1 ===

2. **ISSUES:**
- Greeting sounds stiff

3. **SUGGESTIONS:**
- Replace "Hi, Minji." with "Hey, Minji."

4. **CULTURAL NOTES:**
None

5. **GLOSSARY ENTRIES:**
```json
[{"sourceTerm": "민지", "translatedTerm": "Minji", "entityType": "Person", "gender": "Female", "termType": "Character Name"}]
```

6. **CHAPTER MEMORY:**
Minji arrives in Seoul.

7. **CHAPTER SUMMARY:**
An arrival.
"""

SUMMARY_RESPONSE = (
    '{"summary": "Minji arrives in Seoul.", "tags": ["Minji", "Seoul"], '
    '"keyEvents": ["Arrival"]}'
)

GLOSSARY_RESPONSE = (
    '{"suggestedTerms": [{"sourceTerm": "민지", "translatedTerm": "Minji", '
    '"suggestedCategory": "Character", "entityType": "Person", "gender": "Female"}]}'
)

_PROMPT_STAGES = (
    ("You are an expert OCR assistant", "ocr"),
    ("You are an expert translator and proofreader", "translate"),
    ("As a glossary assistant", "glossary"),
    ("As a story context memory assistant", "summary"),
    ("As a memory filtering assistant", "memory_filter"),
)


class FakeGeminiBackend:
    """Scripted Gemini responses keyed by the prompt's task."""

    def __init__(self) -> None:
        self.responses: dict[str, str] = {
            "ocr": '"": 안녕, 민지. 서울에 온 걸 환영해.',
            "translate": TRANSLATION_RESPONSE,
            "glossary": GLOSSARY_RESPONSE,
            "summary": SUMMARY_RESPONSE,
            "memory_filter": '{"relevantMemoryIds": []}',
        }
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, str, int]] = []
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def respond(self, api_key: str, prompt: str, images: Sequence[tuple[bytes, str]]) -> str:
        stage = next(
            (name for prefix, name in _PROMPT_STAGES if prompt.startswith(prefix)),
            "unknown",
        )
        with self._lock:
            self.calls.append((stage, api_key, len(images)))
            self.prompts.append(prompt)
        if stage in self.failures:
            raise self.failures[stage]
        return self.responses.get(stage, "")

    def stages(self) -> list[str]:
        return [stage for stage, _, _ in self.calls]

    def keys_for(self, stage: str) -> list[str]:
        return [key for name, key, _ in self.calls if name == stage]

    def prompts_for(self, stage: str) -> list[str]:
        return [
            prompt for (name, _, _), prompt in zip(self.calls, self.prompts) if name == stage
        ]


class InMemoryCredentialStore:
    """Credential store replacement that never touches the OS keyring."""

    def __init__(self) -> None:
        self.api_keys: tuple[str, ...] = ()
        self.available = True

    def is_available(self) -> bool:
        return self.available

    def get_api_keys(self) -> tuple[str, ...]:
        return self.api_keys

    def set_api_keys(self, api_keys: Sequence[str]) -> None:
        self.api_keys = tuple(api_keys)

    def clear_api_keys(self) -> bool:
        removed = bool(self.api_keys)
        self.api_keys = ()
        return removed


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove host configuration so commands only see test-provided values."""

    for key in ("GEMINI_API_KEYS", "GEMINI_API_KEY"):
        monkeypatch.delenv(key, raising=False)
    for key in list(os.environ):
        if key.startswith("TOONSLATE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def gemini_backend(monkeypatch: pytest.MonkeyPatch) -> FakeGeminiBackend:
    """Mock Gemini calls in integration tests to avoid network/key requirements."""

    backend = FakeGeminiBackend()

    def _mock_generate_text(
        self: GeminiClient,
        *,
        api_key: str,
        model: str,
        prompt: str,
        images: Sequence[tuple[bytes, str]] = (),
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
    ) -> str:
        _ = (self, model, temperature, max_output_tokens)
        return backend.respond(api_key, prompt, images)

    monkeypatch.setattr(GeminiClient, "generate_text", _mock_generate_text)
    return backend


@pytest.fixture(autouse=True)
def credential_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryCredentialStore:
    """Route CLI credential storage to an in-memory store."""

    store = InMemoryCredentialStore()
    monkeypatch.setattr("toonslate.cli.create_credential_store", lambda: store)
    return store


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Return an isolated store directory."""

    return tmp_path / "data"


@pytest.fixture
def page_images(tmp_path: Path) -> list[Path]:
    """Write two small placeholder page images."""

    paths = []
    for index in (1, 2):
        path = tmp_path / f"page-{index:03d}.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n" + bytes([index]))
        paths.append(path)
    return paths
