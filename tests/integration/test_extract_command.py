"""Integration tests for the `extract` command."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from toonslate.cli import app
from toonslate.errors import RateLimitError


def test_extract_command_writes_pages_json(
    tmp_path: Path,
    data_dir: Path,
    page_images: list[Path],
    gemini_backend,
) -> None:
    """Extract should OCR every image, rotate keys, and write a pages artifact."""

    out_path = tmp_path / "out" / "pages.json"
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "extract",
            *[str(path) for path in page_images],
            "--out",
            str(out_path),
            "--data-dir",
            str(data_dir),
            "--api-keys",
            "key-a,key-b",
            "--no-store-api-keys",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "[progress] command=extract images=2/2" in result.output
    assert "Page 1 (page-001.png): ok" in result.output
    assert "Page 2 (page-002.png): ok" in result.output
    assert "Extracted: 2 ok, 0 failed" in result.output
    assert f"Pages: {out_path}" in result.output

    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert [page["page_number"] for page in payload["pages"]] == [1, 2]
    assert payload["pages"][0]["extracted_text"] == '"": 안녕, 민지. 서울에 온 걸 환영해.'
    assert payload["report"]["success_count"] == 2
    assert sorted(gemini_backend.keys_for("ocr")) == ["key-a", "key-b"]
    assert all(count == 1 for stage, _, count in gemini_backend.calls if stage == "ocr")


def test_extract_command_honors_start_page_and_single_mode(
    tmp_path: Path,
    data_dir: Path,
    page_images: list[Path],
) -> None:
    """Single mode processes images one at a time and numbers from `--start-page`."""

    out_path = tmp_path / "pages.json"
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "extract",
            *[str(path) for path in page_images],
            "--out",
            str(out_path),
            "--start-page",
            "5",
            "--mode",
            "single",
            "--data-dir",
            str(data_dir),
            "--api-keys",
            "key-a",
            "--no-store-api-keys",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "[progress] command=extract images=1/2" in result.output
    assert "[progress] command=extract images=2/2" in result.output
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert [page["page_number"] for page in payload["pages"]] == [5, 6]


def test_extract_command_fails_when_every_page_is_rate_limited(
    tmp_path: Path,
    data_dir: Path,
    page_images: list[Path],
    gemini_backend,
) -> None:
    """Rate-limited pages are listed and the command exits non-zero without output."""

    gemini_backend.failures["ocr"] = RateLimitError(
        "Gemini API rate limit reached.", failure_kind="rate_limit", status_code=429
    )
    out_path = tmp_path / "pages.json"
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "extract",
            *[str(path) for path in page_images],
            "--out",
            str(out_path),
            "--data-dir",
            str(data_dir),
            "--api-keys",
            "key-a",
            "--no-store-api-keys",
        ],
    )

    assert result.exit_code == 1
    assert "Page 1 (page-001.png): failed [rate_limit]" in result.output
    assert "Rate limited pages: 1, 2" in result.output
    assert "extract failed at stage `extract`: No page image could be extracted." in result.output
    assert "ocr_chunk_delay_ms" in result.output
    assert not out_path.exists()


def test_extract_command_without_keys_reports_config_error(
    tmp_path: Path,
    data_dir: Path,
    page_images: list[Path],
    gemini_backend,
) -> None:
    """Missing credentials abort extraction with a configuration hint."""

    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "extract",
            str(page_images[0]),
            "--out",
            str(tmp_path / "pages.json"),
            "--data-dir",
            str(data_dir),
        ],
    )

    assert result.exit_code == 1
    assert "extract failed at stage `config`: No API keys configured." in result.output
    assert "Hint: Set `GEMINI_API_KEYS`" in result.output
    assert gemini_backend.calls == []


def test_extract_command_reports_unreadable_image(tmp_path: Path, data_dir: Path) -> None:
    """Missing image paths fail at the input stage."""

    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "extract",
            str(tmp_path / "missing.png"),
            "--data-dir",
            str(data_dir),
            "--api-keys",
            "key-a",
            "--no-store-api-keys",
        ],
    )

    assert result.exit_code == 1
    assert "extract failed at stage `extract-input`" in result.output
    assert "missing.png" in result.output
