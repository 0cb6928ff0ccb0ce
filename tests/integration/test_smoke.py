"""Smoke tests for the end-to-end extract, translate, and inspect flow."""

from pathlib import Path

from typer.testing import CliRunner

from toonslate.cli import app


def test_help_lists_every_command() -> None:
    """Top-level help should list the user-facing command groups."""

    runner = CliRunner()
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("extract", "translate", "glossary", "memory", "series", "credentials"):
        assert command in result.output


def test_extract_then_translate_smoke(
    tmp_path: Path,
    data_dir: Path,
    page_images: list[Path],
    gemini_backend,
) -> None:
    """Extracted pages should feed translation and leave inspectable store data."""

    runner = CliRunner()
    pages_path = tmp_path / "pages.json"
    common = ["--data-dir", str(data_dir), "--api-keys", "key-a,key-b", "--no-store-api-keys"]

    extracted = runner.invoke(
        app, ["extract", *[str(path) for path in page_images], "--out", str(pages_path), *common]
    )
    assert extracted.exit_code == 0, extracted.output

    translated = runner.invoke(
        app,
        [
            "translate",
            str(pages_path),
            "--series",
            "smoke",
            "--chapter",
            "1",
            "--approve-all",
            "--out",
            str(tmp_path / "chapter-1.txt"),
            *common,
        ],
    )
    assert translated.exit_code == 0, translated.output

    memory = runner.invoke(app, ["memory", "show", "--series", "smoke", "--data-dir", str(data_dir)])
    assert "Minji arrives in Seoul." in memory.output
    assert (tmp_path / "chapter-1.txt").read_text(encoding="utf-8").startswith("=== Page 1 ===")
    assert gemini_backend.stages()[:2] == ["ocr", "ocr"]
    assert "translate" in gemini_backend.stages()
