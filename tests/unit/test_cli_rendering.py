"""Unit tests for CLI output and error rendering helpers."""

from __future__ import annotations

import pytest
import typer

from toonslate.cli_rendering import (
    echo_extraction_report,
    echo_glossary_terms,
    echo_memory_entries,
    echo_quality_summary,
    echo_review_session,
    exit_with_command_error,
    stage_error_for,
)
from toonslate.errors import (
    ConfigurationError,
    ParseError,
    PendingReviewError,
    PersistenceError,
    PipelineStageError,
    ProviderError,
    RateLimitError,
    TranslationFailedError,
    ValidationError,
)
from toonslate.models.datatypes import (
    ExtractionReport,
    GlossaryTerm,
    ImageExtractionResult,
    MemoryEntry,
    ReviewStatus,
)
from toonslate.review.session import ReviewSession


def test_exit_with_command_error_renders_stage_error_with_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print stage diagnostics and hint before exiting with code 1."""

    error = PipelineStageError(
        stage="extract",
        detail="No image files found in `pages/`.",
        hint="Pass a directory containing PNG, JPEG, or WEBP page images.",
    )

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("extract", error)

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "extract failed at stage `extract`: No image files found" in captured.err
    assert "Hint: Pass a directory containing PNG" in captured.err


def test_exit_with_command_error_renders_non_stage_fallback(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print fallback exception text for non-stage failures."""

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("translate", RuntimeError("unexpected store error"))

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "translate failed: unexpected store error" in captured.err
    assert "Hint:" not in captured.err


@pytest.mark.parametrize(
    ("error", "expected_stage", "hint_fragment"),
    [
        (ConfigurationError("No API keys configured."), "config", "GEMINI_API_KEYS"),
        (PendingReviewError(["s1", "g2"]), "review", "--approve-all"),
        (PersistenceError("disk full"), "persist", "data_dir"),
        (ValidationError("Series id must not be blank."), "translate", "command inputs"),
        (
            ProviderError("bad key", failure_kind="invalid_api_key", status_code=401),
            "translate",
            "credentials --set-api-keys",
        ),
        (
            ProviderError("no model", failure_kind="invalid_model", status_code=404),
            "translate",
            "--model-translate",
        ),
        (RateLimitError("slow down", failure_kind="rate_limit"), "translate", "GEMINI_API_KEYS"),
    ],
)
def test_stage_error_for_maps_pipeline_exceptions(
    error: Exception,
    expected_stage: str,
    hint_fragment: str,
) -> None:
    """Pipeline exceptions map onto stage-aware errors with actionable hints."""

    stage_error = stage_error_for("translate", error)

    assert stage_error.stage == expected_stage
    assert hint_fragment in (stage_error.hint or "")


def test_stage_error_for_uses_concise_provider_detail() -> None:
    """Known provider failure kinds use fixed detail text instead of raw messages."""

    error = ProviderError("HTTP 401 raw body", failure_kind="invalid_api_key", status_code=401)

    assert stage_error_for("extract", error).detail == (
        "Provider authentication failed for the Gemini API credentials."
    )


def test_stage_error_for_translation_failure_hints_from_cause() -> None:
    """Exhausted retries keep the failure message and hint from the last cause."""

    parse_failure = TranslationFailedError(
        "Translation failed after 4 attempt(s): no JSON object found",
        attempts=4,
        last_error=ParseError("no JSON object found"),
    )
    provider_failure = TranslationFailedError(
        "Translation failed after 2 attempt(s): timed out",
        attempts=2,
        last_error=ProviderError("timed out", failure_kind="timeout"),
    )

    parse_error = stage_error_for("translate", parse_failure)
    provider_error = stage_error_for("translate", provider_failure)

    assert parse_error.detail == "Translation failed after 4 attempt(s): no JSON object found"
    assert "malformed output" in (parse_error.hint or "")
    assert "request_timeout_seconds" in (provider_error.hint or "")


def test_stage_error_for_passes_stage_errors_through() -> None:
    """Existing stage errors are returned unchanged."""

    error = PipelineStageError(stage="credentials", detail="no backend")

    assert stage_error_for("translate", error) is error


def test_echo_extraction_report_lists_rows_and_totals(capsys: pytest.CaptureFixture[str]) -> None:
    """Extraction rows show per-page outcomes followed by totals."""

    report = ExtractionReport(
        results=(
            ImageExtractionResult(page_number=1, extracted_text="안녕", file_name="001.png"),
            ImageExtractionResult(
                page_number=2,
                success=False,
                error="quota",
                error_kind="rate_limit",
                file_name="002.png",
            ),
        ),
        cancelled=True,
    )

    echo_extraction_report(report)

    output = capsys.readouterr().out
    assert "Page 1 (001.png): ok (2 chars)" in output
    assert "Page 2 (002.png): failed [rate_limit] quota" in output
    assert "Extracted: 1 ok, 1 failed" in output
    assert "Rate limited pages: 2" in output
    assert "Extraction was cancelled." in output


def test_echo_review_session_marks_modified_terms(capsys: pytest.CaptureFixture[str]) -> None:
    """Review listing shows ids, statuses, and an edit marker for changed terms."""

    session = ReviewSession(
        suggestions=["Tighten page 1 narration"],
        glossary_terms=[GlossaryTerm(source_term="민지", translated_term="Minji", term_type="Person")],
    )
    session.edit("g1", "Min-ji")
    session.approve("s1")

    echo_review_session(session)

    output = capsys.readouterr().out
    assert "Suggestions:" in output
    assert "[s1] (approved) Tighten page 1 narration" in output
    assert "[g1] (pending) 민지 -> Min-ji [Person] *" in output


def test_echo_glossary_terms_sorts_rows(capsys: pytest.CaptureFixture[str]) -> None:
    """Glossary rows are sorted case-insensitively by source term."""

    echo_glossary_terms(
        [
            GlossaryTerm(source_term="seoul", translated_term="Seoul", status=ReviewStatus.APPROVED),
            GlossaryTerm(source_term="Busan", translated_term="Busan", term_type="Place"),
        ]
    )

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "Busan -> Busan [Place] (pending)",
        "seoul -> Seoul [Other] (approved)",
    ]


def test_echo_empty_listings(capsys: pytest.CaptureFixture[str]) -> None:
    """Empty glossary and memory listings print a placeholder."""

    echo_glossary_terms([])
    echo_memory_entries([])

    output = capsys.readouterr().out
    assert "No glossary terms." in output
    assert "No memory entries." in output


def test_echo_memory_entries_includes_tags_and_events(capsys: pytest.CaptureFixture[str]) -> None:
    """Memory rows show summary with optional tags and key events."""

    echo_memory_entries(
        [
            MemoryEntry(
                summary="Minji joins the guild.",
                tags=("Minji", "guild"),
                key_events=("Guild exam", "First quest"),
                entry_id="m1",
            ),
            MemoryEntry(summary="Quiet chapter."),
        ]
    )

    output = capsys.readouterr().out
    assert "- [m1] Minji joins the guild." in output
    assert "Tags: Minji, guild" in output
    assert "Key events: Guild exam; First quest" in output
    assert "- [?] Quiet chapter." in output


def test_echo_quality_summary_reports_missing_tags(capsys: pytest.CaptureFixture[str]) -> None:
    """Quality summary lists header presence, tag consistency, and readability."""

    echo_quality_summary('"": Only dialogue here.')

    output = capsys.readouterr().out
    assert "Page headers present: no" in output
    assert "Tag consistency: missing (), []" in output
    assert "Readability score:" in output
