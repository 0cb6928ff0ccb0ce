"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
extraction reports, review items, glossary rows, and quality summaries.
"""

from __future__ import annotations

from typing import NoReturn, Sequence

import typer

from .errors import (
    ConfigurationError,
    PendingReviewError,
    PersistenceError,
    PipelineStageError,
    ProviderError,
    TranslationFailedError,
    ValidationError,
)
from .models.datatypes import ExtractionReport, GlossaryTerm, MemoryEntry
from .review.session import ReviewSession
from .text.quality import analyze_formatting, readability_score


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def _provider_error_detail(exc: ProviderError) -> str:
    """Build concise detail text for provider-backed failures."""

    mapping = {
        "invalid_api_key": "Provider authentication failed for the Gemini API credentials.",
        "invalid_model": "Provider rejected the configured model for this request.",
        "rate_limit": "Provider rate limit was reached for every attempt.",
        "timeout": "Provider request timed out before completion.",
        "transport": "Provider request failed due to a transport/network error.",
        "server_error": "Provider returned a server-side error.",
    }
    return mapping.get(exc.failure_kind, str(exc))


def _provider_error_hint(stage: str, exc: ProviderError) -> str:
    """Build actionable user hints for stage-specific provider failure kinds."""

    kind = exc.failure_kind
    if kind == "invalid_api_key":
        return (
            "Store valid keys via `toonslate credentials --set-api-keys` or pass "
            "one-time `--api-keys` / `--prompt-api-keys`."
        )
    if kind == "invalid_model":
        stage_model_hint = {
            "extract": "Use `--model-ocr` with an available vision model.",
            "translate": "Use `--model-translate` with an available model.",
            "glossary": "Use `--model-assist` with an available model.",
        }
        return stage_model_hint.get(stage, "Use a valid model identifier for the provider.")
    if kind == "rate_limit":
        return "Add more keys to `GEMINI_API_KEYS`, raise `min_request_interval_seconds`, or retry later."
    if kind == "timeout":
        return "Retry the command. If timeouts persist, raise `request_timeout_seconds`."
    if kind == "transport":
        return "Check internet/proxy connectivity and retry the command."
    return "Verify API keys and model/provider configuration, then retry."


def stage_error_for(stage: str, exc: Exception) -> PipelineStageError:
    """Convert a pipeline exception into a stage-aware CLI error with a hint."""

    if isinstance(exc, PipelineStageError):
        return exc
    if isinstance(exc, TranslationFailedError):
        cause = exc.last_error
        hint = (
            _provider_error_hint(stage, cause)
            if isinstance(cause, ProviderError)
            else "The model kept returning malformed output; rerun the command to retry."
        )
        return PipelineStageError(stage=stage, detail=str(exc), hint=hint)
    if isinstance(exc, ProviderError):
        return PipelineStageError(
            stage=stage,
            detail=_provider_error_detail(exc),
            hint=_provider_error_hint(stage, exc),
        )
    if isinstance(exc, ConfigurationError):
        return PipelineStageError(
            stage="config",
            detail=str(exc),
            hint="Set `GEMINI_API_KEYS` or run `toonslate credentials --set-api-keys`.",
        )
    if isinstance(exc, PendingReviewError):
        return PipelineStageError(
            stage="review",
            detail=str(exc),
            hint="Approve or reject every item, or pass `--approve-all` / `--reject-all`.",
        )
    if isinstance(exc, PersistenceError):
        return PipelineStageError(
            stage="persist",
            detail=str(exc),
            hint="Check that `data_dir` exists and is writable, then rerun.",
        )
    if isinstance(exc, ValidationError):
        return PipelineStageError(
            stage=stage,
            detail=str(exc),
            hint="Check the command inputs and rerun.",
        )
    return PipelineStageError(stage=stage, detail=str(exc))


def echo_extraction_report(report: ExtractionReport) -> None:
    """Print one row per image plus success/failure totals."""

    for result in report.results:
        label = f"Page {result.page_number}"
        if result.file_name:
            label += f" ({result.file_name})"
        if result.success:
            typer.echo(f"{label}: ok ({len(result.extracted_text)} chars)")
        else:
            typer.echo(f"{label}: failed [{result.error_kind}] {result.error}")
    typer.echo(f"Extracted: {report.success_count} ok, {report.failure_count} failed")
    if report.rate_limited_pages:
        pages = ", ".join(str(page) for page in report.rate_limited_pages)
        typer.echo(f"Rate limited pages: {pages}")
    if report.cancelled:
        typer.echo("Extraction was cancelled.")


def echo_review_session(session: ReviewSession) -> None:
    """Print review items with their identifiers and statuses."""

    if session.suggestions:
        typer.echo("Suggestions:")
        for item in session.suggestions:
            typer.echo(f"  [{item.item_id}] ({item.status.value}) {item.edited}")
    if session.glossary_items:
        typer.echo("Glossary terms:")
        for item in session.glossary_items:
            marker = " *" if item.is_modified else ""
            typer.echo(
                f"  [{item.item_id}] ({item.status.value}) "
                f"{item.term.source_term} -> {item.term.translated_term} "
                f"[{item.term.term_type}]{marker}"
            )


def echo_glossary_terms(terms: Sequence[GlossaryTerm]) -> None:
    """Print glossary rows sorted by source term."""

    if not terms:
        typer.echo("No glossary terms.")
        return
    for term in sorted(terms, key=lambda item: item.source_term.casefold()):
        typer.echo(
            f"{term.source_term} -> {term.translated_term} "
            f"[{term.term_type}] ({term.status.value})"
        )


def echo_memory_entries(entries: Sequence[MemoryEntry]) -> None:
    """Print stored memory entries in insertion order."""

    if not entries:
        typer.echo("No memory entries.")
        return
    for entry in entries:
        typer.echo(f"- [{entry.entry_id or '?'}] {entry.summary}")
        if entry.tags:
            typer.echo(f"    Tags: {', '.join(entry.tags)}")
        if entry.key_events:
            typer.echo(f"    Key events: {'; '.join(entry.key_events)}")


def echo_quality_summary(text: str) -> None:
    """Print formatting diagnostics and the readability score of translated text."""

    report = analyze_formatting(text)
    typer.echo(f"Page headers present: {'yes' if report.page_headers_present else 'no'}")
    if report.tag_consistency:
        typer.echo("Tag consistency: ok")
    else:
        typer.echo(f"Tag consistency: missing {', '.join(report.missing_tags)}")
    typer.echo(f"Readability score: {readability_score(text)}")
