"""Command-line interface for Toonslate.

Responsibilities:
- Expose user-facing commands for extraction, translation, review, and stores.
- Convert CLI arguments into `ToonslateConfig` and run the orchestrator.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Annotated, Any

import typer

from .cli_rendering import (
    echo_extraction_report,
    echo_glossary_terms,
    echo_memory_entries,
    echo_quality_summary,
    echo_review_session,
    exit_with_command_error,
    stage_error_for,
)
from .cli_runtime import (
    apply_runtime_sources,
    load_base_config,
    prompt_for_api_keys,
    resolve_provider_runtime_sources,
)
from .config import ToonslateConfig
from .credentials import create_credential_store
from .errors import PipelineStageError
from .models.datatypes import GlossaryTerm, ImageInput, Page, SeriesMetadata
from .ocr.extractor import ExtractionMode
from .persistence.stores import FileStores
from .pipeline.orchestrator import PipelineState
from .provider_factory import ProviderFactory
from .review.session import ReviewSession
from .telemetry.logger import RunLogger

app = typer.Typer(
    name="toonslate",
    no_args_is_help=True,
    help="Toonslate CLI.",
)
glossary_app = typer.Typer(no_args_is_help=True, help="Inspect and extend series glossaries.")
memory_app = typer.Typer(no_args_is_help=True, help="Inspect series story memory.")
series_app = typer.Typer(no_args_is_help=True, help="Manage series metadata.")
app.add_typer(glossary_app, name="glossary")
app.add_typer(memory_app, name="memory")
app.add_typer(series_app, name="series")

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file with command defaults."),
]
DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", help="Store directory (overrides config value)."),
]
SeriesOption = Annotated[str, typer.Option("--series", help="Series identifier.")]
ApiKeysOption = Annotated[
    str | None,
    typer.Option(
        "--api-keys",
        help="Comma-separated Gemini API keys. Prefer `--prompt-api-keys` to avoid shell history.",
    ),
]
PromptApiKeysOption = Annotated[
    bool,
    typer.Option("--prompt-api-keys", help="Prompt for API keys with hidden input."),
]
StoreApiKeysOption = Annotated[
    bool,
    typer.Option(
        "--store-api-keys/--no-store-api-keys",
        help="Persist CLI-entered API keys to secure credential storage.",
    ),
]
ModelOcrOption = Annotated[str | None, typer.Option("--model-ocr", help="OCR model id override.")]
ModelTranslateOption = Annotated[
    str | None, typer.Option("--model-translate", help="Translation model id override.")
]
ModelAssistOption = Annotated[
    str | None,
    typer.Option("--model-assist", help="Glossary/summary assistant model id override."),
]


class CommandProgressIndicator:
    """Render deterministic progress lines for long-running commands."""

    def __init__(self, command_name: str) -> None:
        """Initialize progress indicator metadata for a command invocation."""

        self._command_name = command_name

    def on_images_processed(self, processed: int, total: int) -> None:
        """Print one progress line after each OCR chunk."""

        typer.echo(f"[progress] command={self._command_name} images={processed}/{total}")

    def on_attempt(self, attempt: int, max_attempts: int) -> None:
        """Print one progress line for each translation attempt."""

        typer.echo(f"[progress] command={self._command_name} attempt={attempt}/{max_attempts}")


def _resolve_config(
    config_file: Path | None,
    data_dir: Path | None,
    model_ocr: str | None = None,
    model_translate: str | None = None,
    model_assist: str | None = None,
    api_keys: str | None = None,
    prompt_api_keys: bool = False,
    store_api_keys: bool = True,
) -> ToonslateConfig:
    """Resolve effective command config from YAML/env defaults and CLI overrides."""

    runtime_cli_values, runtime_secure_values = resolve_provider_runtime_sources(
        model_ocr=model_ocr,
        model_translate=model_translate,
        model_assist=model_assist,
        api_keys=api_keys,
        prompt_api_keys=prompt_api_keys,
        store_api_keys=store_api_keys,
        credential_store_factory=create_credential_store,
    )
    base_config = load_base_config(config_file, data_dir)
    return apply_runtime_sources(base_config, runtime_cli_values, runtime_secure_values)


def _load_images(paths: list[Path], start_page: int) -> list[ImageInput]:
    """Read image files as OCR inputs numbered from `start_page`."""

    images: list[ImageInput] = []
    for offset, path in enumerate(paths):
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise PipelineStageError(
                stage="extract-input",
                detail=f"Could not read image `{path}`: {exc}",
                hint="Pass existing image files (PNG, JPEG, WebP).",
            ) from exc
        mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
        images.append(
            ImageInput(
                page_number=start_page + offset,
                data=data,
                mime_type=mime_type,
                file_name=path.name,
            )
        )
    return images


def _load_source(source: Path) -> tuple[list[Page] | None, str | None]:
    """Load a pages JSON artifact (from `extract`) or a plain-text chapter document."""

    try:
        raw = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise PipelineStageError(
            stage="translate-input",
            detail=f"Could not read `{source}`: {exc}",
            hint="Pass a pages JSON file written by `toonslate extract` or a text file.",
        ) from exc
    if source.suffix.lower() != ".json":
        return None, raw

    try:
        payload: Any = json.loads(raw)
        pages = [
            Page(page_number=int(item["page_number"]), extracted_text=str(item["extracted_text"]))
            for item in payload["pages"]
        ]
    except (ValueError, KeyError, TypeError) as exc:
        raise PipelineStageError(
            stage="translate-input",
            detail=f"Pages file `{source}` is malformed: {exc}",
            hint="Regenerate it with `toonslate extract`.",
        ) from exc
    return pages, None


def _prompt_review(session: ReviewSession) -> None:
    """Resolve every pending review item interactively."""

    items: list[tuple[str, str]] = [(item.item_id, item.edited) for item in session.suggestions]
    items.extend(
        (item.item_id, f"{item.term.source_term} -> {item.term.translated_term}")
        for item in session.glossary_items
    )
    pending = set(session.pending_ids())
    for item_id, label in items:
        if item_id not in pending:
            continue
        while True:
            choice = typer.prompt(
                f"[{item_id}] {label}\n  [a]pprove / [r]eject / [e]dit",
                default="a",
            ).strip().lower()
            if choice in {"a", "approve"}:
                session.approve(item_id)
                break
            if choice in {"r", "reject"}:
                session.reject(item_id)
                break
            if choice in {"e", "edit"}:
                new_text = typer.prompt("  New text").strip()
                if not new_text:
                    typer.echo("  Edit must not be empty.")
                    continue
                session.edit(item_id, new_text)
                session.approve(item_id)
                break
            typer.echo("  Enter `a`, `r`, or `e`.")


def _open_stores(config_file: Path | None, data_dir: Path | None) -> FileStores:
    """Open filesystem stores for read-only store commands."""

    return FileStores.open(load_base_config(config_file, data_dir).data_dir)


@app.command("extract")
def extract_command(
    images: Annotated[list[Path], typer.Argument(help="Page image files in reading order.")],
    out: Annotated[
        Path, typer.Option("--out", help="Pages JSON output path.")
    ] = Path("pages.json"),
    start_page: Annotated[
        int, typer.Option("--start-page", min=1, help="Page number of the first image.")
    ] = 1,
    mode: Annotated[
        ExtractionMode,
        typer.Option("--mode", help="`batched` (chunked, concurrent) or `single`."),
    ] = ExtractionMode.BATCHED,
    source_language: Annotated[
        str | None, typer.Option("--source-language", help="Source language name.")
    ] = None,
    config_file: ConfigOption = None,
    data_dir: DataDirOption = None,
    model_ocr: ModelOcrOption = None,
    api_keys: ApiKeysOption = None,
    prompt_api_keys: PromptApiKeysOption = False,
    store_api_keys: StoreApiKeysOption = True,
) -> None:
    """Extract text from page images into a pages JSON file."""

    try:
        config = _resolve_config(
            config_file,
            data_dir,
            model_ocr=model_ocr,
            api_keys=api_keys,
            prompt_api_keys=prompt_api_keys,
            store_api_keys=store_api_keys,
        )
        image_inputs = _load_images(images, start_page)
        progress = CommandProgressIndicator(command_name="extract")
        orchestrator = ProviderFactory.create_orchestrator(config, logger=RunLogger())
        report = orchestrator.extract(
            image_inputs,
            source_language=source_language,
            mode=mode,
            progress_callback=progress.on_images_processed,
        )
    except Exception as exc:
        exit_with_command_error("extract", stage_error_for("extract", exc))

    echo_extraction_report(report)
    if orchestrator.state == PipelineState.FAILED:
        exit_with_command_error(
            "extract",
            PipelineStageError(
                stage="extract",
                detail="No page image could be extracted.",
                hint=(
                    "Add more API keys or raise `ocr_chunk_delay_ms` when pages were rate limited, "
                    "then rerun."
                ),
            ),
        )

    payload = {
        "pages": [
            {"page_number": page.page_number, "extracted_text": page.extracted_text}
            for page in report.pages()
        ],
        "report": report.to_dict(),
    }
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    typer.echo(f"Pages: {out}")


@app.command("translate")
def translate_command(
    source: Annotated[
        Path, typer.Argument(help="Pages JSON from `extract`, or a page-delimited text file.")
    ],
    series: SeriesOption,
    chapter: Annotated[str, typer.Option("--chapter", help="Chapter identifier.")],
    out: Annotated[
        Path | None, typer.Option("--out", help="Write the final translation to this file.")
    ] = None,
    approve_all: Annotated[
        bool, typer.Option("--approve-all", help="Approve every review item.")
    ] = False,
    reject_all: Annotated[
        bool, typer.Option("--reject-all", help="Reject every review item.")
    ] = False,
    suggest_glossary: Annotated[
        bool,
        typer.Option(
            "--suggest-glossary/--no-suggest-glossary",
            help="Also propose glossary terms detected in the source text.",
        ),
    ] = False,
    config_file: ConfigOption = None,
    data_dir: DataDirOption = None,
    model_translate: ModelTranslateOption = None,
    model_assist: ModelAssistOption = None,
    api_keys: ApiKeysOption = None,
    prompt_api_keys: PromptApiKeysOption = False,
    store_api_keys: StoreApiKeysOption = True,
) -> None:
    """Translate a chapter, review the results, and persist the final text."""

    if approve_all and reject_all:
        exit_with_command_error(
            "translate",
            PipelineStageError(
                stage="review",
                detail="`--approve-all` and `--reject-all` cannot be used together.",
                hint="Pick one bulk review action, or omit both to review interactively.",
            ),
        )

    stage = "translate"
    try:
        config = _resolve_config(
            config_file,
            data_dir,
            model_translate=model_translate,
            model_assist=model_assist,
            api_keys=api_keys,
            prompt_api_keys=prompt_api_keys,
            store_api_keys=store_api_keys,
        )
        pages, text = _load_source(source)
        progress = CommandProgressIndicator(command_name="translate")
        orchestrator = ProviderFactory.create_orchestrator(
            config,
            logger=RunLogger(),
            attempt_callback=progress.on_attempt,
            suggest_glossary_terms=suggest_glossary,
        )
        orchestrator.start(series, chapter, pages=pages, text=text)

        stage = "review"
        session = orchestrator.review
        if session is None:
            raise PipelineStageError(stage=stage, detail="No review session was created.")
        echo_review_session(session)
        if approve_all:
            session.approve_all()
        elif reject_all:
            session.reject_all()
        else:
            _prompt_review(session)

        stage = "persist"
        final = orchestrator.finalize()
    except Exception as exc:
        exit_with_command_error("translate", stage_error_for(stage, exc))

    if out is not None:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(final.translated_text, encoding="utf-8")
        typer.echo(f"Translation: {out}")
    else:
        typer.echo(final.translated_text)
    typer.echo(f"Chapter: {final.chapter_id} (series {final.series_id})")
    typer.echo(f"Regenerated: {'yes' if final.regenerated else 'no'}")
    typer.echo(f"Glossary terms committed: {len(final.glossary_terms)}")
    typer.echo(f"Memory entry saved: {'yes' if final.memory_entry_saved else 'no'}")
    echo_quality_summary(final.translated_text)


@glossary_app.command("list")
def glossary_list_command(
    series: SeriesOption,
    config_file: ConfigOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """List stored glossary terms for a series."""

    try:
        stores = _open_stores(config_file, data_dir)
        terms = stores.glossary.list_by_series_id(series)
    except Exception as exc:
        exit_with_command_error("glossary list", stage_error_for("glossary", exc))

    echo_glossary_terms(terms)


@glossary_app.command("suggest")
def glossary_suggest_command(
    source: Annotated[Path, typer.Argument(help="Source text file to scan for terms.")],
    series: SeriesOption,
    commit: Annotated[
        bool, typer.Option("--commit", help="Approve and store every suggested term.")
    ] = False,
    source_language: Annotated[
        str | None, typer.Option("--source-language", help="Source language name.")
    ] = None,
    config_file: ConfigOption = None,
    data_dir: DataDirOption = None,
    model_assist: ModelAssistOption = None,
    api_keys: ApiKeysOption = None,
    prompt_api_keys: PromptApiKeysOption = False,
    store_api_keys: StoreApiKeysOption = True,
) -> None:
    """Detect candidate terms in a source text and propose glossary entries."""

    try:
        config = _resolve_config(
            config_file,
            data_dir,
            model_assist=model_assist,
            api_keys=api_keys,
            prompt_api_keys=prompt_api_keys,
            store_api_keys=store_api_keys,
        )
        pages, text = _load_source(source)
        if text is None:
            text = "\n\n".join(page.extracted_text for page in pages or [])
        runtime = config.resolved_provider_runtime()
        key_pool = ProviderFactory.create_key_pool(runtime)
        client = ProviderFactory.create_client(config)
        resolver = ProviderFactory.create_glossary_resolver(
            config, runtime, FileStores.open(config.data_dir), client, key_pool, logger=RunLogger()
        )
        existing = resolver.context_map(series)
        candidates = resolver.detect_candidates(text, existing)
        terms = resolver.propose_terms_with_fallback(
            candidates,
            existing,
            text,
            source_language=source_language or config.source_language,
        )
        committed: list[GlossaryTerm] = []
        if commit and terms:
            session = ReviewSession(glossary_terms=terms)
            session.approve_all()
            committed = resolver.commit(series, session.approved_glossary_items())
    except Exception as exc:
        exit_with_command_error("glossary suggest", stage_error_for("glossary", exc))

    typer.echo(f"Candidates: {len(candidates)}")
    echo_glossary_terms(terms)
    if commit:
        typer.echo(f"Committed: {len(committed)}")


@memory_app.command("show")
def memory_show_command(
    series: SeriesOption,
    config_file: ConfigOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show stored memory entries and chapter summaries for a series."""

    try:
        stores = _open_stores(config_file, data_dir)
        entries = stores.memory.list_by_series_id(series)
        chapters = stores.chapters.list_by_series_id(series)
    except Exception as exc:
        exit_with_command_error("memory show", stage_error_for("memory", exc))

    echo_memory_entries(entries)
    for record in chapters:
        if record.memory_summary:
            typer.echo(f"Chapter {record.chapter_id}: {record.memory_summary}")


@series_app.command("set")
def series_set_command(
    series: SeriesOption,
    title: Annotated[str | None, typer.Option("--title", help="Series title.")] = None,
    genres: Annotated[
        str | None, typer.Option("--genres", help="Comma-separated genres.")
    ] = None,
    tone_notes: Annotated[
        str | None, typer.Option("--tone-notes", help="Free-form tone guidance.")
    ] = None,
    description: Annotated[
        str | None, typer.Option("--description", help="Series description.")
    ] = None,
    source_language: Annotated[
        str | None, typer.Option("--source-language", help="Source language name.")
    ] = None,
    config_file: ConfigOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create or update series metadata used as translation context."""

    try:
        stores = _open_stores(config_file, data_dir)
        current = stores.series.get(series)
        updated = SeriesMetadata.from_dict(
            series,
            {
                "title": title if title is not None else current.title,
                "genres": genres if genres is not None else list(current.genres),
                "tone_notes": tone_notes if tone_notes is not None else current.tone_notes,
                "description": description if description is not None else current.description,
                "source_language": (
                    source_language if source_language is not None else current.source_language
                ),
            },
        )
        stores.series.save(updated)
    except Exception as exc:
        exit_with_command_error("series set", stage_error_for("series", exc))

    typer.echo(f"Series: {updated.series_id}")
    typer.echo(f"Title: {updated.title or '(none)'}")
    typer.echo(f"Genres: {', '.join(updated.genres) or '(none)'}")
    typer.echo(f"Source language: {updated.source_language}")


@app.command("credentials")
def credentials_command(
    set_api_keys: Annotated[
        bool,
        typer.Option(
            "--set-api-keys",
            help="Prompt for API keys with hidden input and store them securely.",
        ),
    ] = False,
    clear_api_keys: Annotated[
        bool,
        typer.Option(
            "--clear-api-keys",
            help="Clear stored API keys from secure credential storage.",
        ),
    ] = False,
) -> None:
    """Manage securely stored CLI credentials."""

    if set_api_keys and clear_api_keys:
        exit_with_command_error(
            "credentials",
            PipelineStageError(
                stage="credentials",
                detail="`--set-api-keys` and `--clear-api-keys` cannot be used together.",
                hint="Run one credentials action per command invocation.",
            ),
        )

    credential_store = create_credential_store()
    if set_api_keys:
        prompted_keys = prompt_for_api_keys()
        if not prompted_keys:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail="No API key entered.",
                    hint="Provide at least one non-empty API key when using `--set-api-keys`.",
                ),
            )
        try:
            credential_store.set_api_keys(prompted_keys)
        except Exception as exc:
            exit_with_command_error(
                "credentials",
                PipelineStageError(
                    stage="credentials",
                    detail=f"Failed to store API keys securely: {exc}",
                    hint="Install and configure a keyring backend and retry.",
                ),
            )
        typer.echo(f"{len(prompted_keys)} API key(s) stored in secure credential storage.")
        return

    if clear_api_keys:
        removed = credential_store.clear_api_keys()
        if removed:
            typer.echo("Stored API keys cleared from secure credential storage.")
        else:
            typer.echo("No stored API keys found in secure credential storage.")
        return

    availability = "available" if credential_store.is_available() else "unavailable"
    stored_count = len(credential_store.get_api_keys())
    typer.echo(f"Secure credential storage: {availability}")
    typer.echo(f"Stored Gemini API keys: {stored_count if stored_count else 'not set'}")


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
