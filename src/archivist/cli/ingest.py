"""archivist ingest / ingest-docs: import conversations and documents.

Both commands are idempotent: Sources and Units already in the database are
skipped without any embedding calls, so an interrupted run can simply be
repeated.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from archivist.cancellation import CancellationToken
from archivist.cli.common import build_embedder, console, get_config, open_repository, resolve_db, run_async
from archivist.cli.errors import (
    err_file_not_found,
    err_import_failed,
    err_unsupported_platform,
    warn_partial_failure,
)
from archivist.config import ArchivistConfig
from archivist.db.repository import Repository
from archivist.importers import (
    IMPORTERS,
    RejectedSource,
    SourceRecord,
    find_documents,
    get_importer,
    parse_document,
)
from archivist.importers.documents import DOCUMENT_TYPES
from archivist.ingest.coordinator import IngestionCoordinator, IngestReport


def ingest_cmd(
    file: Annotated[Path, typer.Argument(help="Platform export file (e.g. conversations.json).")],
    platform: Annotated[
        str,
        typer.Option("--platform", "-p", help="Export platform."),
    ] = "claude",
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Import a conversation export, embed new messages, and store them."""
    if not file.exists():
        console.print(err_file_not_found(str(file)))
        raise typer.Exit(1)
    try:
        importer = get_importer(platform)
    except ValueError:
        console.print(err_unsupported_platform(platform, sorted(IMPORTERS)))
        raise typer.Exit(1) from None

    cfg = get_config()
    embedder = build_embedder(cfg)

    with open_repository(cfg, resolve_db(cfg, db)) as repo:
        console.print(f"\n[bold]→ {file}[/] [dim]({platform})[/]")
        try:
            with importer.open(file) as stream:
                report = _run(cfg, repo, embedder, stream)
        except (ValueError, KeyError, json.JSONDecodeError) as exc:
            console.print(err_import_failed(str(file), str(exc)))
            raise typer.Exit(1) from None

    _print_report(report)
    if report.failures:
        raise typer.Exit(1)


def ingest_docs_cmd(
    path: Annotated[Path, typer.Argument(help="A .pdf/.txt/.md file or a directory.")],
    recursive: Annotated[
        bool,
        typer.Option("--recursive", "-r", help="Recurse into subdirectories."),
    ] = False,
    doc_type: Annotated[
        str | None,
        typer.Option("--type", "-t", help=f"Document type ({', '.join(DOCUMENT_TYPES)}); auto-detected."),
    ] = None,
    title: Annotated[
        str | None,
        typer.Option("--title", help="Override the title (single file only)."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="List the documents that would be ingested."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Parse documents page by page, embed new pages, and store them."""
    if not path.exists():
        console.print(err_file_not_found(str(path)))
        raise typer.Exit(1)

    files = find_documents(path, recursive=recursive)
    if not files:
        console.print("[yellow]No supported documents found (.pdf, .txt, .md).[/]")
        raise typer.Exit(0)
    if title and len(files) > 1:
        console.print("[yellow]--title ignored: more than one document.[/]")
        title = None

    if dry_run:
        for f in files:
            console.print(f"  {f}")
        console.print(f"[dim]Dry run: {len(files)} document(s), nothing written.[/]")
        return

    cfg = get_config()
    embedder = build_embedder(cfg)

    def records():
        for f in files:
            try:
                yield parse_document(f, doc_type=doc_type, title=title)
            except (ValueError, OSError) as exc:
                yield RejectedSource(id=str(f), error=str(exc))

    with open_repository(cfg, resolve_db(cfg, db)) as repo:
        report = _run(cfg, repo, embedder, records())

    _print_report(report)
    if report.failures:
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Shared pipeline + output
# ------------------------------------------------------------------


def _run(cfg: ArchivistConfig, repo: Repository, embedder, sources) -> IngestReport:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task("Embedding units…", total=None)

        def counted(items):
            total = 0
            for record in items:
                if isinstance(record, SourceRecord):
                    total += len(record.units)
                prog.update(task, total=total)
                yield record

        async def main(token: CancellationToken) -> IngestReport:
            coordinator = IngestionCoordinator(
                repo,
                embedder,
                max_chars=cfg.ingestion.max_chars,
                concurrency=cfg.ingestion.concurrency,
                batch_size=cfg.ingestion.batch_size,
                cancel_token=token,
                on_unit_done=lambda _result: prog.advance(task),
            )
            return await coordinator.ingest(counted(sources))

        return run_async(main)


def _print_report(report: IngestReport) -> None:
    s = report.summary()
    console.print(
        f"  [green]✓[/] Sources: {s['sources_new']} new, {s['sources_skipped']} already stored"
    )
    console.print(
        f"  [green]✓[/] Units: {s['units_new']} new ({s['chunks_created']} chunks), "
        f"{s['units_skipped']} already stored"
    )
    if s["units_cancelled"]:
        console.print(f"  [yellow]↷ {s['units_cancelled']} units cancelled[/]")
    failures = report.failures
    if failures:
        for r in failures[:10]:
            console.print(f"  [red]✗[/] {escape(r.item_id)}: {escape(r.error or '')}")
        if len(failures) > 10:
            console.print(f"  [dim]… and {len(failures) - 10} more[/]")
        console.print(warn_partial_failure(len(failures), len(report.unit_results) + len(report.source_results)))

