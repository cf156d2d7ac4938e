"""archivist extract-*: derive topics and learnings with the language model.

Extraction is idempotent per source: anything already extracted is returned
as-is unless --overwrite is passed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from archivist.cli.common import (
    build_embedder,
    build_llm,
    console,
    get_config,
    open_repository,
    resolve_db,
    run_async,
)
from archivist.cli.errors import (
    err_missing_target,
    err_not_found,
    err_provider,
    err_validation,
    warn_partial_failure,
)
from archivist.config import ArchivistConfig
from archivist.errors import NotFoundError, TransientProviderError, ValidationError
from archivist.extract.batch import extract_many
from archivist.extract.learnings import LearningExtractor
from archivist.extract.orchestrator import ExtractionOrchestrator
from archivist.extract.topics import TopicExtractor
from archivist.prompts import PromptProvider
from archivist.results import BatchReport


def extract_learnings_cmd(
    ids: Annotated[
        list[str] | None,
        typer.Option("--id", help="Conversation id to extract from (repeatable)."),
    ] = None,
    all_: Annotated[
        bool,
        typer.Option("--all", help="Extract from every archived conversation."),
    ] = False,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Replace learnings that were already extracted."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Extract learnings from archived conversations."""
    if not ids and not all_:
        console.print(err_missing_target("--id ID (repeatable) or --all"))
        raise typer.Exit(1)

    cfg = get_config()
    with open_repository(cfg, resolve_db(cfg, db), must_exist=True) as repo:
        targets = list(ids or [])
        if all_:
            targets += [s.id for s in repo.list_sources(kind="conversation")]
        extractor = LearningExtractor(repo, _orchestrator(cfg), PromptProvider(cfg.prompts))
        report = _run_batch(cfg, extractor.extract_from_conversation, targets, overwrite, "conversations")

    _finish(report, "learning")


def extract_topics_cmd(
    document_id: Annotated[str, typer.Argument(help="Id of an ingested document.")],
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Replace topics that were already extracted."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Extract topics and subtopics from an ingested document."""
    cfg = get_config()
    with open_repository(cfg, resolve_db(cfg, db), must_exist=True) as repo:
        extractor = TopicExtractor(repo, _orchestrator(cfg), PromptProvider(cfg.prompts))
        with console.status("Extracting topics…"):
            try:
                topics = run_async(
                    lambda _token: extractor.extract_from_document(document_id, overwrite=overwrite)
                )
            except NotFoundError as exc:
                console.print(err_not_found(exc.kind, exc.entity_id))
                raise typer.Exit(1) from None
            except ValidationError as exc:
                console.print(err_validation(str(exc)))
                raise typer.Exit(1) from None
            except TransientProviderError as exc:
                console.print(err_provider(str(exc)))
                raise typer.Exit(1) from None

    if not topics:
        console.print("[yellow]No topics found in this document.[/]")
        return
    console.print(f"[green]✓[/] {len(topics)} topics for {document_id}")
    for topic in topics:
        indent = "    " if topic.depth else "  "
        console.print(f"{indent}[bold]{escape(topic.title)}[/] [dim]{topic.id}[/]")


def extract_topic_learnings_cmd(
    document_id: Annotated[
        str | None,
        typer.Option("--document-id", help="Extract from every topic of this document."),
    ] = None,
    topic_ids: Annotated[
        list[str] | None,
        typer.Option("--topic-id", help="Topic id to extract from (repeatable)."),
    ] = None,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Replace learnings that were already extracted."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Extract flashcard learnings from document topics."""
    if not document_id and not topic_ids:
        console.print(err_missing_target("--document-id ID or --topic-id ID"))
        raise typer.Exit(1)

    cfg = get_config()
    with open_repository(cfg, resolve_db(cfg, db), must_exist=True) as repo:
        targets = list(topic_ids or [])
        if document_id:
            topics = repo.list_topics(document_id)
            if not topics:
                console.print(err_not_found("topics for document", document_id))
                raise typer.Exit(1)
            targets += [t.id for t in topics]
        extractor = LearningExtractor(repo, _orchestrator(cfg), PromptProvider(cfg.prompts))
        report = _run_batch(cfg, extractor.extract_from_topic, targets, overwrite, "topics")

    _finish(report, "learning")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _orchestrator(cfg: ArchivistConfig) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(build_llm(cfg), build_embedder(cfg))


def _run_batch(cfg: ArchivistConfig, extract, targets: list[str], overwrite: bool, what: str) -> BatchReport:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        transient=True,
        console=console,
    ) as prog:
        task = prog.add_task(f"Extracting from {what}…", total=len(set(targets)))

        async def one(item_id: str):
            return await extract(item_id, overwrite=overwrite)

        return run_async(
            lambda token: extract_many(
                one,
                targets,
                concurrency=cfg.extraction.concurrency,
                cancel_token=token,
                on_item_done=lambda _r: prog.advance(task),
            )
        )


def _finish(report: BatchReport, noun: str) -> None:
    produced = sum(len(r.value or []) for r in report.succeeded)
    console.print(
        f"[green]✓[/] {len(report.succeeded)}/{len(report.results)} processed, "
        f"{produced} {noun}s available"
    )
    if report.failed:
        for r in report.failed:
            console.print(f"  [red]✗[/] {r.item_id}: {escape(r.error or '')}")
        console.print(warn_partial_failure(len(report.failed), len(report.results)))
        raise typer.Exit(1)
