"""archivist search / search-learnings: semantic search from the terminal."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel

from archivist.cli.common import build_embedder, console, get_config, open_repository, resolve_db, run_async
from archivist.db.models import UNIT_ROLES, Unit
from archivist.search.context import ContextEnricher, SearchResult
from archivist.search.learnings import LearningSearch, LearningSearchResult, TopicSearchResult
from archivist.search.semantic import SearchFilters, SemanticSearch

_PREVIEW_CHARS = 300


def search_cmd(
    query: Annotated[str, typer.Argument(help="What to look for.")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", help="Maximum results (default: search.default_limit)."),
    ] = None,
    sender: Annotated[
        str | None,
        typer.Option("--sender", help=f"Only units with this role ({', '.join(UNIT_ROLES)})."),
    ] = None,
    after: Annotated[
        datetime | None,
        typer.Option("--after", help="Only units created on or after this date (YYYY-MM-DD)."),
    ] = None,
    before: Annotated[
        datetime | None,
        typer.Option("--before", help="Only units created on or before this date (YYYY-MM-DD)."),
    ] = None,
    source: Annotated[
        list[str] | None,
        typer.Option("--source", help="Restrict to a Source id (repeatable)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Search archived conversations and documents by meaning."""
    if sender is not None and sender not in UNIT_ROLES:
        console.print(f"[red]Error:[/] --sender must be one of: {', '.join(UNIT_ROLES)}")
        raise typer.Exit(1)

    cfg = get_config()
    embedder = build_embedder(cfg)
    filters = SearchFilters(role=sender, start=after, end=before, source_ids=source or [])

    with open_repository(cfg, resolve_db(cfg, db), must_exist=True) as repo:
        window = cfg.search.context_window
        engine = SemanticSearch(
            repo,
            embedder,
            enricher=ContextEnricher(repo, before=window.before, after=window.after),
        )

        async def main(_token) -> list[SearchResult]:
            return await engine.search(query, limit or cfg.search.default_limit, filters)

        results = run_async(main)

    if not results:
        console.print("[dim]No results found.[/]")
        return

    console.print(f'Found {len(results)} result(s) for "{query}":\n')
    for r in results:
        _print_result(r)


def search_learnings_cmd(
    query: Annotated[str, typer.Argument(help="What to look for.")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", help="Maximum results (default: search.default_limit)."),
    ] = None,
    after: Annotated[
        datetime | None,
        typer.Option("--after", help="Only learnings created on or after this date."),
    ] = None,
    before: Annotated[
        datetime | None,
        typer.Option("--before", help="Only learnings created on or before this date."),
    ] = None,
    topics: Annotated[
        bool,
        typer.Option("--topics", help="Search document topics instead of learnings."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Search extracted learnings (or topics) by meaning."""
    cfg = get_config()
    embedder = build_embedder(cfg)
    n = limit or cfg.search.default_limit

    with open_repository(cfg, resolve_db(cfg, db), must_exist=True) as repo:
        engine = LearningSearch(repo, embedder)

        async def main(_token):
            if topics:
                return await engine.search_topics(query, n)
            return await engine.search(query, n, start=after, end=before)

        results = run_async(main)

    if not results:
        console.print("[dim]No topics found.[/]" if topics else "[dim]No learnings found.[/]")
        return

    console.print(f'Found {len(results)} result(s) for "{query}":\n')
    for r in results:
        if isinstance(r, TopicSearchResult):
            _print_topic(r)
        else:
            _print_learning(r)


# ------------------------------------------------------------------
# Rendering
# ------------------------------------------------------------------


def _preview(text: str) -> str:
    text = " ".join(text.split())
    if len(text) > _PREVIEW_CHARS:
        text = text[: _PREVIEW_CHARS - 1] + "…"
    return escape(text)


def _unit_line(unit: Unit) -> str:
    return f"[dim][{unit.role.upper()}][/] {_preview(unit.text)}"


def _print_result(r: SearchResult) -> None:
    lines = [_unit_line(u) for u in r.previous_units]
    lines.append(f"[bold][{r.unit.role.upper()}][/] {_preview(r.unit.text)}")
    lines.extend(_unit_line(u) for u in r.next_units)
    console.print(
        Panel(
            "\n\n".join(lines),
            title=f"[bold]{escape(r.source.title or r.source.id)}[/]",
            subtitle=f"[dim]{r.score * 100:.1f}% · {r.source.created_at[:10]}[/]",
            expand=False,
        )
    )


def _print_learning(r: LearningSearchResult) -> None:
    learning = r.learning
    lines = [
        f"[bold]Problem:[/] {escape(learning.problem_space)}",
        f"[bold]Insight:[/] {escape(learning.insight)}",
    ]
    for block in learning.blocks:
        lines.append(f"  [cyan]{block.block_type}[/] Q: {escape(block.question)}\n      A: {escape(block.answer)}")
    if r.source is not None:
        lines.append(f"[dim]From: {escape(r.source.title)} ({r.source.created_at[:10]})[/]")
    console.print(
        Panel(
            "\n".join(lines),
            title=f"[bold]{escape(learning.title)}[/]",
            subtitle=f"[dim]{r.score * 100:.1f}% · {learning.created_at[:10]}[/]",
            expand=False,
        )
    )


def _print_topic(r: TopicSearchResult) -> None:
    topic = r.topic
    lines = [escape(topic.summary), *(f"  • {escape(p)}" for p in topic.key_points)]
    if r.document is not None:
        lines.append(f"[dim]From: {escape(r.document.title)}[/]")
    console.print(
        Panel(
            "\n".join(lines),
            title=f"[bold]{escape(topic.title)}[/]",
            subtitle=f"[dim]{r.score * 100:.1f}% · {topic.id}[/]",
            expand=False,
        )
    )
