"""archivist status: what is in the archive.

Works without a config file; the database is opened read-only in spirit
(migrations run, but the embedding size is not recorded or checked).
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from archivist.cli.common import console, open_repository
from archivist.config import ArchivistConfig, ConfigError, load_config
from archivist.db.repository import Repository
from archivist.db.vectors import get_store_dimensions


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: db.path from config)."),
    ] = None,
) -> None:
    """Show archive status: sources, units, chunks, topics and learnings."""
    try:
        cfg = load_config()
    except ConfigError:
        cfg = ArchivistConfig()
    db_path = db if db is not None else cfg.db_path

    _show_config_panel(db_path, cfg)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  archivist ingest <export.json>",
                title="[bold]Archive[/]",
                expand=False,
            )
        )
        return

    with open_repository(cfg, db_path, check_dimensions=False) as repo:
        _show_archive_panel(repo, cfg)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_config_panel(db_path: Path, cfg: ArchivistConfig) -> None:
    db_info = f"{db_path}"
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    lines = [
        f"Database:   {db_info}",
        f"Embedding:  {cfg.embedding.model} ({cfg.embedding.dimensions} dims)",
        f"LLM:        {cfg.llm.model}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Configuration[/]", expand=False))


def _show_archive_panel(repo: Repository, cfg: ArchivistConfig) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("what")
    table.add_column("count", justify="right")
    table.add_row("Conversations", f"{repo.count_sources('conversation'):,}")
    table.add_row("Documents", f"{repo.count_sources('document'):,}")
    table.add_row("Units", f"{repo.count_units():,}")

    chunks = repo.count_chunks()
    embedded = repo.count_embedded_chunks()
    table.add_row("Chunks", f"{chunks:,} ({embedded:,} embedded)")
    table.add_row("Topics", f"{repo.count_topics():,}")
    table.add_row("Learnings", f"{repo.count_learnings():,}")

    console.print(Panel(table, title="[bold]Archive[/]", expand=False))

    stored = get_store_dimensions(repo.conn)
    if stored is None:
        console.print("[dim]No embeddings recorded yet.[/]")
        return
    model, dims = stored
    line = f"Store vectors: {model} ({dims} dims)"
    if dims != cfg.embedding.dimensions:
        line = f"[yellow]⚠ {line}; config says {cfg.embedding.dimensions}[/]"
    console.print(line)
