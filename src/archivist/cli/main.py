"""Archivist CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from archivist.cli.extract import extract_learnings_cmd, extract_topic_learnings_cmd, extract_topics_cmd
from archivist.cli.ingest import ingest_cmd, ingest_docs_cmd
from archivist.cli.search import search_cmd, search_learnings_cmd
from archivist.cli.status import status_cmd
from archivist.logging_config import setup_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("archivist")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"archivist {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="archivist",
    help=(
        "Archivist: a searchable archive of LLM conversations and documents.\n\n"
        "  archivist ingest            Import a conversation export.\n"
        "  archivist search            Find messages and pages by meaning.\n"
        "  archivist extract-learnings Distill learnings from conversations."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log retries and provider calls to stderr."),
    ] = False,
) -> None:
    """Archivist: a searchable archive of LLM conversations and documents."""
    setup_logging(verbose=verbose)


app.command("ingest")(ingest_cmd)
app.command("ingest-docs")(ingest_docs_cmd)
app.command("search")(search_cmd)
app.command("search-learnings")(search_learnings_cmd)
app.command("extract-learnings")(extract_learnings_cmd)
app.command("extract-topics")(extract_topics_cmd)
app.command("extract-topic-learnings")(extract_topic_learnings_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Archivist version."""
    typer.echo(f"archivist {_installed_version()}")


if __name__ == "__main__":
    app()
