"""Shared wiring for CLI commands: config, database handles, providers."""

from __future__ import annotations

import asyncio
import signal
import sqlite3
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

import typer
from rich.console import Console

from archivist.cancellation import CancellationToken
from archivist.cli.errors import err_config, err_dimension_mismatch, err_no_api_key, err_no_db
from archivist.config import ArchivistConfig, ConfigError, load_config
from archivist.db.connection import Database
from archivist.db.migrations import initialize
from archivist.db.repository import Repository
from archivist.db.vectors import ensure_store_dimensions
from archivist.errors import DimensionMismatchError
from archivist.providers.embeddings import EmbeddingClient
from archivist.providers.llm import LLMClient, validate_api_key

T = TypeVar("T")

console = Console()


def get_config() -> ArchivistConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from None


def resolve_db(cfg: ArchivistConfig, db: Path | None) -> Path:
    return db if db is not None else cfg.db_path


@contextmanager
def open_repository(
    cfg: ArchivistConfig,
    db_path: Path,
    must_exist: bool = False,
    check_dimensions: bool = True,
) -> Iterator[Repository]:
    """Open the database, run migrations, verify the embedding size, yield a Repository.

    The first write-capable open records the configured embedding size in the
    store; later opens must match it. The connection is closed on exit.
    """
    if must_exist and not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    conn: sqlite3.Connection = Database(db_path).connect()
    try:
        initialize(conn)
        try:
            if check_dimensions:
                ensure_store_dimensions(conn, cfg.embedding.model, cfg.embedding.dimensions)
        except DimensionMismatchError as exc:
            console.print(
                err_dimension_mismatch(exc.expected, exc.actual, cfg.embedding.model)
            )
            raise typer.Exit(1) from None
        yield Repository(conn)
    finally:
        conn.close()


def require_api_key(model: str) -> None:
    try:
        validate_api_key(model)
    except EnvironmentError:
        provider = model.split("/")[0] if "/" in model else "openai"
        console.print(err_no_api_key(provider))
        raise typer.Exit(1) from None


def build_embedder(cfg: ArchivistConfig) -> EmbeddingClient:
    require_api_key(cfg.embedding.model)
    return EmbeddingClient(
        model=cfg.embedding.model,
        dimensions=cfg.embedding.dimensions,
        concurrency=cfg.embedding.concurrency,
        max_attempts=cfg.embedding.max_attempts,
    )


def build_llm(cfg: ArchivistConfig) -> LLMClient:
    require_api_key(cfg.llm.model)
    return LLMClient(
        model=cfg.llm.model,
        temperature=cfg.llm.temperature,
        max_tokens=cfg.llm.max_tokens,
        max_attempts=cfg.llm.max_attempts,
    )


def run_async(main: Callable[[CancellationToken], Awaitable[T]]) -> T:
    """Run ``main(token)`` on a fresh event loop; Ctrl-C cancels the token.

    Work already in flight finishes; nothing new starts after the signal.
    """

    async def runner() -> T:
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel)
        except (NotImplementedError, RuntimeError, ValueError):
            pass  # no signal support (Windows, non-main thread)
        try:
            return await main(token)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError, ValueError):
                pass

    return asyncio.run(runner())
