"""Archivist database layer."""

from archivist.db.connection import Database
from archivist.db.migrations import MIGRATIONS, initialize, run_migrations
from archivist.db.repository import Repository
from archivist.db.vectors import (
    deserialize_vector,
    ensure_store_dimensions,
    get_store_dimensions,
    serialize_vector,
)

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "serialize_vector",
    "deserialize_vector",
    "ensure_store_dimensions",
    "get_store_dimensions",
]
