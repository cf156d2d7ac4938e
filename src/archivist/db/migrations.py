"""Forward-only migration runner for the archive schema.

Embeddings live in BLOB columns next to the rows they describe
(``chunks.embedding``, ``topics.embedding``, ``learnings.embedding``).
The store's embedding dimensionality is recorded in ``store_meta``.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS store_meta (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sources (
    id          TEXT PRIMARY KEY,
    kind        TEXT NOT NULL CHECK (kind IN ('conversation', 'document')),
    title       TEXT NOT NULL,
    summary     TEXT,
    platform    TEXT NOT NULL DEFAULT '',
    path        TEXT,
    unit_count  INTEGER NOT NULL DEFAULT 0,
    metadata    TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sources_kind ON sources (kind);
CREATE INDEX IF NOT EXISTS idx_sources_created ON sources (created_at);
CREATE INDEX IF NOT EXISTS idx_sources_path ON sources (path);

CREATE TABLE IF NOT EXISTS units (
    id          TEXT PRIMARY KEY,
    source_id   TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    position    INTEGER NOT NULL,
    role        TEXT NOT NULL,
    text        TEXT NOT NULL,
    chunk_count INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL,
    UNIQUE (source_id, position)
);

CREATE INDEX IF NOT EXISTS idx_units_source ON units (source_id);
CREATE INDEX IF NOT EXISTS idx_units_role ON units (role);

CREATE TABLE IF NOT EXISTS chunks (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    unit_id     TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    chunk_index INTEGER NOT NULL,
    text        TEXT NOT NULL,
    char_count  INTEGER NOT NULL,
    embedding   BLOB,
    UNIQUE (unit_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS idx_chunks_unit ON chunks (unit_id);

CREATE TABLE IF NOT EXISTS topics (
    id              TEXT PRIMARY KEY,
    document_id     TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    parent_topic_id TEXT REFERENCES topics(id) ON DELETE CASCADE,
    depth           INTEGER NOT NULL DEFAULT 0,
    title           TEXT NOT NULL,
    summary         TEXT NOT NULL,
    key_points      TEXT NOT NULL DEFAULT '[]',
    source_text     TEXT,
    embedding       BLOB NOT NULL,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_topics_document ON topics (document_id);

CREATE TABLE IF NOT EXISTS learnings (
    id              TEXT PRIMARY KEY,
    title           TEXT NOT NULL,
    problem_space   TEXT NOT NULL,
    insight         TEXT NOT NULL,
    blocks          TEXT NOT NULL DEFAULT '[]',
    source_type     TEXT NOT NULL,
    source_id       TEXT NOT NULL,
    embedding       BLOB NOT NULL,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_learnings_created ON learnings (created_at);
CREATE INDEX IF NOT EXISTS idx_learnings_source ON learnings (source_type, source_id);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema (idempotent)."""
    run_migrations(conn)
