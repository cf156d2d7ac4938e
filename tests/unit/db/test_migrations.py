"""Tests for the forward-only migration runner."""

from __future__ import annotations

import sqlite3

import pytest

from archivist.db.connection import Database
from archivist.db.migrations import MIGRATIONS, initialize, run_migrations


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    return Database(tmp_path / "test.db").connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
    ).fetchone() is not None


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    assert version == MIGRATIONS[-1][0]
    conn.close()


def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    initialize(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


@pytest.mark.parametrize(
    "table", ["store_meta", "sources", "units", "chunks", "topics", "learnings"]
)
def test_run_migrations_creates_tables(tmp_path, table):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, table)
    conn.close()


def test_source_kind_is_constrained(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO sources (id, kind, title, created_at, updated_at) "
            "VALUES ('s', 'email', 't', 'x', 'x')"
        )


def test_unit_position_unique_per_source(tmp_db):
    tmp_db.execute(
        "INSERT INTO sources (id, kind, title, created_at, updated_at) "
        "VALUES ('s', 'conversation', 't', 'x', 'x')"
    )
    tmp_db.execute(
        "INSERT INTO units (id, source_id, position, role, text, created_at) "
        "VALUES ('u1', 's', 0, 'human', 'a', 'x')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO units (id, source_id, position, role, text, created_at) "
            "VALUES ('u2', 's', 0, 'human', 'b', 'x')"
        )


def test_deleting_source_cascades_to_units(tmp_db):
    tmp_db.execute(
        "INSERT INTO sources (id, kind, title, created_at, updated_at) "
        "VALUES ('s', 'conversation', 't', 'x', 'x')"
    )
    tmp_db.execute(
        "INSERT INTO units (id, source_id, position, role, text, created_at) "
        "VALUES ('u1', 's', 0, 'human', 'a', 'x')"
    )
    tmp_db.execute("DELETE FROM sources WHERE id = 's'")
    assert tmp_db.execute("SELECT COUNT(*) FROM units").fetchone()[0] == 0
