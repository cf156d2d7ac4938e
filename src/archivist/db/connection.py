"""SQLite connection layer (single writer, WAL journal)."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

# Seconds a reader waits on the writer's lock before SQLITE_BUSY.
BUSY_TIMEOUT = 5.0

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
)


class Database:
    """File-backed archive database.

    One ``Database`` hands out the single writer connection used by every
    component in the process. The connection is passed explicitly into the
    repository, vector index, and services; nothing holds it globally.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open the archive (creating the file and its parent directories).

        Rows come back as ``sqlite3.Row``; sqlite-vec is loaded for the
        float32 helpers.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row

        conn.enable_load_extension(True)
        try:
            sqlite_vec.load(conn)
        finally:
            conn.enable_load_extension(False)

        for pragma in _PRAGMAS:
            conn.execute(pragma)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
