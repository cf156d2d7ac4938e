"""Repository pattern for all archive database operations.

Single interface for: sources, units, chunks (+ embeddings), topics, learnings.
Every mutating method commits before returning; multi-row writes run inside
one transaction so a failure leaves no partial rows behind.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Iterator

from archivist.db.models import (
    Chunk,
    Learning,
    Source,
    Topic,
    Unit,
    blocks_from_json,
    blocks_to_json,
)
from archivist.db.vectors import deserialize_vector, serialize_vector

# Artifact tables that carry their own embedding column.
ARTIFACT_TABLES: frozenset[str] = frozenset({"learnings", "topics"})

_SOURCE_COLS = "id, kind, title, summary, platform, path, unit_count, metadata, created_at, updated_at"
_UNIT_COLS = "id, source_id, position, role, text, chunk_count, created_at"
_TOPIC_COLS = (
    "id, document_id, parent_topic_id, depth, title, summary, key_points, "
    "source_text, embedding, created_at"
)
_LEARNING_COLS = (
    "id, title, problem_space, insight, blocks, source_type, source_id, embedding, created_at"
)


def _placeholders(n: int) -> str:
    return ",".join("?" * n)


class Repository:
    """Data access layer for all archive entities.

    Wraps the single writer ``sqlite3.Connection``. The connection is owned by
    the caller and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see archivist.db.migrations.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def add_source(self, source: Source) -> None:
        """Insert a new source record."""
        self._conn.execute(
            f"INSERT INTO sources ({_SOURCE_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                source.id,
                source.kind,
                source.title,
                source.summary,
                source.platform,
                source.path,
                source.unit_count,
                source.metadata,
                source.created_at,
                source.updated_at,
            ),
        )
        self._conn.commit()

    def get_source(self, source_id: str) -> Source | None:
        row = self._conn.execute(
            f"SELECT {_SOURCE_COLS} FROM sources WHERE id = ?", (source_id,)
        ).fetchone()
        return _row_to_source(row) if row else None

    def get_sources(self, source_ids: Iterable[str]) -> dict[str, Source]:
        """Return ``{id: Source}`` for the ids that exist (one query)."""
        ids = list(dict.fromkeys(source_ids))
        if not ids:
            return {}
        rows = self._conn.execute(
            f"SELECT {_SOURCE_COLS} FROM sources WHERE id IN ({_placeholders(len(ids))})",
            ids,
        ).fetchall()
        return {r["id"]: _row_to_source(r) for r in rows}

    def existing_source_ids(self, source_ids: Iterable[str]) -> set[str]:
        """Return the subset of *source_ids* already stored, in a single query."""
        ids = list(dict.fromkeys(source_ids))
        if not ids:
            return set()
        rows = self._conn.execute(
            f"SELECT id FROM sources WHERE id IN ({_placeholders(len(ids))})", ids
        ).fetchall()
        return {r["id"] for r in rows}

    def list_sources(
        self,
        kind: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[Source]:
        """Return sources ordered by creation time (oldest first).

        Args:
            kind: Restrict to 'conversation' or 'document'.
            start: Inclusive lower bound on created_at (ISO-8601, UTC).
            end: Inclusive upper bound on created_at (ISO-8601, UTC).
        """
        sql = f"SELECT {_SOURCE_COLS} FROM sources WHERE 1 = 1"
        params: list[str] = []
        if kind is not None:
            sql += " AND kind = ?"
            params.append(kind)
        if start is not None:
            sql += " AND created_at >= ?"
            params.append(start)
        if end is not None:
            sql += " AND created_at <= ?"
            params.append(end)
        sql += " ORDER BY created_at"
        return [_row_to_source(r) for r in self._conn.execute(sql, params).fetchall()]

    def get_source_by_path(self, path: str) -> Source | None:
        row = self._conn.execute(
            f"SELECT {_SOURCE_COLS} FROM sources WHERE path = ?", (path,)
        ).fetchone()
        return _row_to_source(row) if row else None

    def count_sources(self, kind: str | None = None) -> int:
        if kind is None:
            return self._conn.execute("SELECT COUNT(*) FROM sources").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM sources WHERE kind = ?", (kind,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    def existing_unit_ids(self, source_id: str, unit_ids: Iterable[str]) -> set[str]:
        """Return the subset of *unit_ids* already stored for *source_id* (one query)."""
        ids = list(dict.fromkeys(unit_ids))
        if not ids:
            return set()
        rows = self._conn.execute(
            f"SELECT id FROM units WHERE source_id = ? AND id IN ({_placeholders(len(ids))})",
            [source_id, *ids],
        ).fetchall()
        return {r["id"] for r in rows}

    def unit_positions(self, source_id: str) -> dict[int, str]:
        """Return ``{position: unit_id}`` for every stored unit of *source_id*."""
        rows = self._conn.execute(
            "SELECT position, id FROM units WHERE source_id = ?", (source_id,)
        ).fetchall()
        return {r["position"]: r["id"] for r in rows}

    def add_unit_with_chunks(self, unit: Unit, chunks: list[Chunk]) -> list[int]:
        """Insert *unit* and its *chunks* (with embeddings) in one transaction.

        Returns the new chunk row ids, in chunk order.

        Raises:
            sqlite3.IntegrityError: If the unit id or ``(source_id, position)``
                already exists. Nothing is written in that case.
        """
        with self._conn:
            self._conn.execute(
                f"INSERT INTO units ({_UNIT_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    unit.id,
                    unit.source_id,
                    unit.position,
                    unit.role,
                    unit.text,
                    len(chunks),
                    unit.created_at,
                ),
            )
            ids: list[int] = []
            for chunk in chunks:
                cur = self._conn.execute(
                    """
                    INSERT INTO chunks (unit_id, chunk_index, text, char_count, embedding)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        unit.id,
                        chunk.chunk_index,
                        chunk.text,
                        chunk.char_count,
                        serialize_vector(chunk.embedding) if chunk.embedding is not None else None,
                    ),
                )
                chunk.id = cur.lastrowid
                ids.append(cur.lastrowid)
        return ids

    def get_unit(self, unit_id: str) -> Unit | None:
        row = self._conn.execute(
            f"SELECT {_UNIT_COLS} FROM units WHERE id = ?", (unit_id,)
        ).fetchone()
        return _row_to_unit(row) if row else None

    def list_units(self, source_id: str) -> list[Unit]:
        """Return all units of *source_id* ordered by position."""
        rows = self._conn.execute(
            f"SELECT {_UNIT_COLS} FROM units WHERE source_id = ? ORDER BY position",
            (source_id,),
        ).fetchall()
        return [_row_to_unit(r) for r in rows]

    def get_units_in_range(self, source_id: str, start: int, end: int) -> list[Unit]:
        """Return units of *source_id* with ``start <= position <= end``, ascending."""
        rows = self._conn.execute(
            f"""
            SELECT {_UNIT_COLS} FROM units
            WHERE source_id = ? AND position >= ? AND position <= ?
            ORDER BY position
            """,
            (source_id, start, end),
        ).fetchall()
        return [_row_to_unit(r) for r in rows]

    def count_units(self, source_id: str | None = None) -> int:
        if source_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM units").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM units WHERE source_id = ?", (source_id,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def list_chunks(self, unit_id: str) -> list[Chunk]:
        rows = self._conn.execute(
            """
            SELECT id, unit_id, chunk_index, text, char_count, embedding
            FROM chunks WHERE unit_id = ? ORDER BY chunk_index
            """,
            (unit_id,),
        ).fetchall()
        return [
            Chunk(
                id=r["id"],
                unit_id=r["unit_id"],
                chunk_index=r["chunk_index"],
                text=r["text"],
                char_count=r["char_count"],
                embedding=deserialize_vector(r["embedding"]) if r["embedding"] is not None else None,
            )
            for r in rows
        ]

    def list_source_chunks(self, source_id: str) -> list[tuple[Unit, Chunk]]:
        """Return ``(unit, chunk)`` pairs for *source_id* in document order."""
        result: list[tuple[Unit, Chunk]] = []
        for unit in self.list_units(source_id):
            for chunk in self.list_chunks(unit.id):
                result.append((unit, chunk))
        return result

    def count_chunks(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]

    def count_embedded_chunks(self) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE embedding IS NOT NULL"
        ).fetchone()[0]

    def iter_chunk_embeddings(self) -> Iterator[tuple[str, int, bytes]]:
        """Yield ``(unit_id, chunk_id, embedding_blob)`` for every embedded chunk."""
        cur = self._conn.execute(
            "SELECT unit_id, id, embedding FROM chunks WHERE embedding IS NOT NULL"
        )
        for row in cur:
            yield row["unit_id"], row["id"], row["embedding"]

    def iter_artifact_embeddings(self, table: str) -> Iterator[tuple[str, bytes]]:
        """Yield ``(id, embedding_blob)`` for every row of an artifact table."""
        if table not in ARTIFACT_TABLES:
            raise ValueError(f"Unknown artifact table '{table}'")
        cur = self._conn.execute(
            f"SELECT id, embedding FROM {table} WHERE embedding IS NOT NULL"  # noqa: S608
        )
        for row in cur:
            yield row["id"], row["embedding"]

    # ------------------------------------------------------------------
    # Learnings
    # ------------------------------------------------------------------

    def count_learnings(self, source_type: str | None = None, source_id: str | None = None) -> int:
        if source_type is None:
            return self._conn.execute("SELECT COUNT(*) FROM learnings").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM learnings WHERE source_type = ? AND source_id = ?",
            (source_type, source_id),
        ).fetchone()[0]

    def get_learnings_by_source(self, source_type: str, source_id: str) -> list[Learning]:
        rows = self._conn.execute(
            f"""
            SELECT {_LEARNING_COLS} FROM learnings
            WHERE source_type = ? AND source_id = ?
            ORDER BY created_at, rowid
            """,
            (source_type, source_id),
        ).fetchall()
        return [_row_to_learning(r) for r in rows]

    def get_learnings(self, learning_ids: Iterable[str]) -> dict[str, Learning]:
        ids = list(dict.fromkeys(learning_ids))
        if not ids:
            return {}
        rows = self._conn.execute(
            f"SELECT {_LEARNING_COLS} FROM learnings WHERE id IN ({_placeholders(len(ids))})",
            ids,
        ).fetchall()
        return {r["id"]: _row_to_learning(r) for r in rows}

    def add_learnings(self, learnings: list[Learning]) -> None:
        """Insert all *learnings* atomically. Each must carry an embedding."""
        with self._conn:
            self._conn.executemany(
                f"INSERT INTO learnings ({_LEARNING_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        l.id,
                        l.title,
                        l.problem_space,
                        l.insight,
                        blocks_to_json(l.blocks),
                        l.source_type,
                        l.source_id,
                        serialize_vector(l.embedding or []),
                        l.created_at,
                    )
                    for l in learnings
                ],
            )

    def delete_learnings_by_source(self, source_type: str, source_id: str) -> int:
        """Delete every learning for ``(source_type, source_id)``. Returns the row count."""
        cur = self._conn.execute(
            "DELETE FROM learnings WHERE source_type = ? AND source_id = ?",
            (source_type, source_id),
        )
        self._conn.commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def count_topics(self, document_id: str | None = None) -> int:
        if document_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM topics").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM topics WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    def get_topic(self, topic_id: str) -> Topic | None:
        row = self._conn.execute(
            f"SELECT {_TOPIC_COLS} FROM topics WHERE id = ?", (topic_id,)
        ).fetchone()
        return _row_to_topic(row) if row else None

    def get_topics(self, topic_ids: Iterable[str]) -> dict[str, Topic]:
        ids = list(dict.fromkeys(topic_ids))
        if not ids:
            return {}
        rows = self._conn.execute(
            f"SELECT {_TOPIC_COLS} FROM topics WHERE id IN ({_placeholders(len(ids))})",
            ids,
        ).fetchall()
        return {r["id"]: _row_to_topic(r) for r in rows}

    def list_topics(self, document_id: str) -> list[Topic]:
        """Return topics for *document_id*: main topics first, then subtopics."""
        rows = self._conn.execute(
            f"SELECT {_TOPIC_COLS} FROM topics WHERE document_id = ? ORDER BY depth, rowid",
            (document_id,),
        ).fetchall()
        return [_row_to_topic(r) for r in rows]

    def add_topics(self, topics: list[Topic]) -> None:
        """Insert all *topics* atomically (parents must precede their subtopics)."""
        with self._conn:
            self._conn.executemany(
                f"INSERT INTO topics ({_TOPIC_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        t.id,
                        t.document_id,
                        t.parent_topic_id,
                        t.depth,
                        t.title,
                        t.summary,
                        json.dumps(t.key_points),
                        t.source_text,
                        serialize_vector(t.embedding or []),
                        t.created_at,
                    )
                    for t in topics
                ],
            )

    def delete_topics_by_document(self, document_id: str) -> int:
        cur = self._conn.execute("DELETE FROM topics WHERE document_id = ?", (document_id,))
        self._conn.commit()
        return cur.rowcount


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_source(row: sqlite3.Row) -> Source:
    return Source(
        id=row["id"],
        kind=row["kind"],
        title=row["title"],
        summary=row["summary"],
        platform=row["platform"],
        path=row["path"],
        unit_count=row["unit_count"],
        metadata=row["metadata"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_unit(row: sqlite3.Row) -> Unit:
    return Unit(
        id=row["id"],
        source_id=row["source_id"],
        position=row["position"],
        role=row["role"],
        text=row["text"],
        chunk_count=row["chunk_count"],
        created_at=row["created_at"],
    )


def _row_to_learning(row: sqlite3.Row) -> Learning:
    return Learning(
        id=row["id"],
        title=row["title"],
        problem_space=row["problem_space"],
        insight=row["insight"],
        blocks=blocks_from_json(row["blocks"]),
        source_type=row["source_type"],
        source_id=row["source_id"],
        created_at=row["created_at"],
        embedding=deserialize_vector(row["embedding"]),
    )


def _row_to_topic(row: sqlite3.Row) -> Topic:
    return Topic(
        id=row["id"],
        document_id=row["document_id"],
        parent_topic_id=row["parent_topic_id"],
        depth=row["depth"],
        title=row["title"],
        summary=row["summary"],
        key_points=json.loads(row["key_points"] or "[]"),
        source_text=row["source_text"],
        created_at=row["created_at"],
        embedding=deserialize_vector(row["embedding"]),
    )
