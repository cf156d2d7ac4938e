"""Embedding BLOB codec and store-level dimensionality bookkeeping.

Vectors are stored as raw little-endian float32 arrays, so a vector of
``d`` dimensions occupies exactly ``4 * d`` bytes.
"""

from __future__ import annotations

import sqlite3
import struct

import sqlite_vec

from archivist.errors import DimensionMismatchError

_FLOAT_SIZE = 4

_META_DIMENSIONS = "embedding_dimensions"
_META_MODEL = "embedding_model"


def serialize_vector(vector: list[float]) -> bytes:
    """Pack *vector* into a little-endian float32 BLOB."""
    return sqlite_vec.serialize_float32(list(vector))


def deserialize_vector(blob: bytes, dimensions: int | None = None) -> list[float]:
    """Unpack a float32 BLOB.

    Raises:
        DimensionMismatchError: If *dimensions* is given and the BLOB length
            is not ``4 * dimensions`` bytes.
    """
    if len(blob) % _FLOAT_SIZE:
        raise ValueError(f"Embedding BLOB length {len(blob)} is not a multiple of 4")
    count = len(blob) // _FLOAT_SIZE
    if dimensions is not None and count != dimensions:
        raise DimensionMismatchError(dimensions, count, what="stored vector")
    return list(struct.unpack(f"<{count}f", blob))


def get_store_dimensions(conn: sqlite3.Connection) -> tuple[str, int] | None:
    """Return ``(model, dimensions)`` recorded for this store, or None."""
    rows = dict(
        conn.execute(
            "SELECT key, value FROM store_meta WHERE key IN (?, ?)",
            (_META_MODEL, _META_DIMENSIONS),
        ).fetchall()
    )
    if _META_DIMENSIONS not in rows:
        return None
    return rows.get(_META_MODEL, ""), int(rows[_META_DIMENSIONS])


def ensure_store_dimensions(conn: sqlite3.Connection, model: str, dimensions: int) -> None:
    """Record the embedding dimensionality on first use; verify it afterwards.

    The dimensionality is immutable for the lifetime of a store. A different
    model with the same dimensionality is allowed (the recorded model name is
    informational).

    Raises:
        ValueError: If *dimensions* < 1.
        DimensionMismatchError: If the store was created with another size.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    existing = get_store_dimensions(conn)
    if existing is None:
        conn.executemany(
            "INSERT INTO store_meta (key, value) VALUES (?, ?)",
            [(_META_MODEL, model), (_META_DIMENSIONS, str(dimensions))],
        )
        conn.commit()
        return

    _, stored = existing
    if stored != dimensions:
        raise DimensionMismatchError(stored, dimensions, what="store")
