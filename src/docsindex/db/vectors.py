"""Per-provider sqlite-vec virtual tables for embedded doc chunks.

Each embedding provider gets its own vec0 table, named from a sanitized
provider id. Vectors from different providers are never comparable, so a
provider switch leaves the previous table's rows orphaned until deleted.

Table layout::

    vec_docs_<slug>(
        embedding   float[N],      -- dimensionality declared at creation
        start_url   text,          -- metadata column, filterable in KNN
        +title      text,          -- auxiliary columns, returned as-is
        +content    text,
        +path       text,
        +start_line integer,
        +end_line   integer,
    )
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3

from docsindex.db.models import VectorRow

logger = logging.getLogger(__name__)

TABLE_PREFIX = "vec_docs_"


class VectorStoreError(RuntimeError):
    """Raised when a vector table cannot be opened or created."""


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "ollama:nomic-embed-text" -> "ollama_nomic_embed_text"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a provider slug."""
    return f"{TABLE_PREFIX}{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_docs_{model_slug} if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized provider identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name (vec_docs_{model_slug}).
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}' — use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    if not _table_exists(conn, table):
        conn.execute(
            f"""
            CREATE VIRTUAL TABLE {table} USING vec0(
                embedding float[{dimensions}],
                start_url text,
                +title text,
                +content text,
                +path text,
                +start_line integer,
                +end_line integer
            )
            """
        )
        conn.commit()
        logger.debug("Created vector table %s (%d dimensions)", table, dimensions)

    return table


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


class VectorStore:
    """Provider-scoped tables of embedded chunks, with nearest-neighbour search.

    Keeps a registry of provider id -> table name. Entries are resolved lazily
    on first use and cached; ``table_names()`` additionally discovers tables
    created by earlier processes so deletes reach every provider's rows.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._tables: dict[str, str] = {}

    def ensure_table(self, provider_id: str, dimensions: int | None = None) -> str:
        """Return the table for *provider_id*, creating it when *dimensions* is given.

        Raises:
            VectorStoreError: If the table does not exist and no dimensions
                were supplied to create it.
        """
        cached = self._tables.get(provider_id)
        if cached is not None:
            return cached

        slug = model_to_slug(provider_id)
        table = vec_table_name(slug)
        if not _table_exists(self._conn, table):
            if dimensions is None:
                logger.warning(
                    "No vector table found for provider '%s' and no dimensions "
                    "were given to create one",
                    provider_id,
                )
            else:
                ensure_vec_table(self._conn, slug, dimensions)

        if not _table_exists(self._conn, table):
            raise VectorStoreError(
                f"Vector table '{table}' for provider '{provider_id}' does not exist."
            )

        self._tables[provider_id] = table
        return table

    def table_names(self) -> list[str]:
        """Return every docs vec table in the database (vec0 shadow tables excluded)."""
        rows = self._conn.execute(
            r"""
            SELECT name FROM sqlite_master
            WHERE type='table' AND name LIKE 'vec\_docs\_%' ESCAPE '\'
              AND sql LIKE 'CREATE VIRTUAL TABLE%'
            ORDER BY name
            """
        ).fetchall()
        return [r[0] for r in rows]

    def add(self, table: str, rows: list[VectorRow]) -> list[int]:
        """Insert *rows* into *table* in one transaction.

        Returns the rowids of the inserted rows, so a caller can undo exactly
        this insert with ``delete_rows()``.
        """
        sql = f"""
            INSERT INTO {table}
                (embedding, start_url, title, content, path, start_line, end_line)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """
        rowids: list[int] = []
        try:
            for r in rows:
                cur = self._conn.execute(
                    sql,
                    (
                        json.dumps(r.vector),
                        r.start_url,
                        r.title,
                        r.content,
                        r.path,
                        r.start_line,
                        r.end_line,
                    ),
                )
                rowids.append(cur.lastrowid)
        except sqlite3.Error:
            self._conn.rollback()
            raise
        self._conn.commit()
        return rowids

    def delete_rows(self, table: str, rowids: list[int]) -> int:
        """Delete the given rows of *table*. Returns how many were deleted."""
        if not rowids:
            return 0
        self._conn.executemany(
            f"DELETE FROM {table} WHERE rowid = ?", [(rowid,) for rowid in rowids]
        )
        self._conn.commit()
        return len(rowids)

    def search(
        self, table: str, vector: list[float], k: int, start_url: str
    ) -> list[VectorRow]:
        """Return the *k* nearest rows of *table* whose start_url equals *start_url*."""
        if k <= 0:
            return []
        rows = self._conn.execute(
            f"""
            SELECT title, start_url, content, path, start_line, end_line, distance
            FROM {table}
            WHERE embedding MATCH ? AND k = ? AND start_url = ?
            ORDER BY distance
            """,
            (json.dumps(vector), k, start_url),
        ).fetchall()
        return [
            VectorRow(
                title=r["title"],
                start_url=r["start_url"],
                content=r["content"],
                path=r["path"],
                start_line=r["start_line"],
                end_line=r["end_line"],
                distance=r["distance"],
            )
            for r in rows
        ]

    def count(self, table: str, start_url: str) -> int:
        """Return how many rows of *table* belong to *start_url*."""
        return self._conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE start_url = ?", (start_url,)
        ).fetchone()[0]

    def delete_site(self, start_url: str) -> int:
        """Delete all rows for *start_url* from every vec table.

        Returns the total number of rows deleted (0 when nothing was stored).
        """
        total_deleted = 0
        for table in self.table_names():
            rowids = [
                r[0]
                for r in self._conn.execute(
                    f"SELECT rowid FROM {table} WHERE start_url = ?", (start_url,)
                ).fetchall()
            ]
            if not rowids:
                continue
            self._conn.executemany(
                f"DELETE FROM {table} WHERE rowid = ?", [(rowid,) for rowid in rowids]
            )
            total_deleted += len(rowids)

        self._conn.commit()
        return total_deleted
