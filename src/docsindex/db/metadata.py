"""Metadata store — which documentation sites are indexed.

Single source of truth for "is this site indexed": a ``docs`` row exists for a
start URL if and only if indexing for it completed successfully at least once.
Also holds process-wide persisted scalars (``global_state``), such as the id of
the embedding provider the vector tables were last built with.
"""

from __future__ import annotations

import sqlite3

from docsindex.db.models import DocEntry


class DuplicateDocError(ValueError):
    """Raised when a site with the same start URL is already stored."""


class MetadataStore:
    """Data access layer for the ``docs`` and ``global_state`` tables.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see docsindex.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Docs
    # ------------------------------------------------------------------

    def add_doc(self, doc: DocEntry) -> None:
        """Insert a new site entry.

        Raises:
            DuplicateDocError: If ``doc.start_url`` is already stored.
        """
        try:
            self._conn.execute(
                "INSERT INTO docs (title, start_url, favicon) VALUES (?, ?, ?)",
                (doc.title, doc.start_url, doc.favicon),
            )
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise DuplicateDocError(
                f"Site '{doc.start_url}' is already indexed."
            ) from exc
        self._conn.commit()

    def get_doc(self, start_url: str) -> DocEntry | None:
        """Return the entry for *start_url*, or None if not indexed."""
        row = self._conn.execute(
            "SELECT title, start_url, favicon FROM docs WHERE start_url = ?",
            (start_url,),
        ).fetchone()
        return _row_to_doc(row) if row else None

    def has(self, start_url: str) -> bool:
        """Return True if *start_url* has a stored entry."""
        row = self._conn.execute(
            "SELECT 1 FROM docs WHERE start_url = ?", (start_url,)
        ).fetchone()
        return row is not None

    def list_docs(self) -> list[DocEntry]:
        """Return all indexed sites in insertion order."""
        rows = self._conn.execute(
            "SELECT title, start_url, favicon FROM docs ORDER BY id"
        ).fetchall()
        return [_row_to_doc(r) for r in rows]

    def delete_doc(self, start_url: str) -> bool:
        """Delete the entry for *start_url*. Returns False if nothing was stored."""
        cur = self._conn.execute("DELETE FROM docs WHERE start_url = ?", (start_url,))
        self._conn.commit()
        return cur.rowcount > 0

    def get_favicon(self, start_url: str) -> str | None:
        row = self._conn.execute(
            "SELECT favicon FROM docs WHERE start_url = ?", (start_url,)
        ).fetchone()
        return row["favicon"] if row else None

    # ------------------------------------------------------------------
    # Global state
    # ------------------------------------------------------------------

    def get_state(self, key: str) -> str | None:
        """Return the persisted value for *key*, or None if never set."""
        row = self._conn.execute(
            "SELECT value FROM global_state WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        """Upsert the persisted value for *key*."""
        self._conn.execute(
            """
            INSERT INTO global_state (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = datetime('now')
            """,
            (key, value),
        )
        self._conn.commit()


def _row_to_doc(row: sqlite3.Row) -> DocEntry:
    return DocEntry(
        title=row["title"],
        start_url=row["start_url"],
        favicon=row["favicon"],
    )
