"""SQLite connection layer for the metadata and vector databases."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

# Another process (a second CLI run, an editor host) may hold the write lock.
_BUSY_TIMEOUT_MS = 5000


class Database:
    """One docsindex SQLite file.

    The vector database needs the sqlite-vec extension for its vec0 tables;
    the metadata database is plain SQLite.
    """

    def __init__(self, db_path: Path | str, *, vector_search: bool = True) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing,
                parent directories included).
            vector_search: Load sqlite-vec into every connection.
        """
        self.db_path = Path(db_path)
        self.vector_search = vector_search
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a WAL-mode connection with dict-style rows and return it."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        if self.vector_search:
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
        conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT_MS}")
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
