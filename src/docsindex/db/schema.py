"""Metadata database initialization."""

from __future__ import annotations

import sqlite3

CURRENT_VERSION = 2


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the metadata schema via the migration runner (idempotent)."""
    from docsindex.db.migrations import run_migrations

    run_migrations(conn)
