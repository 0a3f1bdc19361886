"""docsindex storage layer — metadata database and provider-scoped vector tables."""

from docsindex.db.connection import Database
from docsindex.db.metadata import DuplicateDocError, MetadataStore
from docsindex.db.migrations import MIGRATIONS, run_migrations
from docsindex.db.models import Chunk, DocEntry, VectorRow
from docsindex.db.schema import initialize
from docsindex.db.vectors import (
    VectorStore,
    VectorStoreError,
    ensure_vec_table,
    model_to_slug,
    vec_table_name,
)

__all__ = [
    "Chunk",
    "Database",
    "DocEntry",
    "DuplicateDocError",
    "MetadataStore",
    "MIGRATIONS",
    "VectorRow",
    "VectorStore",
    "VectorStoreError",
    "ensure_vec_table",
    "initialize",
    "model_to_slug",
    "run_migrations",
    "vec_table_name",
]
