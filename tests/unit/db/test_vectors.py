"""Tests for provider-scoped sqlite-vec tables and VectorStore."""

from __future__ import annotations

import logging

import pytest

from docsindex.db.models import VectorRow
from docsindex.db.vectors import (
    VectorStoreError,
    ensure_vec_table,
    model_to_slug,
    vec_table_name,
)

URL_A = "https://a.example.com"
URL_B = "https://b.example.com"


def _row(start_url: str, vector: list[float], content: str = "text", path: str = "/p") -> VectorRow:
    return VectorRow(
        title="Title",
        start_url=start_url,
        content=content,
        path=path,
        start_line=1,
        end_line=4,
        vector=vector,
    )


# --- model_to_slug ---

@pytest.mark.parametrize("model,expected", [
    ("openai/text-embedding-3-small", "openai_text_embedding_3_small"),
    ("cohere/embed-english-v3.0", "cohere_embed_english_v3_0"),
    ("huggingface/sentence-transformers/all-MiniLM-L6-v2",
     "huggingface_sentence_transformers_all_minilm_l6_v2"),
    ("ollama:nomic-embed-text", "ollama_nomic_embed_text"),
])
def test_model_to_slug(model, expected):
    assert model_to_slug(model) == expected


def test_vec_table_name():
    slug = model_to_slug("openai/text-embedding-3-small")
    assert vec_table_name(slug) == "vec_docs_openai_text_embedding_3_small"


# --- ensure_vec_table ---

def test_ensure_vec_table_creates_table(vec_db):
    table = ensure_vec_table(vec_db, "openai_text_embedding_3_small", dimensions=1536)
    assert table == "vec_docs_openai_text_embedding_3_small"
    row = vec_db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    assert row is not None


def test_ensure_vec_table_idempotent(vec_db):
    assert ensure_vec_table(vec_db, "slug", 8) == ensure_vec_table(vec_db, "slug", 8)


def test_ensure_vec_table_invalid_slug(vec_db):
    with pytest.raises(ValueError, match="model_slug"):
        ensure_vec_table(vec_db, "invalid/slug!", dimensions=128)


def test_ensure_vec_table_invalid_dimensions(vec_db):
    with pytest.raises(ValueError, match="dimensions"):
        ensure_vec_table(vec_db, "valid_slug", dimensions=0)


# --- VectorStore.ensure_table ---

def test_ensure_table_creates_with_dimensions(vectors):
    table = vectors.ensure_table("fake/provider", dimensions=4)
    assert table == "vec_docs_fake_provider"
    assert vectors.table_names() == [table]


def test_ensure_table_missing_without_dimensions_raises(vectors, caplog):
    with caplog.at_level(logging.WARNING, logger="docsindex.db.vectors"):
        with pytest.raises(VectorStoreError, match="does not exist"):
            vectors.ensure_table("fake/provider")
    assert "no dimensions" in caplog.text


def test_ensure_table_existing_without_dimensions(vectors, vec_db):
    ensure_vec_table(vec_db, "fake_provider", 4)
    assert vectors.ensure_table("fake/provider") == "vec_docs_fake_provider"


def test_table_names_excludes_shadow_tables(vectors):
    vectors.ensure_table("p/one", dimensions=4)
    vectors.ensure_table("p/two", dimensions=4)
    assert vectors.table_names() == ["vec_docs_p_one", "vec_docs_p_two"]


def test_table_names_sees_tables_from_other_connections(vectors, tmp_path):
    from docsindex.db.connection import Database
    from docsindex.db.vectors import VectorStore

    vectors.ensure_table("p/one", dimensions=4)
    other = Database(tmp_path / "vectors.sqlite").connect()
    try:
        assert VectorStore(other).table_names() == ["vec_docs_p_one"]
    finally:
        other.close()


# --- add / search / count ---

def test_add_and_search_nearest_first(vectors):
    table = vectors.ensure_table("p", dimensions=3)
    vectors.add(table, [
        _row(URL_A, [1.0, 0.0, 0.0], content="x-axis"),
        _row(URL_A, [0.0, 1.0, 0.0], content="y-axis"),
        _row(URL_A, [0.0, 0.0, 1.0], content="z-axis"),
    ])

    rows = vectors.search(table, [0.0, 0.9, 0.1], k=2, start_url=URL_A)

    assert [r.content for r in rows] == ["y-axis", "z-axis"]
    assert rows[0].distance <= rows[1].distance
    assert rows[0].title == "Title"
    assert (rows[0].start_line, rows[0].end_line) == (1, 4)


def test_search_filters_by_start_url(vectors):
    table = vectors.ensure_table("p", dimensions=2)
    vectors.add(table, [_row(URL_A, [1.0, 0.0]), _row(URL_B, [1.0, 0.0])])

    rows = vectors.search(table, [1.0, 0.0], k=10, start_url=URL_B)

    assert len(rows) == 1
    assert rows[0].start_url == URL_B


def test_search_k_zero_returns_empty(vectors):
    table = vectors.ensure_table("p", dimensions=2)
    vectors.add(table, [_row(URL_A, [1.0, 0.0])])
    assert vectors.search(table, [1.0, 0.0], k=0, start_url=URL_A) == []


def test_count_per_site(vectors):
    table = vectors.ensure_table("p", dimensions=2)
    vectors.add(table, [_row(URL_A, [1.0, 0.0]), _row(URL_A, [0.0, 1.0]), _row(URL_B, [1.0, 1.0])])
    assert vectors.count(table, URL_A) == 2
    assert vectors.count(table, URL_B) == 1


# --- delete_site ---

def test_delete_site_across_all_tables(vectors):
    t1 = vectors.ensure_table("p/one", dimensions=2)
    t2 = vectors.ensure_table("p/two", dimensions=3)
    vectors.add(t1, [_row(URL_A, [1.0, 0.0]), _row(URL_B, [0.0, 1.0])])
    vectors.add(t2, [_row(URL_A, [1.0, 0.0, 0.0])])

    assert vectors.delete_site(URL_A) == 2

    assert vectors.count(t1, URL_A) == 0
    assert vectors.count(t2, URL_A) == 0
    assert vectors.count(t1, URL_B) == 1


def test_delete_site_idempotent(vectors):
    table = vectors.ensure_table("p", dimensions=2)
    vectors.add(table, [_row(URL_A, [1.0, 0.0])])
    assert vectors.delete_site(URL_A) == 1
    assert vectors.delete_site(URL_A) == 0


def test_delete_site_without_tables(vectors):
    assert vectors.delete_site(URL_A) == 0


# --- add rowids / delete_rows ---

def test_add_returns_inserted_rowids(vectors):
    table = vectors.ensure_table("p", dimensions=2)
    first = vectors.add(table, [_row(URL_A, [1.0, 0.0]), _row(URL_A, [0.0, 1.0])])
    second = vectors.add(table, [_row(URL_A, [1.0, 1.0])])

    assert len(first) == 2
    assert len(set(first + second)) == 3


def test_delete_rows_removes_only_given_rows(vectors):
    table = vectors.ensure_table("p", dimensions=2)
    vectors.add(table, [_row(URL_A, [1.0, 0.0], content="kept")])
    dropped = vectors.add(table, [_row(URL_A, [0.0, 1.0]), _row(URL_A, [1.0, 1.0])])

    assert vectors.delete_rows(table, dropped) == 2

    rows = vectors.search(table, [1.0, 0.0], k=10, start_url=URL_A)
    assert [r.content for r in rows] == ["kept"]


def test_delete_rows_empty_is_noop(vectors):
    table = vectors.ensure_table("p", dimensions=2)
    vectors.add(table, [_row(URL_A, [1.0, 0.0])])
    assert vectors.delete_rows(table, []) == 0
    assert vectors.count(table, URL_A) == 1
