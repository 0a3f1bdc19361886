"""Tests for DeclaredDocs and its docsindex.yaml persistence."""

from __future__ import annotations

import yaml

from docsindex.config import SiteIndexConfig
from docsindex.indexing.declared import DeclaredDocs

A = SiteIndexConfig(start_url="https://a.test", title="A")
B = SiteIndexConfig(start_url="https://b.test", title="B", max_depth=1)


def test_replace_deduplicates_keeping_first():
    docs = DeclaredDocs([A, SiteIndexConfig(start_url="https://a.test", title="A2"), B])
    assert docs.start_urls() == ["https://a.test", "https://b.test"]
    assert docs.get("https://a.test").title == "A"


def test_add_and_remove_in_memory():
    docs = DeclaredDocs()
    assert docs.add(A) is True
    assert docs.add(A) is False
    assert "https://a.test" in docs
    assert docs.remove("https://a.test") is True
    assert docs.remove("https://a.test") is False
    assert len(docs) == 0


def test_add_persists_docs_section(tmp_path):
    path = tmp_path / "docsindex.yaml"
    path.write_text("embedding:\n  model: openai/x\n", encoding="utf-8")
    docs = DeclaredDocs([A], config_path=path)

    docs.add(B)

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["embedding"] == {"model": "openai/x"}
    assert data["docs"] == [
        {"start_url": "https://a.test", "title": "A", "max_depth": 3},
        {"start_url": "https://b.test", "title": "B", "max_depth": 1},
    ]


def test_remove_persists(tmp_path):
    path = tmp_path / "docsindex.yaml"
    docs = DeclaredDocs([A, B], config_path=path)

    docs.remove("https://a.test")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert [d["start_url"] for d in data["docs"]] == ["https://b.test"]


def test_replace_does_not_persist(tmp_path):
    path = tmp_path / "docsindex.yaml"
    DeclaredDocs(config_path=path).replace([A])
    assert not path.exists()
