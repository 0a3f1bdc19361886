"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from docsindex.config import DocsIndexConfig, SiteIndexConfig, StorageCfg
from docsindex.db.connection import Database
from docsindex.db.metadata import MetadataStore
from docsindex.db.schema import initialize
from docsindex.db.vectors import VectorStore
from docsindex.indexing.service import DocsService
from docsindex.ingest.crawl import PageData
from docsindex.ingest.embeddings import EmbeddingProvider

SITE_URL = "https://docs.example.com"


class FakeProvider(EmbeddingProvider):
    """Deterministic in-process embeddings; counts embed() calls."""

    def __init__(
        self,
        id: str = "fake/provider-a",
        dims: int = 4,
        max_chunk_size: int = 512,
        fail: bool = False,
    ) -> None:
        self.id = id
        self.dims = dims
        self.max_chunk_size = max_chunk_size
        self.fail = fail
        self.calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.fail:
            raise RuntimeError("embedding backend unavailable")
        return [self.vector(t) for t in texts]

    def vector(self, text: str) -> list[float]:
        seed = sum(ord(c) for c in text)
        return [float((seed * (i + 3)) % 97) / 97.0 + 0.01 for i in range(self.dims)]


def make_page(start_url: str, n: int) -> PageData:
    path = f"/page{n}"
    html = (
        f"<html><head><title>Page {n}</title></head>"
        f"<body><main><h1>Section {n}</h1><p>Body text for page {n}.</p></main></body></html>"
    )
    return PageData(url=start_url.rstrip("/") + path, path=path, html=html)


class FakeCrawler:
    """Yields *pages* fake pages for any start URL; records every crawl."""

    def __init__(self, pages: int = 3) -> None:
        self.pages = pages
        self.crawled: list[str] = []

    async def __call__(self, start_url: str, max_depth: int):
        self.crawled.append(start_url)
        for n in range(1, self.pages + 1):
            yield make_page(start_url, n)


async def no_favicon(site: SiteIndexConfig) -> str | None:
    return None


@pytest.fixture
def meta_db(tmp_path):
    """File-based metadata DB in tmp_path with schema initialized, closed after test."""
    conn = Database(tmp_path / "docs.sqlite", vector_search=False).connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def vec_db(tmp_path):
    """File-based vector DB in tmp_path, closed after test."""
    conn = Database(tmp_path / "vectors.sqlite").connect()
    yield conn
    conn.close()


@pytest.fixture
def metadata(meta_db) -> MetadataStore:
    return MetadataStore(meta_db)


@pytest.fixture
def vectors(vec_db) -> VectorStore:
    return VectorStore(vec_db)


@pytest.fixture
def config(tmp_path) -> DocsIndexConfig:
    return DocsIndexConfig(storage=StorageCfg(data_dir=str(tmp_path / "data")))


@pytest.fixture
def site() -> SiteIndexConfig:
    return SiteIndexConfig(start_url=SITE_URL, title="Example", max_depth=2)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def crawler() -> FakeCrawler:
    return FakeCrawler()


@pytest.fixture
def make_service(config, metadata, vectors, provider, crawler):
    """Factory building a DocsService over the tmp stores with fake collaborators."""

    def _make(**kwargs) -> DocsService:
        kwargs.setdefault("provider", provider)
        kwargs.setdefault("preindexed_provider", FakeProvider(id="fake/preindexed"))
        kwargs.setdefault("crawler", crawler)
        kwargs.setdefault("favicon_fetcher", no_favicon)
        return DocsService(kwargs.pop("config", config), metadata, vectors, **kwargs)

    return _make


@pytest.fixture
def service(make_service) -> DocsService:
    return make_service()


@pytest.fixture
def cli_env(tmp_path, monkeypatch) -> list[str]:
    """Run CLI commands from tmp_path with fake collaborators.

    Returns the ``--data-dir`` arguments to append to every invocation.
    """
    from docsindex.indexing.service import open_docs_service

    def _open(cfg, **kwargs) -> DocsService:
        kwargs.setdefault("provider", FakeProvider())
        kwargs.setdefault("preindexed_provider", FakeProvider(id="fake/preindexed"))
        kwargs.setdefault("crawler", FakeCrawler())
        kwargs.setdefault("favicon_fetcher", no_favicon)
        return open_docs_service(cfg, **kwargs)

    monkeypatch.delenv("DOCSINDEX_EMBEDDING_MODEL", raising=False)
    monkeypatch.delenv("DOCSINDEX_DATA_DIR", raising=False)
    monkeypatch.setattr("docsindex.cli.common.open_docs_service", _open)
    monkeypatch.chdir(tmp_path)
    return ["--data-dir", str(tmp_path / "data")]
