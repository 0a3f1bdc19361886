"""Docs indexing service — crawl → chunk → embed → persist, and retrieval.

Owns the two stores and keeps them consistent:

- vector rows are written first, then the metadata entry; if the metadata
  write fails the rows just written are removed again;
- a metadata entry therefore only exists for sites whose rows are stored
  under the current embedding provider's table.

Indexing progress is streamed as an async generator of ``ProgressEvent``.
Callers that stop early should close it (``contextlib.aclosing``) so the
per-URL indexing slot is released immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from pathlib import Path

from docsindex.config import DocsIndexConfig, SiteIndexConfig
from docsindex.db.connection import Database
from docsindex.db.metadata import MetadataStore
from docsindex.db.models import Chunk, DocEntry, VectorRow
from docsindex.db.schema import initialize
from docsindex.db.vectors import VectorStore
from docsindex.ingest.article import chunk_article, page_to_article
from docsindex.ingest.crawl import PageData, crawl_site
from docsindex.ingest.embeddings import (
    EmbeddingProvider,
    preindexed_provider_from_config,
    provider_from_config,
)
from docsindex.ingest.favicon import fetch_favicon
from docsindex.indexing.declared import DeclaredDocs
from docsindex.indexing.preindexed import (
    PREINDEXED_DOCS,
    BundleFetchError,
    BundleStore,
    SiteIndexingResults,
    bundle_key,
    is_preindexed,
)
from docsindex.indexing.progress import CrawlProgress, IndexingStatus, ProgressEvent, drain
from docsindex.indexing.provider_switch import ProviderSwitchCoordinator
from docsindex.indexing.queue import IndexingQueue
from docsindex.indexing.sync import ConfigSynchronizer

logger = logging.getLogger(__name__)

REFRESH_SUBMENU_ITEMS = "refreshSubmenuItems"

Crawler = Callable[[str, int], AsyncIterator[PageData]]
FaviconFetcher = Callable[[SiteIndexConfig], Awaitable[str | None]]
Notifier = Callable[[str], None]


class DocsService:
    """Index documentation sites and retrieve their chunks.

    Args:
        config: Loaded configuration.
        metadata: Store of indexed sites and persisted global state.
        vectors: Provider-scoped vector tables.
        declared: The user's declared docs; defaults to ``config.docs``.
        provider: Embedding provider; defaults to ``config.embedding``.
        preindexed_provider: Provider pre-indexed bundles were built with.
        crawler: ``(start_url, max_depth) -> AsyncIterator[PageData]``.
        bundle_store: Source of pre-built embedding bundles.
        favicon_fetcher: Coroutine returning a favicon data URL or None.
        notifier: Fire-and-forget UI notification callback.
    """

    def __init__(
        self,
        config: DocsIndexConfig,
        metadata: MetadataStore,
        vectors: VectorStore,
        *,
        declared: DeclaredDocs | None = None,
        provider: EmbeddingProvider | None = None,
        preindexed_provider: EmbeddingProvider | None = None,
        crawler: Crawler = crawl_site,
        bundle_store: BundleStore | None = None,
        favicon_fetcher: FaviconFetcher = fetch_favicon,
        notifier: Notifier | None = None,
    ) -> None:
        self._config = config
        self.metadata = metadata
        self.vectors = vectors
        self.declared = declared if declared is not None else DeclaredDocs(config.docs)
        self._provider = provider or provider_from_config(config.embedding)
        self._preindexed_provider = preindexed_provider or preindexed_provider_from_config(
            config.preindexed
        )
        self._crawler = crawler
        self._bundles = bundle_store or BundleStore(config.preindexed.base_url)
        self._favicon_fetcher = favicon_fetcher
        self._notifier = notifier
        self._queue = IndexingQueue()
        self._closers: list[Callable[[], None]] = []

        self.synchronizer = ConfigSynchronizer(self)
        self.provider_switch = ProviderSwitchCoordinator(self)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> DocsIndexConfig:
        return self._config

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    @property
    def preindexed_provider(self) -> EmbeddingProvider:
        return self._preindexed_provider

    @property
    def queue(self) -> IndexingQueue:
        return self._queue

    def can_use_preindexed_docs(self) -> bool:
        """Pre-indexed bundles need the pre-indexed model to run in-process."""
        return self._config.host.local_embeddings

    def is_constrained_preindexed_provider(self) -> bool:
        """True when the configured provider cannot run on this host at all."""
        return (
            not self.can_use_preindexed_docs()
            and self._provider.id == self._preindexed_provider.id
        )

    def provider_for(self, start_url: str) -> EmbeddingProvider:
        """Provider whose vector table holds (or will hold) *start_url*'s rows."""
        if is_preindexed(start_url) and self.can_use_preindexed_docs():
            return self._preindexed_provider
        return self._provider

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Reconcile the persisted provider id with the active one.

        Returns True if docs were reindexed for a new provider.
        """
        return await self.provider_switch.check()

    async def update_config(
        self, new_config: DocsIndexConfig, provider: EmbeddingProvider | None = None
    ) -> None:
        """Apply a changed configuration: sync declared docs, then handle provider switches."""
        old_config = self._config
        self._config = new_config

        if provider is not None:
            self._provider = provider
        elif new_config.embedding != old_config.embedding:
            self._provider = provider_from_config(new_config.embedding)
        if new_config.preindexed != old_config.preindexed:
            self._preindexed_provider = preindexed_provider_from_config(new_config.preindexed)

        if new_config.docs != old_config.docs:
            self.declared.replace(new_config.docs)
            await self.synchronizer.sync()

        await self.provider_switch.check()

    def close(self) -> None:
        """Close database connections opened by ``open_docs_service()``."""
        while self._closers:
            self._closers.pop()()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has(self, start_url: str) -> bool:
        return self.metadata.has(start_url)

    def list(self) -> list[DocEntry]:
        return self.metadata.list_docs()

    def get_favicon(self, start_url: str) -> str | None:
        return self.metadata.get_favicon(start_url)

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def index_site(
        self,
        site: SiteIndexConfig,
        reindex: bool = False,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Crawl, embed and store *site*, yielding progress as it goes.

        Produces no events at all when the site is already being indexed.
        The indexing slot is released however the run ends.
        """
        start_url = site.start_url
        if not self._queue.try_acquire(start_url):
            logger.info("Already indexing %s", start_url)
            return

        try:
            async with aclosing(self._run_indexing(site, reindex, cancel)) as events:
                async for event in events:
                    yield event
        finally:
            self._queue.release(start_url)

    async def _run_indexing(
        self, site: SiteIndexConfig, reindex: bool, cancel: asyncio.Event | None
    ) -> AsyncIterator[ProgressEvent]:
        start_url = site.start_url

        if not reindex and self.has(start_url):
            yield ProgressEvent(1, "Already indexed", IndexingStatus.DONE)
            return

        yield ProgressEvent(0, "Finding subpages", IndexingStatus.INDEXING)

        provider = self.provider_for(start_url)
        articles = []
        crawl_progress = CrawlProgress()

        async for page in self._crawler(start_url, site.max_depth):
            if cancel is not None and cancel.is_set():
                yield _cancelled(crawl_progress.value)
                return
            progress = crawl_progress.advance()
            article = page_to_article(page)
            if article is None:
                continue
            articles.append(article)
            yield ProgressEvent(progress, f"Finding subpages ({page.path})")

        logger.info("Creating embeddings for %d articles from %s", len(articles), start_url)

        chunks: list[Chunk] = []
        embeddings: list[list[float]] = []
        for i, article in enumerate(articles):
            if cancel is not None and cancel.is_set():
                yield _cancelled(i / len(articles))
                return
            yield ProgressEvent(i / len(articles), f"Creating embeddings: {article.subpath}")
            try:
                article_chunks = chunk_article(article, provider.max_chunk_size)
                vectors = await provider.embed([c.content for c in article_chunks])
                if len(vectors) != len(article_chunks):
                    raise ValueError(
                        f"got {len(vectors)} embeddings for {len(article_chunks)} chunks"
                    )
            except Exception:
                logger.warning("Error chunking or embedding %s", article.url, exc_info=True)
                continue
            chunks.extend(article_chunks)
            embeddings.extend(vectors)

        if not embeddings:
            logger.error(
                "No embeddings were created for site: %s (%d chunks)", start_url, len(chunks)
            )
            yield ProgressEvent(
                1, f"No embeddings were created for site: {start_url}", IndexingStatus.FAILED
            )
            return

        if cancel is not None and cancel.is_set():
            yield _cancelled(1)
            return

        logger.info("Adding %d embeddings to db for %s", len(embeddings), start_url)
        yield ProgressEvent(0.5, f"Adding {len(embeddings)} embeddings to db")

        if reindex:
            logger.info("Deleting old embeddings for %s", start_url)
            self._remove_rows(start_url)

        favicon = await self._favicon_fetcher(site)
        self._add(site, chunks, embeddings, favicon, provider)
        if not is_preindexed(start_url):
            self.declared.add(site)

        self._notify()
        logger.info("Successfully indexed %s", start_url)
        yield ProgressEvent(1, "Done", IndexingStatus.DONE)

    async def index_all(self, reindex: bool = False) -> dict[str, ProgressEvent | None]:
        """Index every declared site in turn; returns each site's final event."""
        results: dict[str, ProgressEvent | None] = {}
        for site in self.declared:
            results[site.start_url] = await self.run_to_end(site, reindex=reindex)
        return results

    async def run_to_end(
        self, site: SiteIndexConfig, reindex: bool = False
    ) -> ProgressEvent | None:
        """Drain ``index_site()`` for one site of a batch.

        An exception escaping the run (unreachable seed, SSRF rejection, a
        storage error) is logged and reported as a ``failed`` event so the
        rest of the batch can go on.
        """
        try:
            return await drain(self.index_site(site, reindex=reindex))
        except Exception as exc:
            logger.error("Indexing %s failed: %s", site.start_url, exc, exc_info=True)
            return ProgressEvent(1, str(exc), IndexingStatus.FAILED)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _add(
        self,
        site: SiteIndexConfig,
        chunks: list[Chunk],
        embeddings: list[list[float]],
        favicon: str | None,
        provider: EmbeddingProvider,
    ) -> None:
        """Write vector rows, then the metadata entry."""
        table = self.vectors.ensure_table(provider.id, dimensions=len(embeddings[0]))
        rows = [
            VectorRow(
                title=chunk.title or site.title,
                start_url=site.start_url,
                content=chunk.content,
                path=chunk.filepath,
                start_line=chunk.start_line,
                end_line=chunk.end_line,
                vector=vector,
            )
            for chunk, vector in zip(chunks, embeddings)
        ]
        rowids = self.vectors.add(table, rows)
        try:
            self.metadata.add_doc(
                DocEntry(title=site.title, start_url=site.start_url, favicon=favicon)
            )
        except Exception:
            # Only this run's rows: another writer may own the existing entry.
            self.vectors.delete_rows(table, rowids)
            raise

    def _remove_rows(self, start_url: str) -> None:
        deleted = self.vectors.delete_site(start_url)
        self.metadata.delete_doc(start_url)
        logger.debug("Removed %d vector rows for %s", deleted, start_url)

    def remove_index(self, start_url: str) -> None:
        """Delete *start_url*'s vector rows and metadata entry, keeping it declared."""
        self._remove_rows(start_url)
        self._notify()

    def delete(self, start_url: str) -> None:
        """Remove *start_url* everywhere: vector tables, metadata, declared docs.

        Deleting a site that is not indexed is not an error.
        """
        self._remove_rows(start_url)
        self.declared.remove(start_url)
        self._notify()

    def _notify(self) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier(REFRESH_SUBMENU_ITEMS)
        except Exception:
            logger.warning("Notifier failed", exc_info=True)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def retrieve(
        self,
        start_url: str,
        vector: list[float],
        k: int,
        *,
        is_retry: bool = False,
    ) -> list[Chunk]:
        """Return the *k* chunks of *start_url* nearest to *vector*.

        When nothing is indexed locally and *start_url* is a pre-indexed doc,
        its bundle is downloaded and stored, and the search is retried once.
        Never raises for a missing site; returns an empty list instead.
        """
        provider = self.provider_for(start_url)
        table = self.vectors.ensure_table(provider.id, dimensions=len(vector))
        rows = self.vectors.search(table, vector, k, start_url)

        if not rows and not self.has(start_url):
            site = PREINDEXED_DOCS.get(start_url)
            if is_retry or site is None or not self.can_use_preindexed_docs():
                return []
            if not await self._fetch_and_add_preindexed(site):
                return []
            return await self.retrieve(start_url, vector, k, is_retry=True)

        return [
            Chunk(
                content=row.content,
                filepath=row.path,
                start_line=row.start_line,
                end_line=row.end_line,
                index=0,
                metadata={"title": row.title},
            )
            for row in rows
        ]

    async def retrieve_text(self, start_url: str, query: str, k: int) -> list[Chunk]:
        """Embed *query* with the site's provider and retrieve nearest chunks."""
        [vector] = await self.provider_for(start_url).embed([query])
        return await self.retrieve(start_url, vector, k)

    async def _fetch_and_add_preindexed(self, site: SiteIndexConfig) -> bool:
        """Download and store the bundle for *site*. Returns False if it could not."""
        if not self._queue.try_acquire(site.start_url):
            logger.info("Skipping bundle download for %s: indexing in progress", site.start_url)
            return False
        try:
            provider = self._preindexed_provider
            try:
                blob = await self._bundles.fetch(
                    self._config.preindexed.bucket, bundle_key(provider.id, site.title)
                )
                results = SiteIndexingResults.from_json(blob)
            except BundleFetchError as exc:
                logger.warning("No pre-indexed embeddings for %s: %s", site.start_url, exc)
                return False
            if not results.embeddings:
                logger.warning("Pre-indexed bundle for %s is empty", site.start_url)
                return False

            favicon = await self._favicon_fetcher(site)
            bundled_site = SiteIndexConfig(
                start_url=site.start_url,
                title=results.title,
                max_depth=site.max_depth,
                favicon_url=site.favicon_url,
            )
            self._add(bundled_site, results.chunks, results.embeddings, favicon, provider)
        finally:
            self._queue.release(site.start_url)

        self._notify()
        return True


def _cancelled(progress: float) -> ProgressEvent:
    return ProgressEvent(progress, "Cancelled", IndexingStatus.CANCELLED)


def open_docs_service(
    config: DocsIndexConfig,
    *,
    config_path: Path | None = None,
    **kwargs,
) -> DocsService:
    """Open both databases under ``config.storage`` and build a service.

    The caller owns the returned service and must call ``close()``.
    Extra keyword arguments are passed to ``DocsService``.
    """
    meta_conn = Database(config.storage.metadata_path, vector_search=False).connect()
    initialize(meta_conn)
    vec_conn = Database(config.storage.vectors_path).connect()

    kwargs.setdefault("declared", DeclaredDocs(config.docs, config_path=config_path))
    service = DocsService(config, MetadataStore(meta_conn), VectorStore(vec_conn), **kwargs)
    service._closers.extend([meta_conn.close, vec_conn.close])
    return service
