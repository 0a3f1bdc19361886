"""Tests for ConfigSynchronizer and DocsService.update_config."""

from __future__ import annotations

import copy

import pytest

from conftest import SITE_URL, FakeCrawler, FakeProvider
from docsindex.config import SiteIndexConfig
from docsindex.db.models import DocEntry
from docsindex.indexing.progress import drain
from docsindex.indexing.sync import SyncResult

OTHER_URL = "https://other.example.com"
PYTHON_DOCS = "https://docs.python.org/3/"
BAD_URL = "https://bad.example.com"


@pytest.mark.asyncio
async def test_sync_indexes_new_declared_docs(service, site):
    service.declared.replace([site])

    result = await service.synchronizer.sync()

    assert result == SyncResult(indexed=[SITE_URL])
    assert service.has(SITE_URL)


@pytest.mark.asyncio
async def test_sync_deletes_undeclared_docs(service, site):
    await drain(service.index_site(site))
    other = SiteIndexConfig(start_url=OTHER_URL, title="Other")
    service.declared.replace([other])

    result = await service.synchronizer.sync()

    assert result.indexed == [OTHER_URL]
    assert result.deleted == [SITE_URL]
    assert [e.start_url for e in service.list()] == [OTHER_URL]


@pytest.mark.asyncio
async def test_sync_keeps_preindexed_catalog_docs(service):
    service.metadata.add_doc(DocEntry(title="Python", start_url=PYTHON_DOCS))

    result = await service.synchronizer.sync()

    assert result == SyncResult()
    assert service.has(PYTHON_DOCS)


@pytest.mark.asyncio
async def test_sync_skips_already_indexed(service, site, crawler):
    await drain(service.index_site(site))

    result = await service.synchronizer.sync()

    assert result == SyncResult()
    assert crawler.crawled == [SITE_URL]


@pytest.mark.asyncio
async def test_sync_reports_failed_sites(make_service, site):
    service = make_service(provider=FakeProvider(fail=True))
    service.declared.replace([site])

    result = await service.synchronizer.sync()

    assert result.failed == [SITE_URL]
    assert result.indexed == []


@pytest.mark.asyncio
async def test_overlapping_sync_returns_none(service, site):
    service.declared.replace([site])
    service.synchronizer.is_syncing = True

    assert await service.synchronizer.sync() is None
    assert not service.has(SITE_URL)


@pytest.mark.asyncio
async def test_sync_clears_busy_flag_after_error(service, site, monkeypatch):
    def broken_list():
        raise RuntimeError("database is locked")

    monkeypatch.setattr(service, "list", broken_list)
    service.declared.replace([site])

    with pytest.raises(RuntimeError):
        await service.synchronizer.sync()
    assert service.synchronizer.is_syncing is False


@pytest.mark.asyncio
async def test_sync_continues_past_unreachable_site(make_service, site):
    class PartlyUnreachable(FakeCrawler):
        async def __call__(self, start_url, max_depth):
            if start_url == BAD_URL:
                raise ValueError("DNS resolution failed for 'bad.example.com'")
            async for page in super().__call__(start_url, max_depth):
                yield page

    service = make_service(crawler=PartlyUnreachable())
    await drain(service.index_site(SiteIndexConfig(start_url=OTHER_URL, title="Other")))
    service.declared.replace([SiteIndexConfig(start_url=BAD_URL, title="Bad"), site])

    result = await service.synchronizer.sync()

    assert result == SyncResult(indexed=[SITE_URL], failed=[BAD_URL], deleted=[OTHER_URL])
    assert service.has(SITE_URL)
    assert BAD_URL not in service.queue


@pytest.mark.asyncio
async def test_update_config_syncs_changed_docs(service, config, site):
    new_config = copy.deepcopy(config)
    new_config.docs = [site]

    await service.update_config(new_config, provider=service.provider)

    assert service.config is new_config
    assert service.has(SITE_URL)
    assert service.declared.start_urls() == [SITE_URL]


@pytest.mark.asyncio
async def test_update_config_unchanged_docs_does_not_crawl(service, config, crawler):
    await service.update_config(copy.deepcopy(config), provider=service.provider)
    assert crawler.crawled == []
