"""docsindex indexing — orchestration, retrieval fallback, config sync, provider switches."""

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
from docsindex.indexing.service import DocsService, open_docs_service
from docsindex.indexing.sync import ConfigSynchronizer, SyncResult

__all__ = [
    "BundleFetchError",
    "BundleStore",
    "ConfigSynchronizer",
    "CrawlProgress",
    "DeclaredDocs",
    "DocsService",
    "IndexingQueue",
    "IndexingStatus",
    "PREINDEXED_DOCS",
    "ProgressEvent",
    "ProviderSwitchCoordinator",
    "SiteIndexingResults",
    "SyncResult",
    "bundle_key",
    "drain",
    "is_preindexed",
    "open_docs_service",
]
