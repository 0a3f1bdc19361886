"""Reconcile the declared docs list with what is actually indexed."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from docsindex.indexing.preindexed import is_preindexed
from docsindex.indexing.progress import IndexingStatus

if TYPE_CHECKING:
    from docsindex.indexing.service import DocsService

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """URLs touched by one sync pass.

    Attributes:
        indexed: Declared URLs whose indexing run ended ``done``.
        failed: Declared URLs whose indexing run did not end ``done``.
        deleted: Indexed URLs removed because they are no longer declared.
    """

    indexed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


class ConfigSynchronizer:
    """Index newly declared sites and drop undeclared ones.

    Only one sync runs at a time; an overlapping call returns None at once.
    """

    def __init__(self, service: DocsService) -> None:
        self._service = service
        self.is_syncing = False

    async def sync(self) -> SyncResult | None:
        if self.is_syncing:
            logger.info("Sync already in progress, skipping")
            return None

        self.is_syncing = True
        try:
            return await self._sync()
        finally:
            self.is_syncing = False

    async def _sync(self) -> SyncResult:
        service = self._service
        result = SyncResult()

        declared = service.declared.start_urls()
        indexed = {entry.start_url for entry in service.list()}

        for start_url in declared:
            if start_url in indexed:
                continue
            site = service.declared.get(start_url)
            if site is None:
                continue
            last = await service.run_to_end(site)
            if last is not None and last.status is IndexingStatus.DONE:
                result.indexed.append(start_url)
            else:
                result.failed.append(start_url)

        for start_url in sorted(indexed - set(declared)):
            if is_preindexed(start_url):
                continue
            service.delete(start_url)
            result.deleted.append(start_url)

        logger.info(
            "Synced docs: %d indexed, %d failed, %d deleted",
            len(result.indexed),
            len(result.failed),
            len(result.deleted),
        )
        return result
