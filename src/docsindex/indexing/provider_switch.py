"""Reindex declared docs when the active embedding provider changes.

The persisted provider id is written only after every site has been
reindexed successfully. If a switch is interrupted the old id stays in
place and the switch is retried on the next ``check()``.
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING

from docsindex.indexing.progress import IndexingStatus

if TYPE_CHECKING:
    from docsindex.indexing.service import DocsService
    from docsindex.ingest.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)

STATE_KEY = "current_embedding_provider_id"


class ProviderSwitchCoordinator:
    def __init__(self, service: DocsService) -> None:
        self._service = service

    @property
    def persisted_id(self) -> str | None:
        return self._service.metadata.get_state(STATE_KEY)

    def should_reindex(self, provider_id: str) -> bool:
        """Decide whether switching to *provider_id* requires a reindex.

        Records *provider_id* as current when no reindex is needed because
        nothing was recorded before, or because the host cannot run it.
        """
        service = self._service
        persisted = self.persisted_id
        if service.is_constrained_preindexed_provider():
            if persisted == provider_id:
                return False
            warnings.warn(
                f"Embedding provider '{provider_id}' needs in-process embeddings, which this "
                "host does not support. Docs will not be reindexed; configure a different "
                "embedding model to index docs here.",
                UserWarning,
                stacklevel=2,
            )
            service.metadata.set_state(STATE_KEY, provider_id)
            return False

        if persisted is None:
            service.metadata.set_state(STATE_KEY, provider_id)
            return False

        return persisted != provider_id

    async def reindex_all(self, provider: EmbeddingProvider) -> bool:
        """Rebuild every declared site under *provider*.

        Returns True, and records *provider* as current, only if every site
        finished ``done``.
        """
        service = self._service
        logger.info(
            "Reindexing docs for new embeddings provider %s (was %s)",
            provider.id,
            self.persisted_id,
        )

        all_done = True
        for site in service.declared:
            service.remove_index(site.start_url)
            last = await service.run_to_end(site)
            if last is None or last.status is not IndexingStatus.DONE:
                logger.warning("Reindex of %s did not complete", site.start_url)
                all_done = False

        if not all_done:
            return False

        service.metadata.set_state(STATE_KEY, provider.id)
        logger.info("Reindexed docs for embeddings provider %s", provider.id)
        return True

    async def check(self) -> bool:
        """Reindex if the active provider differs from the recorded one."""
        provider = self._service.provider
        if not self.should_reindex(provider.id):
            return False
        return await self.reindex_all(provider)
