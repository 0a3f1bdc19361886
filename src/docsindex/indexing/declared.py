"""The user's declared list of doc sites, optionally backed by docsindex.yaml."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from docsindex.config import SiteIndexConfig, save_docs

logger = logging.getLogger(__name__)


class DeclaredDocs:
    """Ordered, start-URL-unique list of configured sites.

    Args:
        docs: Initial sites (usually ``DocsIndexConfig.docs``).
        config_path: When set, ``add()``/``remove()`` rewrite the ``docs:``
            section of this YAML file.
    """

    def __init__(
        self, docs: list[SiteIndexConfig] | None = None, config_path: Path | None = None
    ) -> None:
        self._docs: list[SiteIndexConfig] = []
        self._config_path = config_path
        self.replace(docs or [])

    def __iter__(self) -> Iterator[SiteIndexConfig]:
        return iter(list(self._docs))

    def __len__(self) -> int:
        return len(self._docs)

    def __contains__(self, start_url: object) -> bool:
        return any(d.start_url == start_url for d in self._docs)

    def start_urls(self) -> list[str]:
        return [d.start_url for d in self._docs]

    def get(self, start_url: str) -> SiteIndexConfig | None:
        return next((d for d in self._docs if d.start_url == start_url), None)

    def replace(self, docs: list[SiteIndexConfig]) -> None:
        """Swap in a new list (from a reloaded config) without persisting it."""
        unique: dict[str, SiteIndexConfig] = {}
        for doc in docs:
            unique.setdefault(doc.start_url, doc)
        self._docs = list(unique.values())

    def add(self, site: SiteIndexConfig) -> bool:
        """Append *site* unless its start URL is already declared."""
        if site.start_url in self:
            return False
        self._docs.append(site)
        self._persist()
        return True

    def remove(self, start_url: str) -> bool:
        """Drop *start_url*; returns False when it was not declared."""
        remaining = [d for d in self._docs if d.start_url != start_url]
        if len(remaining) == len(self._docs):
            return False
        self._docs = remaining
        self._persist()
        return True

    def _persist(self) -> None:
        if self._config_path is None:
            return
        save_docs(self._config_path, self._docs)
        logger.debug("Saved %d declared docs to %s", len(self._docs), self._config_path)
