"""Pre-indexed docs — sites whose embeddings are built out-of-band.

Bundles are JSON documents stored at ``<base_url>/<bucket>/<key>`` where the
key combines the embedding provider id and the site title::

    {"url": "...", "title": "...",
     "chunks": [{"content": "...", "filepath": "...", "startLine": 0,
                 "endLine": 3, "index": 0, "otherMetadata": {"title": "..."},
                 "embedding": [0.1, ...]}, ...]}
"""

from __future__ import annotations

import json
import logging
import urllib.parse
from dataclasses import dataclass, field

import httpx

from docsindex.config import SiteIndexConfig
from docsindex.db.models import Chunk

logger = logging.getLogger(__name__)

_TIMEOUT = 60.0

PREINDEXED_DOCS: dict[str, SiteIndexConfig] = {
    site.start_url: site
    for site in [
        SiteIndexConfig(start_url="https://docs.python.org/3/", title="Python", max_depth=3),
        SiteIndexConfig(start_url="https://docs.pytest.org/en/stable/", title="pytest"),
        SiteIndexConfig(start_url="https://docs.pydantic.dev/latest/", title="Pydantic"),
        SiteIndexConfig(start_url="https://fastapi.tiangolo.com/", title="FastAPI"),
        SiteIndexConfig(start_url="https://docs.djangoproject.com/en/stable/", title="Django"),
        SiteIndexConfig(start_url="https://flask.palletsprojects.com/en/stable/", title="Flask"),
        SiteIndexConfig(start_url="https://numpy.org/doc/stable/", title="NumPy"),
        SiteIndexConfig(start_url="https://pandas.pydata.org/docs/", title="Pandas"),
        SiteIndexConfig(start_url="https://docs.sqlalchemy.org/en/20/", title="SQLAlchemy"),
        SiteIndexConfig(start_url="https://www.python-httpx.org/", title="HTTPX"),
    ]
}


class BundleFetchError(RuntimeError):
    """Raised when a pre-built embedding bundle cannot be downloaded or parsed."""


def is_preindexed(start_url: str) -> bool:
    return start_url in PREINDEXED_DOCS


def bundle_key(provider_id: str, title: str) -> str:
    """Object key of the bundle for *title* embedded with *provider_id*."""
    return f"{urllib.parse.quote(provider_id, safe='')}/{urllib.parse.quote(title, safe='')}"


@dataclass
class SiteIndexingResults:
    """Deserialized bundle: chunks and their embeddings, index-aligned."""

    url: str
    title: str
    chunks: list[Chunk] = field(default_factory=list)
    embeddings: list[list[float]] = field(default_factory=list)

    @classmethod
    def from_json(cls, blob: str) -> SiteIndexingResults:
        """Parse a bundle document.

        Raises:
            BundleFetchError: If the document is malformed.
        """
        try:
            data = json.loads(blob)
            chunks: list[Chunk] = []
            embeddings: list[list[float]] = []
            for i, raw in enumerate(data["chunks"]):
                chunks.append(
                    Chunk(
                        content=raw["content"],
                        filepath=raw.get("filepath", ""),
                        start_line=int(raw.get("startLine", 0)),
                        end_line=int(raw.get("endLine", 0)),
                        index=int(raw.get("index", i)),
                        metadata=dict(raw.get("otherMetadata") or {}),
                    )
                )
                embeddings.append([float(x) for x in raw["embedding"]])
            return cls(url=data["url"], title=data["title"], chunks=chunks, embeddings=embeddings)
        except (ValueError, KeyError, TypeError) as exc:
            raise BundleFetchError(f"Malformed embeddings bundle: {exc}") from exc


class BundleStore:
    """Remote object store serving pre-built embedding bundles over HTTP."""

    def __init__(self, base_url: str, *, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def fetch(self, bucket: str, key: str) -> str:
        """Download ``<base_url>/<bucket>/<key>`` and return the body text.

        Raises:
            BundleFetchError: On any transport or HTTP status error.
        """
        url = f"{self.base_url}/{bucket}/{key}"
        logger.info("Downloading pre-indexed embeddings from %s", url)

        client = self._client or httpx.AsyncClient(timeout=_TIMEOUT, follow_redirects=True)
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise BundleFetchError(f"Failed to download '{url}': {exc}") from exc
        finally:
            if self._client is None:
                await client.aclose()
        return response.text
