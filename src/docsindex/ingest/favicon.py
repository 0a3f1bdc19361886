"""Favicon fetcher — stores a site's icon inline as a data URL."""

from __future__ import annotations

import base64
import logging
import urllib.parse

import httpx

from docsindex.config import SiteIndexConfig

logger = logging.getLogger(__name__)

_MAX_BYTES = 256 * 1024
_TIMEOUT = 10.0


async def fetch_favicon(
    site: SiteIndexConfig, *, client: httpx.AsyncClient | None = None
) -> str | None:
    """Return the site's favicon as a ``data:`` URL, or None if unavailable.

    Uses ``site.favicon_url`` when set, else ``<origin>/favicon.ico``.
    """
    url = site.favicon_url or urllib.parse.urljoin(site.start_url, "/favicon.ico")

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=_TIMEOUT, follow_redirects=True)
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.debug("No favicon for %s: %s", site.start_url, exc)
        return None
    finally:
        if owns_client:
            await client.aclose()

    body = response.content
    if not body or len(body) > _MAX_BYTES:
        return None

    content_type = response.headers.get("Content-Type", "image/x-icon").split(";")[0].strip()
    if not content_type.startswith("image/"):
        return None
    return f"data:{content_type};base64,{base64.b64encode(body).decode('ascii')}"
