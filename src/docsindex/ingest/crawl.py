"""Site crawler — breadth-first crawl of a documentation site.

Security requirements (applied to the seed URL before any connection, and
again to every redirect target on another host):
- Allowed URL schemes: https:// and http:// only.
- SSRF guard: the hostname is resolved and private/loopback/link-local/reserved
  ranges are rejected.

Only pages on the seed's origin and below the seed's path (whole path
segments) are followed.
GitHub repository URLs additionally enqueue every markdown file of the
default branch, listed through the GitHub REST API.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import urllib.parse
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_USER_AGENT = "docsindex/0.1 (+https://github.com/docsindex/docsindex)"
_TIMEOUT = 30.0  # seconds
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "text/plain", "text/markdown"}
_GITHUB_API = "https://api.github.com"
_MAX_REDIRECTS = 5

_IGNORE_PATHS_ENDING_IN = (
    "favicon.ico",
    "robots.txt",
    ".rst.txt",
    "genindex",
    "py-modindex",
    "search.html",
    "search",
    "genindex.html",
    "changelog",
    "changelog.html",
)

_MARKDOWN_SUFFIXES = (".md", ".mdx")


class SsrfError(ValueError):
    """Raised when a URL resolves to a private or reserved address."""


@dataclass
class PageData:
    """One fetched page: absolute URL, path relative to the origin, raw body."""

    url: str
    path: str
    html: str


async def crawl_site(
    start_url: str,
    max_depth: int = 3,
    *,
    client: httpx.AsyncClient | None = None,
) -> AsyncIterator[PageData]:
    """Yield pages reachable from *start_url* within *max_depth* link hops.

    Each call starts a fresh crawl. Pages that fail to fetch are logged and
    skipped; the crawl continues with the remaining queue.

    Args:
        start_url: Seed URL (http/https).
        max_depth: Maximum link depth; the seed page has depth 0.
        client: Optional pre-configured client (tests inject a MockTransport).
    """
    validate_scheme(start_url)
    check_ssrf(start_url)

    parsed = urllib.parse.urlparse(start_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    base_path = parsed.path or "/"

    logger.info("Starting crawl from %s (max depth %d)", start_url, max_depth)

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            headers={"User-Agent": _USER_AGENT},
            timeout=_TIMEOUT,
        )

    try:
        queue: deque[tuple[str, int]] = deque([(base_path, 0)])
        if parsed.hostname == "github.com":
            for path in await _github_markdown_paths(client, base_path):
                queue.append((path, 0))

        seen: set[str] = set()
        while queue:
            path, depth = queue.popleft()
            if path in seen or depth > max_depth:
                continue
            seen.add(path)

            url = origin + path
            html = await _fetch_page(client, url)
            if html is None:
                continue

            yield PageData(url=url, path=path, html=html)

            if depth < max_depth:
                for link in _extract_links(html, url, origin, base_path):
                    if link not in seen:
                        queue.append((link, depth + 1))
    finally:
        if owns_client:
            await client.aclose()

    logger.info("Crawl completed for %s (%d pages visited)", start_url, len(seen))


# ------------------------------------------------------------------
# Fetch
# ------------------------------------------------------------------


async def _fetch_page(client: httpx.AsyncClient, url: str) -> str | None:
    """Fetch *url*; return its body, or None when it failed or isn't a document."""
    try:
        response = await _get_with_redirects(client, url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        return None
    except ValueError as exc:
        logger.warning("Refusing redirect from %s: %s", url, exc)
        return None

    ct = response.headers.get("Content-Type", "text/html").split(";")[0].strip().lower()
    if ct not in _ALLOWED_CONTENT_TYPES:
        logger.debug("Skipping %s: unsupported Content-Type '%s'", url, ct)
        return None
    return response.text


async def _get_with_redirects(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """GET *url*, following redirects one hop at a time.

    A hop to a different host is scheme-checked and SSRF-checked before it
    is requested.

    Raises:
        SsrfError: A redirect target resolves to a private address.
        ValueError: A redirect target has a bad scheme or does not resolve.
        httpx.TooManyRedirects: More than ``_MAX_REDIRECTS`` hops.
    """
    host = httpx.URL(url).host
    for _ in range(_MAX_REDIRECTS + 1):
        response = await client.get(url, follow_redirects=False)
        if not response.has_redirect_location:
            return response
        url = str(response.url.join(response.headers["Location"]))
        target = httpx.URL(url)
        if target.host != host:
            validate_scheme(url)
            check_ssrf(url)
            host = target.host
    raise httpx.TooManyRedirects(
        f"Exceeded {_MAX_REDIRECTS} redirects", request=response.request
    )


def _is_below(path: str, base_path: str) -> bool:
    """True if *path* is *base_path* or lies under it, compared by whole segments."""
    base = base_path.rstrip("/")
    return not base or path == base or path.startswith(base + "/")


def _extract_links(html: str, page_url: str, origin: str, base_path: str) -> list[str]:
    """Return same-origin paths below *base_path* linked from *html*."""
    soup = BeautifulSoup(html, "html.parser")
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        absolute = urllib.parse.urljoin(page_url, anchor["href"])
        parsed = urllib.parse.urlparse(absolute)
        if f"{parsed.scheme}://{parsed.netloc}" != origin:
            continue
        path = parsed.path or "/"
        if not _is_below(path, base_path):
            continue
        if path.rstrip("/").endswith(_IGNORE_PATHS_ENDING_IN):
            continue
        if path not in links:
            links.append(path)
    return links


async def _github_markdown_paths(client: httpx.AsyncClient, repo_path: str) -> list[str]:
    """List markdown files of a GitHub repository as crawlable /tree/ paths.

    Returns an empty list (after logging) when the API is unreachable.
    """
    parts = [p for p in repo_path.split("/") if p]
    if len(parts) < 2:
        return []
    owner, repo = parts[0], parts[1]

    try:
        info = await client.get(f"{_GITHUB_API}/repos/{owner}/{repo}")
        info.raise_for_status()
        branch = info.json()["default_branch"]

        tree = await client.get(
            f"{_GITHUB_API}/repos/{owner}/{repo}/git/trees/{branch}",
            params={"recursive": "true"},
            headers={"X-GitHub-Api-Version": "2022-11-28"},
        )
        tree.raise_for_status()
        entries = tree.json().get("tree", [])
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        logger.warning("Could not list GitHub repository %s/%s: %s", owner, repo, exc)
        return []

    logger.info("GitHub repo detected, crawling %s branch", branch)
    return [
        f"/{owner}/{repo}/tree/{branch}/{entry['path']}"
        for entry in entries
        if entry.get("type") == "blob"
        and entry.get("path", "").endswith(_MARKDOWN_SUFFIXES)
    ]


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


def validate_scheme(url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise ValueError(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )


def check_ssrf(url: str) -> None:
    """Resolve the hostname and block private/reserved IP ranges.

    Raises SsrfError if any resolved address is private, loopback,
    link-local, or otherwise reserved.
    """
    parsed = urllib.parse.urlparse(url)
    hostname = parsed.hostname
    if not hostname:
        raise ValueError(f"URL has no hostname: {url}")

    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise ValueError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for addrinfo in addrinfos:
        addr_str = addrinfo[4][0]
        try:
            ip = ipaddress.ip_address(addr_str)
        except ValueError:
            continue
        if (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )
