"""docsindex reindex — rebuild the index of one or all declared docs sites.

Usage:
  docsindex reindex                          # every site in docsindex.yaml
  docsindex reindex https://docs.example.com/
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from docsindex.cli.common import console, index_and_report, load_cli_config, open_service
from docsindex.cli.errors import err_doc_not_found, warn_no_docs_declared
from docsindex.config import SiteIndexConfig
from docsindex.indexing.preindexed import PREINDEXED_DOCS
from docsindex.indexing.service import DocsService


def reindex_cmd(
    url: Annotated[
        str | None,
        typer.Argument(help="Start URL to reindex (default: all declared docs)."),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding the docsindex databases."),
    ] = None,
) -> None:
    """Rebuild docs indexes from scratch."""
    cfg = load_cli_config(data_dir)
    service = open_service(cfg)
    try:
        if url is not None:
            site = _resolve_site(service, url)
            if site is None:
                console.print(err_doc_not_found(url))
                raise typer.Exit(1)
            sites = [site]
        else:
            sites = list(service.declared)
            if not sites:
                console.print(warn_no_docs_declared())
                raise typer.Exit(0)

        failures = 0
        for site in sites:
            console.print(f"\n[bold]→ {site.start_url}[/]")
            if not index_and_report(service, site, reindex=True):
                failures += 1
    finally:
        service.close()

    if failures:
        raise typer.Exit(1)


def _resolve_site(service: DocsService, url: str) -> SiteIndexConfig | None:
    """Find crawl settings for *url*: declared docs, then the catalog, then the index."""
    site = service.declared.get(url) or PREINDEXED_DOCS.get(url)
    if site is not None:
        return site
    entry = service.metadata.get_doc(url)
    if entry is None:
        return None
    return SiteIndexConfig(start_url=entry.start_url, title=entry.title)
