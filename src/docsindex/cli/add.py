"""docsindex add — crawl, embed and store one docs site.

The site is also appended to ``docs:`` in ./docsindex.yaml once indexed.

Usage:
  docsindex add https://docs.example.com/
  docsindex add https://docs.example.com/ --title Example --max-depth 2
  docsindex add https://docs.example.com/ --reindex
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from docsindex.cli.common import console, index_and_report, load_cli_config, open_service
from docsindex.cli.errors import err_invalid_url
from docsindex.config import SiteIndexConfig


def add_cmd(
    url: Annotated[str, typer.Argument(help="Start URL of the docs site.")],
    title: Annotated[
        str | None,
        typer.Option("--title", "-t", help="Display title (defaults to the URL)."),
    ] = None,
    max_depth: Annotated[
        int,
        typer.Option("--max-depth", min=0, help="Maximum link depth to follow."),
    ] = 3,
    reindex: Annotated[
        bool,
        typer.Option("--reindex", help="Rebuild the index even if the site is already indexed."),
    ] = False,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding the docsindex databases."),
    ] = None,
) -> None:
    """Index a documentation site."""
    if not url.startswith(("https://", "http://")):
        console.print(err_invalid_url(url))
        raise typer.Exit(1)

    cfg = load_cli_config(data_dir)
    site = SiteIndexConfig(start_url=url, title=title or url, max_depth=max_depth)

    service = open_service(cfg)
    try:
        console.print(f"\n[bold]→ {site.start_url}[/]")
        ok = index_and_report(service, site, reindex=reindex)
    finally:
        service.close()

    if not ok:
        raise typer.Exit(1)
