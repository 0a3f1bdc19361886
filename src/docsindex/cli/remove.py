"""docsindex remove — delete a docs site and all its data.

Removes:
  - vector rows (all provider tables)
  - the indexed-docs entry
  - the site's entry under docs: in ./docsindex.yaml

Usage:
  docsindex remove https://docs.example.com/
  docsindex remove https://docs.example.com/ --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from docsindex.cli.common import console, load_cli_config, open_service
from docsindex.cli.errors import err_doc_not_found


def remove_cmd(
    url: Annotated[str, typer.Argument(help="Start URL of the docs site to remove.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding the docsindex databases."),
    ] = None,
) -> None:
    """Remove a docs site from the index and from docsindex.yaml."""
    cfg = load_cli_config(data_dir)
    service = open_service(cfg)

    try:
        if not service.has(url) and url not in service.declared:
            console.print(err_doc_not_found(url))
            raise typer.Exit(0)

        console.print(f"\nRemove docs: [bold]{url}[/]")
        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        service.delete(url)
        console.print(f"\n[green]✓[/] Removed: {url}")
    finally:
        service.close()
