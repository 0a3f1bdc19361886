"""docsindex sync — make the index match docs: in docsindex.yaml.

Reindexes everything first if the embedding model changed since the last
run, then indexes newly declared sites and removes undeclared ones.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from docsindex.cli.common import console, load_cli_config, open_service
from docsindex.cli.errors import warn_no_docs_declared
from docsindex.indexing.service import DocsService
from docsindex.indexing.sync import SyncResult


def sync_cmd(
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding the docsindex databases."),
    ] = None,
) -> None:
    """Index declared docs that are missing and remove docs no longer declared."""
    cfg = load_cli_config(data_dir)
    service = open_service(cfg)
    try:
        if not len(service.declared) and not service.list():
            console.print(warn_no_docs_declared())
            raise typer.Exit(0)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Syncing docs…", total=None)
            switched, result = asyncio.run(_sync(service))
    finally:
        service.close()

    if switched:
        console.print(f"[green]✓[/] Reindexed docs for embedding model {cfg.embedding.model}")
    if result is None:
        console.print("[yellow]A sync is already running.[/]")
        return

    for url in result.indexed:
        console.print(f"[green]✓[/] Indexed: {url}")
    for url in result.deleted:
        console.print(f"[green]✓[/] Removed: {url}")
    for url in result.failed:
        console.print(f"[red]✗[/] Failed: {url}")
    if not (result.indexed or result.deleted or result.failed):
        console.print("[dim]Everything up to date.[/]")
    if result.failed:
        raise typer.Exit(1)


async def _sync(service: DocsService) -> tuple[bool, SyncResult | None]:
    switched = await service.start()
    return switched, await service.synchronizer.sync()
