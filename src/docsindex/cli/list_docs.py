"""docsindex list — show indexed docs sites."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from docsindex.cli.common import console, load_cli_config, open_service


def list_cmd(
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding the docsindex databases."),
    ] = None,
) -> None:
    """List indexed docs sites in the order they were added."""
    cfg = load_cli_config(data_dir)
    service = open_service(cfg)
    try:
        entries = service.list()
        declared = set(service.declared.start_urls())
    finally:
        service.close()

    if not entries:
        console.print("[yellow]No docs indexed yet.[/]\n  Run:  docsindex add URL")
        return

    table = Table(title="Indexed docs", show_header=True, header_style="bold")
    table.add_column("Title")
    table.add_column("Start URL")
    table.add_column("Declared", justify="center")
    table.add_column("Favicon", justify="center")
    for entry in entries:
        table.add_row(
            entry.title,
            entry.start_url,
            "yes" if entry.start_url in declared else "[dim]no[/]",
            "yes" if entry.favicon else "[dim]no[/]",
        )
    console.print(table)
