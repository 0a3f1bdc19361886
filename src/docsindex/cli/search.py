"""docsindex search — nearest chunks of one docs site for a text query.

Catalogued sites that are not indexed locally are fetched as pre-built
bundles on first search.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from docsindex.cli.common import console, load_cli_config, open_service
from docsindex.cli.errors import err_doc_not_found, err_no_api_key
from docsindex.ingest.embeddings import MissingApiKeyError

_SNIPPET_CHARS = 160


def search_cmd(
    url: Annotated[str, typer.Argument(help="Start URL of the docs site to search.")],
    query: Annotated[str, typer.Argument(help="Free-text query.")],
    k: Annotated[
        int,
        typer.Option("--k", "-k", min=1, help="Number of chunks to return."),
    ] = 5,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding the docsindex databases."),
    ] = None,
) -> None:
    """Search a docs site for chunks relevant to QUERY."""
    cfg = load_cli_config(data_dir)
    service = open_service(cfg)
    try:
        chunks = asyncio.run(service.retrieve_text(url, query, k))
    except MissingApiKeyError as exc:
        console.print(err_no_api_key(exc.provider, exc.env_var))
        raise typer.Exit(1) from exc
    finally:
        service.close()

    if not chunks:
        console.print(err_doc_not_found(url))
        raise typer.Exit(0)

    table = Table(title=f"Results for '{query}'", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Section")
    table.add_column("Path")
    table.add_column("Lines", justify="right")
    table.add_column("Content")
    for rank, chunk in enumerate(chunks, start=1):
        snippet = " ".join(chunk.content.split())
        if len(snippet) > _SNIPPET_CHARS:
            snippet = snippet[:_SNIPPET_CHARS] + "…"
        table.add_row(
            str(rank),
            chunk.title or "",
            chunk.filepath,
            f"{chunk.start_line}-{chunk.end_line}",
            snippet,
        )
    console.print(table)
