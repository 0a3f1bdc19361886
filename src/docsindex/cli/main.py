"""docsindex CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from docsindex.cli.add import add_cmd
from docsindex.cli.list_docs import list_cmd
from docsindex.cli.reindex import reindex_cmd
from docsindex.cli.remove import remove_cmd
from docsindex.cli.search import search_cmd
from docsindex.cli.sync import sync_cmd


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docsindex {_installed_version()}")
        raise typer.Exit()


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docsindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # litellm and httpx are chatty at INFO/DEBUG
    for name in ("LiteLLM", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="docsindex",
    help=(
        "docsindex — index documentation sites and search them by meaning.\n\n"
        "  docsindex add URL       Crawl, embed and store a docs site.\n"
        "  docsindex search URL Q  Find the chunks of a site closest to a query."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """docsindex — documentation indexing and retrieval."""
    _configure_logging(verbose)


app.command("add")(add_cmd)
app.command("list")(list_cmd)
app.command("remove")(remove_cmd)
app.command("search")(search_cmd)
app.command("sync")(sync_cmd)
app.command("reindex")(reindex_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docsindex version."""
    typer.echo(f"docsindex {_installed_version()}")


if __name__ == "__main__":
    app()
