"""Helpers shared by docsindex CLI commands: config, service lifecycle, progress."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from docsindex.cli.errors import (
    err_already_indexing,
    err_config,
    err_index_failed,
    err_site_unreachable,
    err_ssrf_blocked,
    err_vector_store,
)
from docsindex.config import (
    PROJECT_CONFIG_NAME,
    ConfigError,
    DocsIndexConfig,
    SiteIndexConfig,
    load_config,
)
from docsindex.db.metadata import DuplicateDocError
from docsindex.db.vectors import VectorStoreError
from docsindex.indexing.progress import IndexingStatus, ProgressEvent
from docsindex.indexing.service import DocsService, open_docs_service
from docsindex.ingest.crawl import SsrfError

console = Console()


def load_cli_config(data_dir: Path | None) -> DocsIndexConfig:
    """Load config from the CWD, applying the --data-dir flag (highest priority)."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if data_dir is not None:
        cfg.storage.data_dir = str(data_dir)
    return cfg


def open_service(cfg: DocsIndexConfig) -> DocsService:
    """Open the service with declared docs persisted to ./docsindex.yaml."""
    return open_docs_service(cfg, config_path=Path.cwd() / PROJECT_CONFIG_NAME)


def index_with_progress(
    service: DocsService, site: SiteIndexConfig, reindex: bool = False
) -> ProgressEvent | None:
    """Run one indexing job under a rich progress bar; return its last event."""

    async def _run() -> ProgressEvent | None:
        last: ProgressEvent | None = None
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task(site.title, total=1.0)
            async with aclosing(service.index_site(site, reindex=reindex)) as events:
                async for event in events:
                    prog.update(task, completed=event.progress, description=event.desc)
                    last = event
        return last

    return asyncio.run(_run())


def report(site: SiteIndexConfig, last: ProgressEvent | None) -> bool:
    """Print the outcome of an indexing job; return True if it succeeded."""
    if last is None:
        console.print(err_already_indexing(site.start_url))
        return False
    if last.status is IndexingStatus.DONE:
        console.print(f"[green]✓[/] {site.title}: {last.desc}  [dim]{site.start_url}[/]")
        return True
    if last.status is IndexingStatus.CANCELLED:
        console.print(f"[yellow]Cancelled:[/] {site.start_url}")
        return False
    console.print(err_index_failed(site.start_url, last.desc))
    return False


def index_and_report(service: DocsService, site: SiteIndexConfig, reindex: bool = False) -> bool:
    """Index *site* under a progress bar and print the outcome; return True on success.

    Errors that end a run early are printed as actionable messages instead
    of tracebacks.
    """
    try:
        last = index_with_progress(service, site, reindex=reindex)
    except SsrfError:
        console.print(err_ssrf_blocked(site.start_url))
        return False
    except VectorStoreError as exc:
        console.print(err_vector_store(str(exc)))
        return False
    except DuplicateDocError as exc:
        console.print(err_index_failed(site.start_url, str(exc)))
        return False
    except ValueError as exc:
        console.print(err_site_unreachable(site.start_url, str(exc)))
        return False
    return report(site, last)
