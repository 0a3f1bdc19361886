"""docsindex rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docsindex.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai", "OPENAI_API_KEY"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str, env_var: str | None = None) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = env_var or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_config(message: str) -> str:
    """docsindex.yaml or the global config could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix docsindex.yaml (or ~/.docsindex/config.yaml) and retry."
    )


def err_invalid_url(url: str) -> str:
    """Start URL is not an http(s) URL."""
    return (
        f"[red]Error:[/] Not a web URL: '{url}'\n"
        "  Docs sites must start with https:// or http://\n"
        "  Example:  docsindex add https://docs.example.com/"
    )


def err_ssrf_blocked(url: str) -> str:
    """URL resolves to a private/reserved address."""
    return (
        f"[red]Error:[/] URL resolves to private address (SSRF protection): '{url}'\n"
        "  Use a publicly reachable URL."
    )


def err_doc_not_found(url: str) -> str:
    """Docs site is neither indexed nor declared."""
    return (
        f"[yellow]Docs not found:[/] '{url}' is not indexed or declared.\n"
        "  Run:  docsindex list  to see all indexed docs."
    )


def err_index_failed(url: str, reason: str) -> str:
    """An indexing run ended without storing anything."""
    return (
        f"[red]✗ Indexing failed:[/] {url}\n"
        f"  {reason}\n"
        "  Check the URL is reachable and your embedding model is configured, then run:\n"
        f"    docsindex add {url} --reindex"
    )


def err_already_indexing(url: str) -> str:
    """Another run holds the indexing slot for *url*."""
    return (
        f"[yellow]Already indexing:[/] '{url}'\n"
        "  Wait for the running job to finish and retry."
    )


def err_vector_store(message: str) -> str:
    """Vector table could not be opened or created."""
    return (
        f"[red]Error:[/] Vector store unavailable.\n"
        f"  {message}\n"
        "  Index a site first:  docsindex add URL"
    )


def warn_no_docs_declared() -> str:
    """No docs in docsindex.yaml — nothing to sync or reindex."""
    return (
        "[yellow]No docs declared.[/]\n"
        "  Add one:  docsindex add https://docs.example.com/\n"
        "  Or list sites under 'docs:' in docsindex.yaml"
    )


def err_site_unreachable(url: str, reason: str) -> str:
    """The seed URL could not be resolved or fetched."""
    return (
        f"[red]Error:[/] Cannot reach '{url}'\n"
        f"  {reason}\n"
        "  Check the hostname and your network connection, then retry."
    )
