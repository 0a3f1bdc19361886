"""docsindex configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (DOCSINDEX_EMBEDDING_MODEL, DOCSINDEX_DATA_DIR)
  3. Per-project docsindex.yaml
  4. Global ~/.docsindex/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docsindex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "docsindex.yaml"

# Fields that suggest an API key — forbidden in global config.
# Does NOT match legitimate config keys like max_chunk_size or batch_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections — unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "preindexed", "host", "storage", "docs"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class SiteIndexConfig:
    """A crawl target and its rules (docsindex.yaml: docs[]).

    Attributes:
        start_url: Seed URL; the unique key of an indexed site.
        title: Human-readable site title.
        max_depth: Maximum link depth followed from the seed page.
        favicon_url: Explicit favicon location (defaults to /favicon.ico).
    """

    start_url: str
    title: str
    max_depth: int = 3
    favicon_url: str | None = None


@dataclass
class EmbeddingCfg:
    """Embedding provider configuration (docsindex.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    max_chunk_size: int = 512
    batch_size: int = 64


@dataclass
class PreIndexedCfg:
    """Pre-built embedding bundles for catalogued sites (docsindex.yaml: preindexed:)."""

    model: str = "huggingface/sentence-transformers/all-MiniLM-L6-v2"
    max_chunk_size: int = 256
    bucket: str = "docs-embeddings"
    base_url: str = "https://embeddings.docsindex.dev"


@dataclass
class HostCfg:
    """Capabilities of the host process (docsindex.yaml: host:).

    Attributes:
        local_embeddings: Whether the host can run the pre-indexed embedding
            model in-process. Hosts without it cannot use pre-indexed docs.
    """

    local_embeddings: bool = True


@dataclass
class StorageCfg:
    """Where the metadata and vector databases live (docsindex.yaml: storage:)."""

    data_dir: str = str(_GLOBAL_CONFIG_DIR)

    @property
    def metadata_path(self) -> Path:
        return Path(self.data_dir).expanduser() / "docs.sqlite"

    @property
    def vectors_path(self) -> Path:
        return Path(self.data_dir).expanduser() / "vectors.sqlite"


@dataclass
class DocsIndexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    preindexed: PreIndexedCfg = field(default_factory=PreIndexedCfg)
    host: HostCfg = field(default_factory=HostCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    docs: list[SiteIndexConfig] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _parse_site(raw: dict[str, Any]) -> SiteIndexConfig:
    start_url = raw.get("start_url")
    if not start_url:
        raise ConfigError(f"docs entry is missing 'start_url': {raw!r}")
    if not str(start_url).startswith(("https://", "http://")):
        raise ConfigError(
            f"docs entry start_url must be an http(s) URL, got '{start_url}'."
        )
    return SiteIndexConfig(
        start_url=str(start_url),
        title=str(raw.get("title") or start_url),
        max_depth=int(raw.get("max_depth", 3)),
        favicon_url=raw.get("favicon_url"),
    )


def _site_to_dict(site: SiteIndexConfig) -> dict[str, Any]:
    data: dict[str, Any] = {
        "start_url": site.start_url,
        "title": site.title,
        "max_depth": site.max_depth,
    }
    if site.favicon_url:
        data["favicon_url"] = site.favicon_url
    return data


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> DocsIndexConfig:
    """Build a *DocsIndexConfig* from a merged raw YAML dict."""
    cfg = DocsIndexConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            max_chunk_size=int(e.get("max_chunk_size", cfg.embedding.max_chunk_size)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
        )

    if "preindexed" in data:
        p = data["preindexed"] or {}
        cfg.preindexed = PreIndexedCfg(
            model=str(p.get("model", cfg.preindexed.model)),
            max_chunk_size=int(p.get("max_chunk_size", cfg.preindexed.max_chunk_size)),
            bucket=str(p.get("bucket", cfg.preindexed.bucket)),
            base_url=str(p.get("base_url", cfg.preindexed.base_url)),
        )

    if "host" in data:
        h = data["host"] or {}
        cfg.host = HostCfg(
            local_embeddings=bool(h.get("local_embeddings", cfg.host.local_embeddings)),
        )

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(data_dir=str(s.get("data_dir", cfg.storage.data_dir)))

    if "docs" in data:
        cfg.docs = [_parse_site(d) for d in data["docs"] or []]

    if cfg.embedding.max_chunk_size < 1:
        raise ConfigError(
            f"embedding.max_chunk_size must be >= 1, got {cfg.embedding.max_chunk_size}"
        )

    return cfg


def _apply_env_overrides(cfg: DocsIndexConfig) -> DocsIndexConfig:
    """Apply DOCSINDEX_* environment variable overrides (layer 2)."""
    if model := os.environ.get("DOCSINDEX_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if data_dir := os.environ.get("DOCSINDEX_DATA_DIR"):
        cfg.storage.data_dir = data_dir
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocsIndexConfig:
    """Load and return a merged *DocsIndexConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docsindex.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or if a
            docs entry is malformed.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def save_docs(config_path: Path, docs: list[SiteIndexConfig]) -> None:
    """Rewrite the ``docs:`` section of *config_path*, keeping every other section.

    The file is created if it does not exist yet.
    """
    data: dict[str, Any] = {}
    if config_path.exists():
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    data["docs"] = [_site_to_dict(d) for d in docs]
    config_path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")

