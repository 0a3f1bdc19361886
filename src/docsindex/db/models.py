"""Domain models for the docsindex storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Chunk:
    """Ordered unit of embeddable text cut from a crawled page."""

    content: str
    filepath: str
    start_line: int
    end_line: int
    index: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str | None:
        return self.metadata.get("title")


@dataclass
class DocEntry:
    """One indexed site (row of the metadata ``docs`` table)."""

    title: str
    start_url: str
    favicon: str | None = None


@dataclass
class VectorRow:
    """One embedded chunk stored in a provider-scoped vec table."""

    title: str
    start_url: str
    content: str
    path: str
    start_line: int
    end_line: int
    vector: list[float] = field(default_factory=list)
    distance: float | None = None  # set by VectorStore.search()
