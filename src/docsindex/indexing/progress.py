"""Indexing progress events and the crawl-progress heuristic."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum


class IndexingStatus(str, Enum):
    INDEXING = "indexing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update of an indexing run.

    Attributes:
        progress: Heuristic completion of the current phase, in [0, 1].
        desc: Human-readable description of the current step.
        status: ``indexing`` until a terminal ``done``/``failed``/``cancelled``.
    """

    progress: float
    desc: str
    status: IndexingStatus = IndexingStatus.INDEXING


class CrawlProgress:
    """Progress estimate for a crawl whose total page count is unknown.

    ``max_known`` starts at 1 and doubles whenever the processed count reaches
    it, so the bar keeps moving without reaching 1 before the crawl ends. The
    reported value never decreases.
    """

    def __init__(self) -> None:
        self.processed = 0
        self.max_known = 1
        self.value = 0.0

    def advance(self) -> float:
        """Count one more processed page and return the updated progress."""
        self.processed += 1
        if self.processed >= self.max_known:
            self.max_known *= 2
        self.value = max(self.value, min(self.processed / self.max_known, 1.0))
        return self.value


async def drain(events: AsyncIterator[ProgressEvent]) -> ProgressEvent | None:
    """Consume *events* to the end and return the last one (None if there were none)."""
    last: ProgressEvent | None = None
    async for event in events:
        last = event
    return last
