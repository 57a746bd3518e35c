"""Per-run state shared by the sync components.

A ``SyncContext`` is created when a run starts and dropped when it ends, so
nothing learned about the local tree outlives the run that learned it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from bookstack_sync.sync.metadata import PageMetadata
from bookstack_sync.sync.models import SyncMode, SyncResult


@dataclass
class SyncContext:
    """Identity caches and collected results for one sync run.

    Attributes:
        mode: Mode the run executes in.
        books: Book id -> local book folder.
        chapters: Chapter id -> local chapter folder.
        pages: Page id -> local page file.
        containers: Folder -> metadata describing the book/chapter it holds.
        claimed: Files withheld from remote creation for the rest of the run.
        results: Results in traversal order.
    """

    mode: SyncMode
    books: dict[int, Path] = field(default_factory=dict)
    chapters: dict[int, Path] = field(default_factory=dict)
    pages: dict[int, Path] = field(default_factory=dict)
    containers: dict[Path, PageMetadata] = field(default_factory=dict)
    claimed: set[Path] = field(default_factory=set)
    results: list[SyncResult] = field(default_factory=list)

    def record(self, result: SyncResult) -> SyncResult:
        self.results.append(result)
        return result

    def invalidate_under(self, path: Path) -> None:
        """Drop every cached entry at *path* or below it."""

        def stale(candidate: Path) -> bool:
            return candidate == path or path in candidate.parents

        for cache in (self.books, self.chapters, self.pages):
            for key in [k for k, v in cache.items() if stale(v)]:
                del cache[key]
        for folder in [f for f in self.containers if stale(f)]:
            del self.containers[folder]
