"""Pydantic models for the sync engine.

Defines the core data contracts used across all sync modules:

- ``SyncMode``: Which directions a run may transfer content in.
- ``SyncAction``: Outcome applied to one item.
- ``ItemKind``: Book, chapter or page.
- ``ConflictInfo``: Details about a page changed on both sides.
- ``ConflictDecision``: Caller's answer to an interactive conflict.
- ``SyncResult``: Outcome of syncing one item.
- ``SyncCounts``: Aggregate outcome counts.
- ``SyncReport``: Aggregate results for a full sync run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncMode(str, Enum):
    """Direction(s) a sync run is allowed to move content in."""

    PULL_ONLY = "pull-only"
    PUSH_ONLY = "push-only"
    BIDIRECTIONAL = "bidirectional"

    @property
    def creates_remote(self) -> bool:
        """Whether untracked local content is created remotely."""
        return self is not SyncMode.PULL_ONLY


class SyncAction(str, Enum):
    """Outcome applied to one item."""

    SKIP = "skip"
    PUSH = "push"
    PULL = "pull"
    CREATE = "create"
    CONFLICT = "conflict"


class ItemKind(str, Enum):
    BOOK = "book"
    CHAPTER = "chapter"
    PAGE = "page"


class ConflictDecision(str, Enum):
    """How the caller resolved an interactive conflict."""

    KEEP_LOCAL = "keep-local"
    KEEP_REMOTE = "keep-remote"
    DEFER = "defer"


class ConflictInfo(BaseModel):
    """Details about a page that changed on both sides.

    Attributes:
        page_id: Remote page id.
        page_name: Remote page name.
        local_path: Path of the local file.
        local_content: Body of the local file (metadata stripped).
        last_synced: ``last_synced`` recorded in the local metadata, if any.
        local_modified: Local file modification time (ISO 8601).
        remote_updated: Remote ``updated_at``.
        collision: True when the local file was never synced with this page
            and merely occupies the page's expected path.
    """

    page_id: int
    page_name: str
    local_path: str
    local_content: str = ""
    last_synced: str | None = None
    local_modified: str | None = None
    remote_updated: str | None = None
    collision: bool = False

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of syncing one book, chapter or page.

    Attributes:
        kind: What kind of item this result is for.
        remote_id: Remote id, when known.
        name: Display name of the item.
        local_path: Local path involved, when known.
        action: Sync action that was performed.
        success: Whether the operation succeeded.
        conflict: True when the action came out of conflict resolution.
        error: Error or explanatory message.
    """

    kind: ItemKind
    remote_id: int | None = None
    name: str = ""
    local_path: str = ""
    action: SyncAction
    success: bool = True
    conflict: bool = False
    error: str | None = None

    model_config = {"frozen": True}


class SyncCounts(BaseModel):
    """Aggregate outcome counts for a run."""

    pulled: int = 0
    pushed: int = 0
    created: int = 0
    skipped: int = 0
    errors: int = 0

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        mode: Mode the run executed in.
        results: Individual results in traversal order.
        started_at: ISO 8601 timestamp when sync started.
        completed_at: ISO 8601 timestamp when sync completed.
    """

    mode: SyncMode
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _succeeded(self, action: SyncAction) -> list[SyncResult]:
        return [
            r for r in self.results if r.success and r.action == action
        ]

    @property
    def pulled(self) -> list[SyncResult]:
        """Successful pulls."""
        return self._succeeded(SyncAction.PULL)

    @property
    def pushed(self) -> list[SyncResult]:
        """Successful pushes."""
        return self._succeeded(SyncAction.PUSH)

    @property
    def created(self) -> list[SyncResult]:
        """Remote chapters and pages created from local content."""
        return self._succeeded(SyncAction.CREATE)

    @property
    def skipped(self) -> list[SyncResult]:
        """Pages left unchanged, including deferred conflicts."""
        return self._succeeded(SyncAction.SKIP)

    @property
    def conflicts(self) -> list[SyncResult]:
        """Pages that went through conflict resolution."""
        return [r for r in self.results if r.conflict]

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def counts(self) -> SyncCounts:
        """The aggregate ``{pulled, pushed, created, skipped, errors}``."""
        return SyncCounts(
            pulled=len(self.pulled),
            pushed=len(self.pushed),
            created=len(self.created),
            skipped=len(self.skipped),
            errors=len(self.errors),
        )

    def summary(self) -> str:
        """One-line summary listing only the non-zero categories."""
        counts = self.counts
        parts = [
            f"{value} {label}"
            for label, value in (
                ("pulled", counts.pulled),
                ("pushed", counts.pushed),
                ("created", counts.created),
                ("skipped", counts.skipped),
                ("errors", counts.errors),
            )
            if value
        ]
        return "Sync complete: " + (", ".join(parts) or "nothing to do")
