"""Core sync engine reconciling a local folder tree with BookStack.

The ``SyncEngine`` walks the selected books in configuration order and, for
each one:

1. Resolves, renames or creates the book folder and writes its index file.
2. Walks the book's contents in remote order: chapters get the same folder
   treatment and then have their pages reconciled; pages directly in the
   book are reconciled in the book folder.
3. Reconciles each page: locate the local file, align its name, detect
   which sides changed, then skip, pull, push or hand the conflict to the
   resolver.
4. In push-only and bidirectional runs, scans the book folder for untracked
   content to create remotely.

Errors are handled per item: a failing page, chapter or book is recorded
and logged, and its siblings are still processed.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from bookstack_sync.config_schema import SyncSettings
from bookstack_sync.converters import html_to_markdown
from bookstack_sync.core.client import BookStackAPIError, BookStackClient
from bookstack_sync.core.models import BookDetail, RemoteChapter, RemotePage
from bookstack_sync.file_handler import (
    file_mtime,
    read_file_with_encoding,
    stamp_mtime,
    write_file,
)
from bookstack_sync.sync.context import SyncContext
from bookstack_sync.sync.detector import ChangeDetector, decide_action, sync_moment
from bookstack_sync.sync.identity import PAGE_SUFFIX, IdentityResolver
from bookstack_sync.sync.metadata import (
    PageMetadata,
    compose,
    container_metadata,
    page_metadata,
    parse_metadata,
    write_index_file,
)
from bookstack_sync.sync.models import (
    ConflictDecision,
    ConflictInfo,
    ItemKind,
    SyncAction,
    SyncMode,
    SyncReport,
    SyncResult,
)
from bookstack_sync.sync.renamer import RenameReconciler, sanitize_file_name
from bookstack_sync.sync.resolver import (
    ConflictResolver,
    Notify,
    create_resolver,
    log_notice,
)
from bookstack_sync.sync.scanner import LocalCreationScanner

logger = logging.getLogger(__name__)


class SyncConfigurationError(ValueError):
    """The engine cannot run with the given configuration."""


class SyncInProgressError(RuntimeError):
    """A run was requested while another run of the same engine is active."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Reconcile the selected BookStack books with a local folder tree.

    Args:
        client: BookStack API client.
        settings: Sync settings (books, mode, strategy, tolerances).
        sync_root: Local folder holding one sub-folder per book.
        resolver: Conflict resolver; built from
            ``settings.conflict_strategy`` when omitted.
        notify: Sink for user-visible notices such as preserved conflicts.

    Raises:
        SyncConfigurationError: If the conflict strategy cannot be built.
    """

    def __init__(
        self,
        client: BookStackClient,
        settings: SyncSettings,
        sync_root: Path,
        resolver: ConflictResolver | None = None,
        notify: Notify | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.sync_root = Path(sync_root)
        self.notify: Callable[[str], None] = notify or log_notice
        if resolver is None:
            try:
                resolver = create_resolver(
                    settings.conflict_strategy, notify=self.notify
                )
            except ValueError as exc:
                raise SyncConfigurationError(str(exc)) from exc
        self.resolver = resolver
        self.detector = ChangeDetector(settings.buffer_seconds)

        self._lock = threading.Lock()
        self._ctx: SyncContext | None = None
        self._identity: IdentityResolver | None = None
        self._renamer: RenameReconciler | None = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, mode: SyncMode | str | None = None) -> SyncReport:
        """Execute one sync run.

        Args:
            mode: Mode for this run; ``settings.mode`` when omitted.

        Returns:
            A ``SyncReport`` with one result per item touched.

        Raises:
            SyncConfigurationError: If the mode is unknown or no books are
                selected.
            SyncInProgressError: If this engine is already running.
        """
        try:
            run_mode = SyncMode(mode or self.settings.mode)
        except ValueError as exc:
            raise SyncConfigurationError(f"Unknown sync mode: {mode!r}") from exc
        if not self.settings.books:
            raise SyncConfigurationError(
                "No books selected; set sync.books in the configuration"
            )

        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError("A sync is already in progress")
        try:
            return self._run(run_mode)
        finally:
            self._ctx = None
            self._identity = None
            self._renamer = None
            self._lock.release()

    def run_pull_only(self) -> SyncReport:
        return self.run(SyncMode.PULL_ONLY)

    def run_push_only(self) -> SyncReport:
        return self.run(SyncMode.PUSH_ONLY)

    def run_bidirectional(self) -> SyncReport:
        return self.run(SyncMode.BIDIRECTIONAL)

    def _run(self, mode: SyncMode) -> SyncReport:
        started_at = _now_iso()
        logger.info(
            "Starting %s sync of %d book(s) into %s",
            mode.value,
            len(self.settings.books),
            self.sync_root,
        )

        ctx = SyncContext(mode=mode)
        self._ctx = ctx
        self._identity = IdentityResolver(
            ctx, self.settings.index_file, self.settings.ignore
        )
        self._renamer = RenameReconciler(ctx)

        for book_id in self.settings.books:
            try:
                self._sync_book(book_id)
            except Exception as exc:
                logger.error("Error syncing book %d: %s", book_id, exc)
                ctx.record(
                    SyncResult(
                        kind=ItemKind.BOOK,
                        remote_id=book_id,
                        action=SyncAction.SKIP,
                        success=False,
                        error=str(exc),
                    )
                )

        report = SyncReport(
            mode=mode,
            results=ctx.results,
            started_at=started_at,
            completed_at=_now_iso(),
        )
        logger.info(report.summary())
        return report

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def _sync_book(self, book_id: int) -> None:
        ctx, identity = self._ctx, self._identity
        book = self.client.get_book(book_id)

        local = identity.find_book_folder(book.id, self.sync_root)
        folder = self._place_folder(
            local, book.name, self.sync_root, "collection_id", book.id
        )
        ctx.books[book.id] = folder
        container = container_metadata(book.id, book.name, book.description)
        ctx.containers[folder] = container
        write_index_file(
            folder, self.settings.index_file, container, book.description
        )

        for item in book.contents:
            if item.type == "chapter":
                try:
                    self._sync_chapter(book, item.id, folder)
                except Exception as exc:
                    logger.error(
                        "Error syncing chapter %d of book '%s': %s",
                        item.id,
                        book.name,
                        exc,
                    )
                    ctx.record(
                        SyncResult(
                            kind=ItemKind.CHAPTER,
                            remote_id=item.id,
                            name=item.name,
                            action=SyncAction.SKIP,
                            success=False,
                            error=str(exc),
                        )
                    )
            else:
                self._sync_page_guarded(container, item.id, item.name, folder)

        if ctx.mode.creates_remote:
            LocalCreationScanner(
                self.client,
                ctx,
                identity,
                self.settings.create_chapters_from_folders,
            ).scan(book.id, folder)

    def _sync_chapter(
        self, book: BookDetail, chapter_id: int, book_folder: Path
    ) -> None:
        ctx = self._ctx
        chapter: RemoteChapter = self.client.get_chapter(chapter_id)

        local = self._identity.find_chapter_folder(chapter.id, book_folder)
        folder = self._place_folder(
            local, chapter.name, book_folder, "subcollection_id", chapter.id
        )
        ctx.chapters[chapter.id] = folder
        container = container_metadata(
            book.id,
            book.name,
            book.description,
            chapter_id=chapter.id,
            chapter_name=chapter.name,
            chapter_description=chapter.description,
        )
        ctx.containers[folder] = container
        write_index_file(
            folder, self.settings.index_file, container, chapter.description
        )

        for summary in chapter.pages:
            self._sync_page_guarded(container, summary.id, summary.name, folder)

    def _place_folder(
        self,
        local: Path | None,
        name: str,
        parent: Path,
        key: str,
        remote_id: int,
    ) -> Path:
        """Return the folder for a container, renaming or creating it."""
        if local is not None:
            return self._renamer.reconcile_name(local, name, parent)

        folder = parent / sanitize_file_name(name)
        if folder.is_dir():
            owner = self._identity.folder_identity(folder, key)
            if owner is not None and owner != remote_id:
                # Another container with the same name already owns it.
                folder = parent / f"{sanitize_file_name(name)} ({remote_id})"
        folder.mkdir(parents=True, exist_ok=True)
        return folder

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def _sync_page_guarded(
        self, container: PageMetadata, page_id: int, name: str, folder: Path
    ) -> None:
        try:
            self._ctx.record(self._sync_page(container, page_id, folder))
        except Exception as exc:
            logger.error("Error syncing page %d ('%s'): %s", page_id, name, exc)
            self._ctx.record(
                SyncResult(
                    kind=ItemKind.PAGE,
                    remote_id=page_id,
                    name=name,
                    action=SyncAction.SKIP,
                    success=False,
                    error=str(exc),
                )
            )

    def _page_file_stem(
        self, page: RemotePage, folder: Path, local: Path | None
    ) -> str:
        """File stem for *page* in *folder*.

        The plain page name is used unless it clashes with the index file or
        with a file already tracked for another page of the same name.
        """
        stem = sanitize_file_name(page.name)
        if f"{stem}{PAGE_SUFFIX}".lower() == self.settings.index_file.lower():
            return f"{stem} ({page.id})"

        plain = folder / f"{stem}{PAGE_SUFFIX}"
        if plain != local:
            owner = self._identity.page_identity(plain)
            if owner is not None and owner != page.id:
                return f"{stem} ({page.id})"
        return stem

    def _sync_page(
        self, container: PageMetadata, page_id: int, folder: Path
    ) -> SyncResult:
        page = self.client.get_page(page_id)
        local = self._identity.find_local_page(page.id, folder)
        stem = self._page_file_stem(page, folder, local)

        if local is None:
            target = folder / f"{stem}{PAGE_SUFFIX}"
            if target.exists():
                owner = self._identity.page_identity(target)
                if owner is not None:
                    raise FileExistsError(
                        f"{target} is already tracked for page {owner}"
                    )
                return self._resolve_collision(container, page, target)
            self._pull(container, page, target)
            return self._result(page, target, SyncAction.PULL)

        path = self._renamer.reconcile_name(local, stem, folder, PAGE_SUFFIX)
        self._ctx.pages[page.id] = path

        content, encoding = read_file_with_encoding(path)
        metadata, body = parse_metadata(content)
        changes = self.detector.detect(
            metadata.last_synced, file_mtime(path), page.updated_at
        )
        action = decide_action(self._ctx.mode, changes)
        logger.debug(
            "Page %d at %s: local=%s remote=%s -> %s",
            page.id,
            path,
            changes.has_local_changes,
            changes.has_remote_changes,
            action.value,
        )

        if action is SyncAction.PULL:
            self._pull(container, page, path)
        elif action is SyncAction.PUSH:
            self._push(container, page, path, body, encoding)
        elif action is SyncAction.CONFLICT:
            conflict = ConflictInfo(
                page_id=page.id,
                page_name=page.name,
                local_path=str(path),
                local_content=body,
                last_synced=metadata.last_synced,
                local_modified=file_mtime(path).isoformat(),
                remote_updated=page.updated_at,
            )
            return self._apply_decision(
                container, page, path, body, encoding, conflict
            )
        return self._result(page, path, action)

    def _resolve_collision(
        self, container: PageMetadata, page: RemotePage, path: Path
    ) -> SyncResult:
        """Handle a remote page whose expected file is taken by another file."""
        content, encoding = read_file_with_encoding(path)
        metadata, body = parse_metadata(content)
        logger.warning(
            "%s occupies the path of page %d ('%s') but is not linked to it",
            path,
            page.id,
            page.name,
        )
        conflict = ConflictInfo(
            page_id=page.id,
            page_name=page.name,
            local_path=str(path),
            local_content=body,
            last_synced=metadata.last_synced,
            local_modified=file_mtime(path).isoformat(),
            remote_updated=page.updated_at,
            collision=True,
        )
        result = self._apply_decision(
            container, page, path, body, encoding, conflict
        )
        if result.action is SyncAction.SKIP:
            self._ctx.claimed.add(path)
        else:
            self._ctx.pages[page.id] = path
        return result

    def _apply_decision(
        self,
        container: PageMetadata,
        page: RemotePage,
        path: Path,
        body: str,
        encoding: str,
        conflict: ConflictInfo,
    ) -> SyncResult:
        try:
            decision = self.resolver.resolve(conflict)
        except Exception as exc:
            logger.warning("Conflict resolution failed for %s: %s", path, exc)
            decision = ConflictDecision.DEFER

        if decision is ConflictDecision.KEEP_LOCAL:
            self._push(container, page, path, body, encoding)
            return self._result(page, path, SyncAction.PUSH, conflict=True)
        if decision is ConflictDecision.KEEP_REMOTE:
            self._pull(container, page, path)
            return self._result(page, path, SyncAction.PULL, conflict=True)

        logger.warning("Conflict on %s deferred", path)
        return self._result(
            page, path, SyncAction.SKIP, conflict=True, error="conflict deferred"
        )

    @staticmethod
    def _result(
        page: RemotePage,
        path: Path,
        action: SyncAction,
        conflict: bool = False,
        error: str | None = None,
    ) -> SyncResult:
        return SyncResult(
            kind=ItemKind.PAGE,
            remote_id=page.id,
            name=page.name,
            local_path=str(path),
            action=action,
            conflict=conflict,
            error=error,
        )

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def _fetch_markdown(self, page: RemotePage) -> str:
        try:
            return self.client.export_page_markdown(page.id)
        except BookStackAPIError as exc:
            logger.warning(
                "Markdown export failed for page %d, using page body: %s",
                page.id,
                exc,
            )
        if page.markdown:
            return page.markdown
        result = html_to_markdown(page.html)
        for warning in result.warnings:
            logger.debug("Page %d: %s", page.id, warning)
        return result.text

    def _pull(
        self,
        container: PageMetadata,
        page: RemotePage,
        path: Path,
    ) -> None:
        body = self._fetch_markdown(page)
        moment = sync_moment(page.updated_at)
        metadata = page_metadata(
            container,
            page.id,
            page.name,
            page.created_at,
            page.updated_at,
            moment.isoformat(),
        )
        write_file(path, compose(metadata, body), "utf-8")
        stamp_mtime(path, moment)
        self._ctx.pages[page.id] = path
        logger.info("Pulled '%s' -> %s", page.name, path)

    def _push(
        self,
        container: PageMetadata,
        page: RemotePage,
        path: Path,
        body: str,
        encoding: str = "utf-8",
    ) -> None:
        updated = self.client.update_page(page.id, body, name=page.name)
        moment = sync_moment(updated.updated_at)
        metadata = page_metadata(
            container,
            page.id,
            updated.name or page.name,
            updated.created_at or page.created_at,
            updated.updated_at,
            moment.isoformat(),
        )
        write_file(path, compose(metadata, body), encoding)
        stamp_mtime(path, moment)
        logger.info("Pushed %s -> '%s'", path, page.name)
