"""Create remote chapters and pages for untracked local content.

Runs over one book folder after the remote-driven pass.  Each creation is a
single remote call followed immediately by writing the new identity back to
disk, so a scan that is interrupted or repeated never creates the same
content twice.
"""

from __future__ import annotations

import logging
from pathlib import Path

from bookstack_sync.core.client import BookStackClient
from bookstack_sync.file_handler import (
    read_file_with_encoding,
    stamp_mtime,
    write_file,
)
from bookstack_sync.sync.context import SyncContext
from bookstack_sync.sync.detector import sync_moment
from bookstack_sync.sync.identity import IdentityResolver
from bookstack_sync.sync.metadata import (
    PageMetadata,
    compose,
    container_metadata,
    page_metadata,
    parse_metadata,
    write_index_file,
)
from bookstack_sync.sync.models import ItemKind, SyncAction, SyncResult

logger = logging.getLogger(__name__)


class LocalCreationScanner:
    """Push untracked files and folders of a book folder to BookStack.

    Args:
        client: BookStack API client.
        context: The run's context.
        identity: Resolver sharing the same context.
        create_chapters_from_folders: Create a chapter for every sub-folder
            that carries no chapter id.
    """

    def __init__(
        self,
        client: BookStackClient,
        context: SyncContext,
        identity: IdentityResolver,
        create_chapters_from_folders: bool = True,
    ) -> None:
        self.client = client
        self.context = context
        self.identity = identity
        self.create_chapters_from_folders = create_chapters_from_folders

    def scan(self, book_id: int, book_folder: Path) -> None:
        """Create everything untracked below *book_folder* in book *book_id*."""
        book = self.context.containers.get(book_folder) or container_metadata(
            book_id, book_folder.name
        )

        for path in self.identity.page_files(book_folder):
            self._create_page_guarded(path, book)

        for folder in self.identity.sub_folders(book_folder):
            try:
                chapter = self._chapter_for_folder(book, folder)
            except Exception as exc:
                logger.error("Failed to create chapter from %s: %s", folder, exc)
                self.context.record(
                    SyncResult(
                        kind=ItemKind.CHAPTER,
                        name=folder.name,
                        local_path=str(folder),
                        action=SyncAction.CREATE,
                        success=False,
                        error=str(exc),
                    )
                )
                continue
            if chapter is None:
                continue
            for path in self.identity.page_files(folder):
                self._create_page_guarded(path, chapter)

    # ------------------------------------------------------------------
    # Chapters
    # ------------------------------------------------------------------

    def _chapter_for_folder(
        self, book: PageMetadata, folder: Path
    ) -> PageMetadata | None:
        """Container metadata for *folder*, creating the chapter if needed."""
        known = self.context.containers.get(folder)
        if known is not None:
            return known

        chapter_id = self.identity.folder_identity(folder, "subcollection_id")
        if chapter_id is not None:
            self.context.chapters.setdefault(chapter_id, folder)
            return container_metadata(
                book.collection_id,
                book.collection_name or "",
                book.collection_description or "",
                chapter_id=chapter_id,
                chapter_name=folder.name,
            )

        if not self.create_chapters_from_folders:
            logger.debug("Ignoring untracked folder %s", folder)
            return None
        # Without an index file an empty chapter would leave nothing behind
        # to record its id, and the next run would create it again.
        if not self.identity.index_file and not self.identity.page_files(folder):
            logger.debug("Ignoring empty untracked folder %s", folder)
            return None

        chapter = self.client.create_chapter(book.collection_id, folder.name)
        container = container_metadata(
            book.collection_id,
            book.collection_name or "",
            book.collection_description or "",
            chapter_id=chapter.id,
            chapter_name=chapter.name,
            chapter_description=chapter.description,
        )
        write_index_file(
            folder, self.identity.index_file, container, chapter.description
        )
        self.context.chapters[chapter.id] = folder
        self.context.containers[folder] = container
        logger.info("Created chapter '%s' (%d) from %s", chapter.name, chapter.id, folder)
        self.context.record(
            SyncResult(
                kind=ItemKind.CHAPTER,
                remote_id=chapter.id,
                name=chapter.name,
                local_path=str(folder),
                action=SyncAction.CREATE,
            )
        )
        return container

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def _create_page_guarded(self, path: Path, container: PageMetadata) -> None:
        try:
            self._create_page(path, container)
        except Exception as exc:
            logger.error("Failed to create page from %s: %s", path, exc)
            self.context.record(
                SyncResult(
                    kind=ItemKind.PAGE,
                    name=path.stem,
                    local_path=str(path),
                    action=SyncAction.CREATE,
                    success=False,
                    error=str(exc),
                )
            )

    def _create_page(self, path: Path, container: PageMetadata) -> None:
        if path in self.context.claimed:
            logger.debug("Not creating %s: withheld this run", path)
            return

        content, encoding = read_file_with_encoding(path)
        metadata, body = parse_metadata(content)
        if metadata.is_tracked:
            return
        if not body.strip():
            logger.info("Not creating a page from empty file %s", path)
            self.context.record(
                SyncResult(
                    kind=ItemKind.PAGE,
                    name=path.stem,
                    local_path=str(path),
                    action=SyncAction.SKIP,
                    error="empty file",
                )
            )
            return

        page = self.client.create_page(
            container.collection_id,
            path.stem,
            body,
            chapter_id=container.subcollection_id,
        )
        moment = sync_moment(page.updated_at)
        written = page_metadata(
            container,
            page.id,
            page.name,
            page.created_at,
            page.updated_at,
            moment.isoformat(),
        )
        write_file(path, compose(written, body), encoding)
        stamp_mtime(path, moment)
        self.context.pages[page.id] = path
        logger.info("Created page '%s' (%d) from %s", page.name, page.id, path)
        self.context.record(
            SyncResult(
                kind=ItemKind.PAGE,
                remote_id=page.id,
                name=page.name,
                local_path=str(path),
                action=SyncAction.CREATE,
            )
        )
