"""Locate the local file or folder that holds a given remote entity.

Identity is carried by the metadata inside local files, never by names, so
lookups read metadata headers.  Every id seen while scanning a directory is
cached on the run's ``SyncContext``; a cached path is trusted only after
checking that it still exists in the expected parent.
"""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import Iterable

from bookstack_sync.sync.context import SyncContext
from bookstack_sync.sync.metadata import PageMetadata, read_metadata

logger = logging.getLogger(__name__)

PAGE_SUFFIX = ".md"


class IdentityResolver:
    """Resolve remote ids to local paths within one sync run.

    Args:
        context: The run's context holding the identity caches.
        index_file: Name of the generated per-folder index file, which is
            never treated as a page.
        ignore: Glob patterns matched against file and folder names.
    """

    def __init__(
        self,
        context: SyncContext,
        index_file: str = "README.md",
        ignore: Iterable[str] = (".*",),
    ) -> None:
        self.context = context
        self.index_file = index_file
        self.ignore = tuple(ignore)

    # ------------------------------------------------------------------
    # Directory listing
    # ------------------------------------------------------------------

    def is_ignored(self, path: Path) -> bool:
        return any(fnmatch.fnmatch(path.name, pattern) for pattern in self.ignore)

    def is_index_file(self, path: Path) -> bool:
        return bool(self.index_file) and path.name == self.index_file

    def page_files(self, container: Path) -> list[Path]:
        """Page files directly inside *container*, in sorted order."""
        if not container.is_dir():
            return []
        return sorted(
            p
            for p in container.iterdir()
            if p.is_file()
            and p.suffix.lower() == PAGE_SUFFIX
            and not self.is_index_file(p)
            and not self.is_ignored(p)
        )

    def sub_folders(self, container: Path) -> list[Path]:
        """Folders directly inside *container*, in sorted order."""
        if not container.is_dir():
            return []
        return sorted(
            p for p in container.iterdir() if p.is_dir() and not self.is_ignored(p)
        )

    def _metadata(self, path: Path) -> PageMetadata:
        try:
            return read_metadata(path)
        except OSError as exc:
            logger.warning("Cannot read metadata of %s: %s", path, exc)
            return PageMetadata()

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def page_identity(self, path: Path) -> int | None:
        """Remote page id recorded in the file at *path*, if any."""
        if not path.is_file():
            return None
        return self._metadata(path).remote_id

    def find_local_page(self, remote_id: int, container: Path) -> Path | None:
        """Return the page file in *container* carrying *remote_id*."""
        cache = self.context.pages
        cached = cache.get(remote_id)
        if cached is not None:
            if cached.is_file() and cached.parent == container:
                return cached
            del cache[remote_id]

        for path in self.page_files(container):
            metadata = self._metadata(path)
            if metadata.remote_id is not None:
                cache.setdefault(metadata.remote_id, path)
        return cache.get(remote_id)

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    def folder_identity(self, folder: Path, key: str) -> int | None:
        """Container id recorded for *folder* under metadata *key*.

        The index file is consulted first, then every page file below the
        folder in sorted order.
        """
        if self.index_file:
            index = folder / self.index_file
            if index.is_file():
                value = getattr(self._metadata(index), key)
                if value is not None:
                    return value

        for path in sorted(folder.rglob(f"*{PAGE_SUFFIX}")):
            relative = path.relative_to(folder)
            if any(self.is_ignored(Path(part)) for part in relative.parts):
                continue
            if not path.is_file():
                continue
            value = getattr(self._metadata(path), key)
            if value is not None:
                return value
        return None

    def _find_folder(
        self, cache: dict[int, Path], remote_id: int, parent: Path, key: str
    ) -> Path | None:
        cached = cache.get(remote_id)
        if cached is not None:
            if cached.is_dir() and cached.parent == parent:
                return cached
            del cache[remote_id]

        for folder in self.sub_folders(parent):
            found = self.folder_identity(folder, key)
            if found is not None:
                cache.setdefault(found, folder)
        return cache.get(remote_id)

    def find_book_folder(self, book_id: int, root: Path) -> Path | None:
        """Return the folder under *root* holding book *book_id*."""
        return self._find_folder(
            self.context.books, book_id, root, "collection_id"
        )

    def find_chapter_folder(
        self, chapter_id: int, book_folder: Path
    ) -> Path | None:
        """Return the folder under *book_folder* holding chapter *chapter_id*."""
        return self._find_folder(
            self.context.chapters, chapter_id, book_folder, "subcollection_id"
        )
