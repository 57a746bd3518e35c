"""Tests for id -> local path resolution and the per-run context."""

from pathlib import Path

import pytest

from bookstack_sync.sync.context import SyncContext
from bookstack_sync.sync.identity import IdentityResolver
from bookstack_sync.sync.metadata import (
    PageMetadata,
    compose,
    container_metadata,
    write_index_file,
)
from bookstack_sync.sync.models import ItemKind, SyncAction, SyncMode, SyncResult


def _page(path: Path, remote_id: int | None, body: str = "text", **fields) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        compose(PageMetadata(remote_id=remote_id, **fields), body),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def context() -> SyncContext:
    return SyncContext(mode=SyncMode.BIDIRECTIONAL)


@pytest.fixture
def identity(context) -> IdentityResolver:
    return IdentityResolver(context)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestListing:
    """Which entries of a folder count as pages and chapters."""

    def test_page_files_are_sorted_markdown_only(self, identity, tmp_path: Path):
        for name in ("b.md", "a.md", "notes.txt", "README.md", ".hidden.md"):
            (tmp_path / name).write_text("x", encoding="utf-8")
        (tmp_path / "folder.md").mkdir()

        names = [p.name for p in identity.page_files(tmp_path)]

        assert names == ["a.md", "b.md"]

    def test_sub_folders_skip_hidden(self, identity, tmp_path: Path):
        (tmp_path / "Guides").mkdir()
        (tmp_path / ".obsidian").mkdir()
        (tmp_path / "page.md").write_text("x", encoding="utf-8")

        assert identity.sub_folders(tmp_path) == [tmp_path / "Guides"]

    def test_custom_ignore_patterns(self, context, tmp_path: Path):
        identity = IdentityResolver(context, ignore=["*.draft.md", "_*"])
        for name in ("keep.md", "wip.draft.md", "_private.md"):
            (tmp_path / name).write_text("x", encoding="utf-8")

        assert [p.name for p in identity.page_files(tmp_path)] == ["keep.md"]

    def test_missing_folder(self, identity, tmp_path: Path):
        assert identity.page_files(tmp_path / "absent") == []
        assert identity.sub_folders(tmp_path / "absent") == []


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------


class TestFindLocalPage:
    """Pages are found by the id in their metadata, never by name."""

    def test_finds_by_id_regardless_of_name(self, identity, tmp_path: Path):
        _page(tmp_path / "Whatever I like.md", 42)
        _page(tmp_path / "Other.md", 7)

        assert identity.find_local_page(42, tmp_path) == tmp_path / "Whatever I like.md"

    def test_untracked_files_are_not_matches(self, identity, tmp_path: Path):
        (tmp_path / "Install.md").write_text("no metadata", encoding="utf-8")

        assert identity.find_local_page(42, tmp_path) is None

    def test_scan_fills_cache(self, identity, context, tmp_path: Path):
        _page(tmp_path / "a.md", 1)
        _page(tmp_path / "b.md", 2)

        identity.find_local_page(1, tmp_path)

        assert context.pages == {1: tmp_path / "a.md", 2: tmp_path / "b.md"}

    def test_stale_cache_entry_is_dropped(self, identity, context, tmp_path: Path):
        context.pages[42] = tmp_path / "gone.md"
        _page(tmp_path / "moved.md", 42)

        assert identity.find_local_page(42, tmp_path) == tmp_path / "moved.md"

    def test_cache_entry_in_other_folder_is_not_trusted(
        self, identity, context, tmp_path: Path
    ):
        elsewhere = _page(tmp_path / "Other" / "page.md", 42)
        context.pages[42] = elsewhere
        (tmp_path / "Here").mkdir()

        assert identity.find_local_page(42, tmp_path / "Here") is None

    def test_first_file_wins_on_duplicate_ids(self, identity, tmp_path: Path):
        _page(tmp_path / "a.md", 42)
        _page(tmp_path / "b.md", 42)

        assert identity.find_local_page(42, tmp_path) == tmp_path / "a.md"

    def test_index_file_is_never_a_page(self, identity, tmp_path: Path):
        _page(tmp_path / "README.md", 42)

        assert identity.find_local_page(42, tmp_path) is None

    def test_page_identity(self, identity, tmp_path: Path):
        tracked = _page(tmp_path / "Notes.md", 42)
        untracked = _page(tmp_path / "Draft.md", None)

        assert identity.page_identity(tracked) == 42
        assert identity.page_identity(untracked) is None
        assert identity.page_identity(tmp_path / "missing.md") is None


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


class TestFindFolders:
    """Book and chapter folders are found by ids in their files."""

    def test_book_folder_from_index_file(self, identity, tmp_path: Path):
        folder = tmp_path / "Renamed Locally"
        folder.mkdir()
        write_index_file(folder, "README.md", container_metadata(3, "Handbook"))

        assert identity.find_book_folder(3, tmp_path) == folder

    def test_book_folder_from_nested_page(self, identity, tmp_path: Path):
        _page(tmp_path / "Handbook" / "Guides" / "Install.md", 42, collection_id=3)

        assert identity.find_book_folder(3, tmp_path) == tmp_path / "Handbook"

    def test_chapter_folder(self, identity, tmp_path: Path):
        book = tmp_path / "Handbook"
        _page(book / "Loose.md", 1, collection_id=3)
        _page(book / "Guides" / "Install.md", 42, collection_id=3, subcollection_id=8)

        assert identity.find_chapter_folder(8, book) == book / "Guides"
        assert identity.find_chapter_folder(9, book) is None

    def test_hidden_folders_are_not_searched(self, identity, tmp_path: Path):
        _page(tmp_path / "Handbook" / ".trash" / "Old.md", 42, collection_id=3)

        assert identity.find_book_folder(3, tmp_path) is None

    def test_folder_identity_prefers_index_file(self, identity, tmp_path: Path):
        folder = tmp_path / "Guides"
        folder.mkdir()
        write_index_file(
            folder,
            "README.md",
            container_metadata(3, "Handbook", chapter_id=8, chapter_name="Guides"),
        )
        _page(folder / "Moved.md", 42, collection_id=3, subcollection_id=9)

        assert identity.folder_identity(folder, "subcollection_id") == 8

    def test_without_index_file_setting(self, context, tmp_path: Path):
        identity = IdentityResolver(context, index_file="")
        _page(tmp_path / "Handbook" / "README.md", 42, collection_id=3)

        assert identity.find_book_folder(3, tmp_path) == tmp_path / "Handbook"
        assert identity.find_local_page(42, tmp_path / "Handbook") is not None


# ---------------------------------------------------------------------------
# SyncContext
# ---------------------------------------------------------------------------


class TestSyncContext:
    """Per-run caches and results."""

    def test_invalidate_under(self, context, tmp_path: Path):
        guides = tmp_path / "Book" / "Guides"
        context.books[1] = tmp_path / "Book"
        context.chapters[8] = guides
        context.pages[42] = guides / "Install.md"
        context.pages[43] = tmp_path / "Book" / "Loose.md"
        context.containers[guides] = container_metadata(1, "Book", chapter_id=8)

        context.invalidate_under(guides)

        assert context.books == {1: tmp_path / "Book"}
        assert context.chapters == {}
        assert context.pages == {43: tmp_path / "Book" / "Loose.md"}
        assert context.containers == {}

    def test_invalidate_does_not_match_name_prefixes(self, context, tmp_path: Path):
        context.chapters[8] = tmp_path / "Guides"
        context.chapters[9] = tmp_path / "Guides 2"

        context.invalidate_under(tmp_path / "Guides")

        assert context.chapters == {9: tmp_path / "Guides 2"}

    def test_record_returns_result(self, context):
        result = SyncResult(kind=ItemKind.PAGE, action=SyncAction.SKIP)

        assert context.record(result) is result
        assert context.results == [result]
