"""Shared pytest fixtures for bookstack-sync tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv

from bookstack_sync.config import Config
from bookstack_sync.core.client import BookStackAPIError
from bookstack_sync.core.models import BookDetail, RemoteBook, RemoteChapter, RemotePage

load_dotenv()

# Remote timestamps of content that existed before any test sync ran.
PAST = "2024-01-01T08:00:00.000000Z"


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live BookStack instance",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live BookStack instance"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config():
    """Create a mock Config instance for testing."""
    return Config(
        base_url="https://docs.example.com",
        token_id="token-id",
        token_secret="token-secret",
        insecure=False,
    )


@pytest.fixture
def mock_bookstack_client(mock_config):
    """Create a mock BookStackClient instance for testing."""
    from bookstack_sync.core.client import BookStackClient

    client = MagicMock(spec=BookStackClient)
    client.config = mock_config
    return client


# ---------------------------------------------------------------------------
# In-memory BookStack
# ---------------------------------------------------------------------------


def _stamp(offset_seconds: float = 0.0) -> str:
    moment = datetime.now(timezone.utc) + timedelta(seconds=offset_seconds)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class FakeBookStackClient:
    """Minimal BookStackClient replacement holding books in memory.

    Content is stored as plain dicts so tests can edit the "server" side
    directly; every write records a call and moves ``updated_at``.
    """

    def __init__(self) -> None:
        self.books: dict[int, dict] = {}
        self.chapters: dict[int, dict] = {}
        self.pages: dict[int, dict] = {}
        self.update_calls: list[tuple] = []
        self.create_page_calls: list[tuple] = []
        self.create_chapter_calls: list[tuple] = []
        self.failing_pages: set[int] = set()
        self.failing_books: set[int] = set()
        self.failing_chapters: set[int] = set()
        self.export_enabled = True
        self._next_id = 100

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    # -- seeding helpers --------------------------------------------------

    def add_book(self, name: str, description: str = "") -> int:
        book_id = self._new_id()
        self.books[book_id] = {
            "id": book_id,
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "description": description,
            "contents": [],
        }
        return book_id

    def add_chapter(self, book_id: int, name: str, description: str = "") -> int:
        chapter_id = self._new_id()
        self.chapters[chapter_id] = {
            "id": chapter_id,
            "book_id": book_id,
            "name": name,
            "description": description,
            "pages": [],
        }
        self.books[book_id]["contents"].append(("chapter", chapter_id))
        return chapter_id

    def add_page(
        self,
        book_id: int,
        name: str,
        markdown: str,
        chapter_id: int | None = None,
        updated_at: str = PAST,
    ) -> int:
        page_id = self._new_id()
        self.pages[page_id] = {
            "id": page_id,
            "book_id": book_id,
            "chapter_id": chapter_id or 0,
            "name": name,
            "markdown": markdown,
            "html": f"<p>{markdown}</p>",
            "created_at": PAST,
            "updated_at": updated_at,
        }
        if chapter_id:
            self.chapters[chapter_id]["pages"].append(page_id)
        else:
            self.books[book_id]["contents"].append(("page", page_id))
        return page_id

    def edit_page(
        self, page_id: int, markdown: str | None = None, name: str | None = None
    ) -> None:
        """Simulate an edit made in the BookStack web UI."""
        page = self.pages[page_id]
        if markdown is not None:
            page["markdown"] = markdown
            page["html"] = f"<p>{markdown}</p>"
        if name is not None:
            page["name"] = name
        page["updated_at"] = _stamp(5)

    # -- client API -------------------------------------------------------

    def validate_connection(self) -> int:
        return len(self.books)

    def list_books(self) -> list[RemoteBook]:
        return [
            RemoteBook.model_validate(
                {k: v for k, v in b.items() if k != "contents"}
            )
            for b in self.books.values()
        ]

    def get_book(self, book_id: int) -> BookDetail:
        if book_id in self.failing_books or book_id not in self.books:
            raise BookStackAPIError(404, f"Book {book_id} not found")
        book = self.books[book_id]
        contents = []
        for kind, item_id in book["contents"]:
            source = self.chapters if kind == "chapter" else self.pages
            contents.append(
                {"type": kind, "id": item_id, "name": source[item_id]["name"]}
            )
        return BookDetail.model_validate({**book, "contents": contents})

    def get_chapter(self, chapter_id: int) -> RemoteChapter:
        if chapter_id in self.failing_chapters or chapter_id not in self.chapters:
            raise BookStackAPIError(404, f"Chapter {chapter_id} not found")
        chapter = self.chapters[chapter_id]
        pages = [
            {"id": pid, "name": self.pages[pid]["name"]}
            for pid in chapter["pages"]
        ]
        return RemoteChapter.model_validate({**chapter, "pages": pages})

    def get_page(self, page_id: int) -> RemotePage:
        if page_id in self.failing_pages:
            raise BookStackAPIError(500, "Internal Server Error")
        if page_id not in self.pages:
            raise BookStackAPIError(404, f"Page {page_id} not found")
        return RemotePage.model_validate(self.pages[page_id])

    def export_page_markdown(self, page_id: int) -> str:
        if not self.export_enabled:
            raise BookStackAPIError(403, "Export not permitted")
        return self.pages[page_id]["markdown"]

    def create_page(
        self,
        book_id: int,
        name: str,
        markdown: str,
        chapter_id: int | None = None,
    ) -> RemotePage:
        self.create_page_calls.append((book_id, name, markdown, chapter_id))
        page_id = self.add_page(
            book_id, name, markdown, chapter_id=chapter_id, updated_at=_stamp()
        )
        self.pages[page_id]["created_at"] = self.pages[page_id]["updated_at"]
        return RemotePage.model_validate(self.pages[page_id])

    def create_chapter(
        self, book_id: int, name: str, description: str | None = None
    ) -> RemoteChapter:
        self.create_chapter_calls.append((book_id, name, description))
        chapter_id = self.add_chapter(book_id, name, description or "")
        return self.get_chapter(chapter_id)

    def update_page(
        self, page_id: int, markdown: str, name: str | None = None
    ) -> RemotePage:
        self.update_calls.append((page_id, markdown, name))
        page = self.pages[page_id]
        page["markdown"] = markdown
        page["html"] = f"<p>{markdown}</p>"
        if name:
            page["name"] = name
        page["updated_at"] = _stamp()
        return RemotePage.model_validate(page)


@pytest.fixture
def fake_client() -> FakeBookStackClient:
    """An empty in-memory BookStack."""
    return FakeBookStackClient()
