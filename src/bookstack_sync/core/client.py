import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..validators import validate_content, validate_page_name
from .models import BookDetail, RemoteBook, RemoteChapter, RemotePage

logger = logging.getLogger(__name__)

_PAGE_SIZE = 500


class BookStackAPIError(Exception):
    """A BookStack API call failed.

    Attributes:
        status_code: HTTP status, or ``None`` for transport failures.
        message: Server-provided or transport error text.
    """

    def __init__(self, status_code: int | None, message: str):
        self.status_code = status_code
        self.message = message
        prefix = f"HTTP {status_code}" if status_code else "Transport error"
        super().__init__(f"{prefix}: {message}")


class BookStackClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.api_url = f"{self.config.base_url.rstrip('/')}/api"

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Token {self.config.token_id}:{self.config.token_secret}",
                "Accept": "application/json",
            }
        )
        session.verify = not self.config.insecure
        return session

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> requests.Response:
        """
        Issue one HTTP request against the API and return the response.

        Raises:
            BookStackAPIError: On transport failure or non-2xx status.
        """
        url = f"{self.api_url}/{path.lstrip('/')}"
        logger.debug("%s %s", method, url)
        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=json_body,
                timeout=(10, self.config.timeout),
            )
        except requests.RequestException as e:
            raise BookStackAPIError(None, str(e)) from e

        if not response.ok:
            raise BookStackAPIError(
                response.status_code,
                self._error_text(response),
            )
        return response

    @staticmethod
    def _error_text(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or response.reason or ""
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return response.text or response.reason or ""

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._request(method, path, **kwargs).json()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def validate_connection(self) -> int:
        """
        Validate credentials by listing a single book.
        Returns the total number of books visible to the token.
        """
        payload = self._json("GET", "books", params={"count": 1})
        return int(payload.get("total", 0))

    def list_books(self) -> list[RemoteBook]:
        """
        List every book visible to the token, following pagination.
        """
        books: list[RemoteBook] = []
        offset = 0
        while True:
            payload = self._json(
                "GET",
                "books",
                params={"count": _PAGE_SIZE, "offset": offset},
            )
            data = payload.get("data", [])
            books.extend(RemoteBook.model_validate(b) for b in data)
            total = int(payload.get("total", len(books)))
            offset += len(data)
            if not data or offset >= total:
                break
        return books

    def get_book(self, book_id: int) -> BookDetail:
        """
        Get a book with its ordered chapters and pages.
        """
        return BookDetail.model_validate(
            self._json("GET", f"books/{book_id}")
        )

    def get_chapter(self, chapter_id: int) -> RemoteChapter:
        """
        Get a chapter with its ordered pages.
        """
        return RemoteChapter.model_validate(
            self._json("GET", f"chapters/{chapter_id}")
        )

    def get_page(self, page_id: int) -> RemotePage:
        """
        Get a page including its HTML and Markdown bodies.
        """
        return RemotePage.model_validate(
            self._json("GET", f"pages/{page_id}")
        )

    def export_page_markdown(self, page_id: int) -> str:
        """
        Export a page as Markdown via the export endpoint.
        """
        return self._request(
            "GET", f"pages/{page_id}/export/markdown"
        ).text

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create_page(
        self,
        book_id: int,
        name: str,
        markdown: str,
        chapter_id: int | None = None,
    ) -> RemotePage:
        """
        Create a page in a book, or in a chapter when ``chapter_id`` is set.

        Raises:
            ValueError: If the name is empty or the body is too large.
            BookStackAPIError: If the server rejects the request.
        """
        is_valid, error = validate_page_name(name)
        if not is_valid:
            raise ValueError(error)
        is_valid, error = validate_content(markdown)
        if not is_valid:
            raise ValueError(error)

        body: dict[str, Any] = {"name": name, "markdown": markdown}
        if chapter_id:
            body["chapter_id"] = chapter_id
        else:
            body["book_id"] = book_id
        return RemotePage.model_validate(
            self._json("POST", "pages", json_body=body)
        )

    def create_chapter(
        self,
        book_id: int,
        name: str,
        description: str | None = None,
    ) -> RemoteChapter:
        """
        Create a chapter in a book.
        """
        is_valid, error = validate_page_name(name)
        if not is_valid:
            raise ValueError(error)

        body: dict[str, Any] = {"book_id": book_id, "name": name}
        if description:
            body["description"] = description
        return RemoteChapter.model_validate(
            self._json("POST", "chapters", json_body=body)
        )

    def update_page(
        self,
        page_id: int,
        markdown: str,
        name: str | None = None,
    ) -> RemotePage:
        """
        Replace a page's body with Markdown, optionally setting its name.
        """
        is_valid, error = validate_content(markdown)
        if not is_valid:
            raise ValueError(error)

        body: dict[str, Any] = {"markdown": markdown}
        if name:
            body["name"] = name
        return RemotePage.model_validate(
            self._json("PUT", f"pages/{page_id}", json_body=body)
        )
