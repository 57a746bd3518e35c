from unittest.mock import Mock, patch

import pytest
import requests

from bookstack_sync.config import Config
from bookstack_sync.core.client import BookStackAPIError, BookStackClient
from bookstack_sync.validators import (
    MAX_NAME_LENGTH,
    validate_content,
    validate_page_name,
)

REQUEST = "bookstack_sync.core.client.requests.Session.request"


def _response(payload=None, status=200, text=None, reason="OK"):
    response = Mock()
    response.status_code = status
    response.ok = status < 400
    response.reason = reason
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    response.text = text if text is not None else ""
    return response


def _page(page_id=7, **overrides):
    page = {
        "id": page_id,
        "book_id": 1,
        "chapter_id": 0,
        "name": "Install",
        "slug": "install",
        "html": "<p>Steps</p>",
        "markdown": "Steps",
        "created_at": "2024-05-01T10:00:00.000000Z",
        "updated_at": "2024-05-02T10:00:00.000000Z",
    }
    page.update(overrides)
    return page


# ---------------------------------------------------------------------------
# Session setup
# ---------------------------------------------------------------------------


def test_api_url_construction(mock_config):
    """API URL is the base URL plus /api."""
    client = BookStackClient(mock_config)
    assert client.api_url == "https://docs.example.com/api"


def test_api_url_strips_trailing_slash():
    config = Config(
        base_url="https://docs.example.com/",
        token_id="id",
        token_secret="secret",
    )
    assert BookStackClient(config).api_url == "https://docs.example.com/api"


def test_session_uses_token_auth(mock_config):
    """Session carries the Token header and verifies SSL by default."""
    client = BookStackClient(mock_config)
    assert client.session.headers["Authorization"] == "Token token-id:token-secret"
    assert client.session.verify


def test_session_insecure():
    config = Config(
        base_url="https://docs.example.com",
        token_id="id",
        token_secret="secret",
        insecure=True,
    )
    assert not BookStackClient(config).session.verify


def test_session_is_reused_per_thread(mock_config):
    client = BookStackClient(mock_config)
    assert client.session is client.session


# ---------------------------------------------------------------------------
# Requests and errors
# ---------------------------------------------------------------------------


@patch(REQUEST)
def test_get_page(mock_request, mock_config):
    """get_page parses the page and normalises chapter_id 0."""
    mock_request.return_value = _response(_page())

    page = BookStackClient(mock_config).get_page(7)

    assert page.id == 7
    assert page.chapter_id is None
    assert page.markdown == "Steps"
    args, kwargs = mock_request.call_args
    assert args == ("GET", "https://docs.example.com/api/pages/7")
    assert kwargs["timeout"] == (10, 60)


@patch(REQUEST)
def test_error_message_from_payload(mock_request, mock_config):
    mock_request.return_value = _response(
        {"error": {"code": 404, "message": "Page not found"}},
        status=404,
        reason="Not Found",
    )

    with pytest.raises(BookStackAPIError) as exc_info:
        BookStackClient(mock_config).get_page(99)

    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "Page not found"
    assert str(exc_info.value) == "HTTP 404: Page not found"


@patch(REQUEST)
def test_error_without_json_uses_text(mock_request, mock_config):
    mock_request.return_value = _response(
        None, status=502, text="Bad gateway", reason="Bad Gateway"
    )

    with pytest.raises(BookStackAPIError, match="HTTP 502: Bad gateway"):
        BookStackClient(mock_config).get_book(1)


@patch(REQUEST)
def test_transport_error_is_wrapped(mock_request, mock_config):
    mock_request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(BookStackAPIError) as exc_info:
        BookStackClient(mock_config).validate_connection()

    assert exc_info.value.status_code is None
    assert str(exc_info.value) == "Transport error: refused"


@patch(REQUEST)
def test_validate_connection_returns_total(mock_request, mock_config):
    mock_request.return_value = _response({"data": [], "total": 12})

    assert BookStackClient(mock_config).validate_connection() == 12
    assert mock_request.call_args[1]["params"] == {"count": 1}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@patch(REQUEST)
def test_list_books_follows_pagination(mock_request, mock_config):
    first = [{"id": i, "name": f"Book {i}"} for i in range(1, 501)]
    mock_request.side_effect = [
        _response({"data": first, "total": 501}),
        _response({"data": [{"id": 501, "name": "Last"}], "total": 501}),
    ]

    books = BookStackClient(mock_config).list_books()

    assert len(books) == 501
    assert books[-1].name == "Last"
    offsets = [c[1]["params"]["offset"] for c in mock_request.call_args_list]
    assert offsets == [0, 500]


@patch(REQUEST)
def test_list_books_stops_on_empty_page(mock_request, mock_config):
    mock_request.return_value = _response({"data": [], "total": 3})

    assert BookStackClient(mock_config).list_books() == []
    assert mock_request.call_count == 1


@patch(REQUEST)
def test_get_book_contents_in_order(mock_request, mock_config):
    mock_request.return_value = _response(
        {
            "id": 1,
            "name": "Handbook",
            "description": None,
            "contents": [
                {"type": "page", "id": 7, "name": "Welcome"},
                {"type": "chapter", "id": 3, "name": "Guides", "pages": []},
            ],
        }
    )

    book = BookStackClient(mock_config).get_book(1)

    assert book.description == ""
    assert [(c.type, c.id) for c in book.contents] == [("page", 7), ("chapter", 3)]


@patch(REQUEST)
def test_get_chapter(mock_request, mock_config):
    mock_request.return_value = _response(
        {
            "id": 3,
            "book_id": 1,
            "name": "Guides",
            "description": "How-to guides",
            "pages": [{"id": 8, "name": "Install"}, {"id": 9, "name": "Upgrade"}],
        }
    )

    chapter = BookStackClient(mock_config).get_chapter(3)

    assert chapter.book_id == 1
    assert [p.id for p in chapter.pages] == [8, 9]


@patch(REQUEST)
def test_export_page_markdown(mock_request, mock_config):
    mock_request.return_value = _response(None, text="# Install\n\nSteps")

    text = BookStackClient(mock_config).export_page_markdown(7)

    assert text == "# Install\n\nSteps"
    assert mock_request.call_args[0][1].endswith("/api/pages/7/export/markdown")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@patch(REQUEST)
def test_create_page_in_book(mock_request, mock_config):
    mock_request.return_value = _response(_page(12, name="Notes"))

    page = BookStackClient(mock_config).create_page(1, "Notes", "Body")

    assert page.id == 12
    assert mock_request.call_args[0][0] == "POST"
    assert mock_request.call_args[1]["json"] == {
        "name": "Notes",
        "markdown": "Body",
        "book_id": 1,
    }


@patch(REQUEST)
def test_create_page_in_chapter(mock_request, mock_config):
    mock_request.return_value = _response(_page(12, chapter_id=3))

    page = BookStackClient(mock_config).create_page(1, "Notes", "Body", chapter_id=3)

    assert page.chapter_id == 3
    assert mock_request.call_args[1]["json"] == {
        "name": "Notes",
        "markdown": "Body",
        "chapter_id": 3,
    }


@patch(REQUEST)
def test_create_page_rejects_empty_name(mock_request, mock_config):
    with pytest.raises(ValueError, match="Name cannot be empty"):
        BookStackClient(mock_config).create_page(1, "  ", "Body")
    mock_request.assert_not_called()


@patch(REQUEST)
def test_create_page_rejects_empty_body(mock_request, mock_config):
    with pytest.raises(ValueError, match="Content cannot be empty"):
        BookStackClient(mock_config).create_page(1, "Notes", "")
    mock_request.assert_not_called()


@patch(REQUEST)
def test_create_chapter(mock_request, mock_config):
    mock_request.return_value = _response(
        {"id": 4, "book_id": 1, "name": "Drafts"}
    )

    chapter = BookStackClient(mock_config).create_chapter(1, "Drafts")

    assert chapter.id == 4
    assert mock_request.call_args[1]["json"] == {"book_id": 1, "name": "Drafts"}


@patch(REQUEST)
def test_update_page(mock_request, mock_config):
    mock_request.return_value = _response(_page(7, markdown="New"))

    page = BookStackClient(mock_config).update_page(7, "New", name="Setup")

    assert page.markdown == "New"
    args, kwargs = mock_request.call_args
    assert args == ("PUT", "https://docs.example.com/api/pages/7")
    assert kwargs["json"] == {"markdown": "New", "name": "Setup"}


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def test_validate_page_name():
    assert validate_page_name("Install") == (True, "")
    assert validate_page_name("") == (False, "Name cannot be empty")
    assert validate_page_name("x" * (MAX_NAME_LENGTH + 1))[0] is False


def test_validate_content():
    assert validate_content("Body") == (True, "")
    assert validate_content("")[0] is False
    assert validate_content("abcd", max_size=3)[0] is False
