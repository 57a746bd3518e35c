"""Pydantic snapshots of BookStack entities.

These are read-only views of the remote store, fetched once per sync pass.
BookStack reports "no chapter" as ``chapter_id: 0``; the validator below
normalises that to ``None``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class RemoteBook(BaseModel):
    """A book as returned by ``GET /api/books``."""

    id: int
    name: str
    slug: str = ""
    description: str = ""
    created_at: str = ""
    updated_at: str = ""

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""


class BookContent(BaseModel):
    """One ordered child of a book: a chapter or a page."""

    type: Literal["chapter", "page"]
    id: int
    name: str
    slug: str = ""

    model_config = {"frozen": True, "extra": "ignore"}


class BookDetail(RemoteBook):
    """A book with its ordered contents (``GET /api/books/{id}``)."""

    contents: list[BookContent] = Field(default_factory=list)


class PageSummary(BaseModel):
    """A page reference listed inside a chapter."""

    id: int
    name: str
    slug: str = ""

    model_config = {"frozen": True, "extra": "ignore"}


class RemoteChapter(BaseModel):
    """A chapter with its ordered pages (``GET /api/chapters/{id}``)."""

    id: int
    book_id: int
    name: str
    slug: str = ""
    description: str = ""
    created_at: str = ""
    updated_at: str = ""
    pages: list[PageSummary] = Field(default_factory=list)

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""


class RemotePage(BaseModel):
    """A page (``GET /api/pages/{id}``)."""

    id: int
    book_id: int
    chapter_id: int | None = None
    name: str
    slug: str = ""
    html: str = ""
    markdown: str = ""
    created_at: str = ""
    updated_at: str = ""

    model_config = {"frozen": True, "extra": "ignore"}

    @field_validator("chapter_id", mode="before")
    @classmethod
    def _zero_is_no_chapter(cls, value):
        return value or None

    @field_validator("html", "markdown", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""
