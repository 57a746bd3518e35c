"""Book listing tool for choosing which books to sync."""

import logging

import mcp.types as types

from ...config_loader import load_hierarchical_config
from ...config_schema import build_config
from ...core.async_utils import run_sync
from ...core.client import BookStackClient
from .registry import ToolSpec

logger = logging.getLogger(__name__)


BOOK_TOOLS = [
    types.Tool(
        name="bookstack_list_books",
        description=(
            "List all BookStack books visible to the API token, marking the "
            "ones selected for sync in the configuration (sync.books)."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    )
]


async def _handle_list_books(
    client: BookStackClient, args: dict
) -> types.CallToolResult:
    """Handle bookstack_list_books."""
    books = await run_sync(client.list_books)
    selected = set(build_config(load_hierarchical_config()).sync.books)

    if not books:
        text = "No books visible to this API token."
    else:
        lines = [f"{len(books)} book(s):"]
        for book in books:
            marker = "*" if book.id in selected else " "
            lines.append(f" {marker} {book.id}: {book.name}")
        if selected:
            lines.append("")
            lines.append("* selected for sync")
        text = "\n".join(lines)

    structured = {
        "total": len(books),
        "books": [
            {
                "id": book.id,
                "name": book.name,
                "slug": book.slug,
                "selected": book.id in selected,
            }
            for book in books
        ],
    }
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


BOOK_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=BOOK_TOOLS[0],
        read_only=True,
        handler=_handle_list_books,
    ),
]
