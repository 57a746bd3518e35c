"""MCP tool handlers for BookStack sync.

This package contains MCP tool implementations that wrap the BookStack
client and the sync engine with async handlers and structured error
responses.
"""

from .books import BOOK_SPECS, BOOK_TOOLS
from .errors import build_error_response, translate_api_error
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = BOOK_SPECS + SYNC_SPECS

__all__ = [
    "build_error_response",
    "translate_api_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "BOOK_SPECS",
    "SYNC_SPECS",
    # Tool lists
    "BOOK_TOOLS",
    "SYNC_TOOLS",
]
