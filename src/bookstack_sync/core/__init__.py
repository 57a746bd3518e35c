"""Core BookStack client functionality shared between CLI and MCP server."""

from .async_utils import run_sync
from .client import BookStackAPIError, BookStackClient

__all__ = ["BookStackAPIError", "BookStackClient", "run_sync"]
