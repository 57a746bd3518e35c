"""MCP server for BookStack sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents list BookStack books and run syncs of the local Markdown folder.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..core.client import BookStackClient
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..version import check_version_consistency
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("bookstack-sync")

# Initialized in main() / the lifespan
_client: BookStackClient | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    client: BookStackClient, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test BookStack connectivity."""
    try:
        total = await run_sync(client.validate_connection)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"BookStack connected successfully. {total} book(s) visible.",
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"BookStack connection failed: {e}. Check BOOKSTACK_URL, BOOKSTACK_TOKEN_ID, BOOKSTACK_TOKEN_SECRET.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test BookStack connectivity and return the number of visible books",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    read_only=True,
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_client() -> BookStackClient:
    """Get the global BookStackClient instance.

    Raises:
        RuntimeError: If client is not initialized
    """
    if _client is None:
        raise RuntimeError(
            "BookStackClient not initialized. Server lifespan not started."
        )
    return _client


def set_client(client: BookStackClient | None) -> None:
    global _client
    _client = client


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List the registered tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    client = get_client()
    try:
        return await get_registry().call_tool(name, arguments, client)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only; stdout carries the JSON-RPC stream.

    Args:
        config_overrides: Optional dict with config values to override
            (url, token_id, token_secret, insecure, log_file, read_only)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server() so nothing reaches stdout
    setup_logging(mode="mcp", log_file=overrides.get("log_file"))

    is_consistent, message = check_version_consistency()
    if not is_consistent:
        logger.warning(message)
    else:
        logger.info(message)

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=overrides.get("read_only", False))
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    set_registry(registry)

    # set_client() is called here rather than in the lifespan so that
    # running this file as __main__ updates the module that handles calls.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_client(ctx["client"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="bookstack-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_client(None)
            set_registry(None)


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="BookStack Sync MCP server - sync a Markdown folder with BookStack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .bookstack_sync/config.yml)
  bookstack-sync-mcp

  # Override the BookStack URL
  bookstack-sync-mcp --url https://docs.example.com

  # Only expose read-only tools
  bookstack-sync-mcp --read-only

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )

    parser.add_argument(
        "--url",
        help="Override BookStack URL (takes precedence over BOOKSTACK_URL and config files)",
    )
    parser.add_argument(
        "--token-id",
        help="Override API token id (takes precedence over BOOKSTACK_TOKEN_ID and config files)",
    )
    parser.add_argument(
        "--token-secret",
        help="Override API token secret"
        " (visible in process list -- prefer BOOKSTACK_TOKEN_SECRET env var)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Expose only tools that never modify BookStack or local files",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"bookstack-sync-mcp version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {}
    if args.url:
        config_overrides["url"] = args.url
    if args.token_id:
        config_overrides["token_id"] = args.token_id
    if args.token_secret:
        config_overrides["token_secret"] = args.token_secret
    if args.insecure:
        config_overrides["insecure"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.read_only:
        config_overrides["read_only"] = True

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Already reported on stderr by the lifespan
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
