"""MCP tool handler for running a sync.

Defines one tool:

- ``bookstack_sync`` -- reconcile the configured books with the local
  folder in the configured (or requested) mode.

All calls share one ``SyncEngine`` so that a call made while another sync
is still running is rejected instead of racing it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import mcp.types as types

from ...config_loader import load_hierarchical_config
from ...config_schema import SyncSettings, build_config
from ...core.async_utils import run_sync
from ...core.client import BookStackClient
from ...sync.engine import SyncConfigurationError, SyncEngine, SyncInProgressError
from ...sync.reporter import format_sync_report, report_to_json
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)

_engine: SyncEngine | None = None
_notices: list[str] = []


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="bookstack_sync",
        description=(
            "Synchronize the configured BookStack books with the local "
            "Markdown folder. Pages changed on both sides are left "
            "untouched and reported as conflicts."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "mode": {
                    "type": "string",
                    "enum": ["pull-only", "push-only", "bidirectional"],
                    "description": (
                        "Sync direction for this run. Defaults to sync.mode "
                        "from the configuration."
                    ),
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _load_settings() -> SyncSettings:
    """Sync settings from the hierarchical config, adjusted for MCP use."""
    settings = build_config(load_hierarchical_config()).sync
    if settings.conflict_strategy == "interactive":
        logger.warning(
            "Interactive conflict resolution is not available over MCP; "
            "using preserve-local"
        )
        settings = settings.model_copy(
            update={"conflict_strategy": "preserve-local"}
        )
    return settings


def get_engine(client: BookStackClient, settings: SyncSettings) -> SyncEngine:
    """Return the shared engine, rebuilding it when idle and outdated."""
    global _engine
    if _engine is None or (
        not _engine.running
        and (_engine.client is not client or _engine.settings != settings)
    ):
        _engine = SyncEngine(
            client=client,
            settings=settings,
            sync_root=Path(settings.folder).expanduser().resolve(),
            notify=_notices.append,
        )
    return _engine


def set_engine(engine: SyncEngine | None) -> None:
    global _engine
    _engine = engine


# ---------------------------------------------------------------------------
# Tool handler
# ---------------------------------------------------------------------------


async def _handle_sync(
    client: BookStackClient,
    args: dict[str, Any],
) -> types.CallToolResult:
    """Handle the ``bookstack_sync`` tool."""
    mode = args.get("mode")
    if mode is not None and mode not in (
        "pull-only",
        "push-only",
        "bidirectional",
    ):
        return build_error_response(
            "validation_error",
            f"Unknown mode '{mode}'",
            "Use one of: pull-only, push-only, bidirectional.",
        )

    engine = get_engine(client, _load_settings())
    if not engine.running:
        _notices.clear()
    try:
        report = await run_sync(engine.run, mode)
    except SyncInProgressError as exc:
        return build_error_response(
            "sync_in_progress",
            str(exc),
            "Wait for the running sync to finish, then retry.",
        )
    except SyncConfigurationError as exc:
        return build_error_response(
            "configuration_error",
            str(exc),
            "Set sync.books in .bookstack_sync/config.yml. "
            "Use bookstack_list_books to find book ids.",
        )

    text = format_sync_report(report)
    if _notices:
        text += "\n\nNotices:\n" + "\n".join(f"  {n}" for n in _notices)

    structured = report_to_json(report)
    structured["notices"] = list(_notices)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SYNC_TOOLS[0],
        read_only=False,
        handler=_handle_sync,
    ),
]
