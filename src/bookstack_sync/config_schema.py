"""Unified configuration schema for bookstack_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the BookStack connection, the sync engine, and logging.

Usage:
    from bookstack_sync.config_schema import (
        UnifiedConfig, build_config,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

SyncModeName = Literal["pull-only", "push-only", "bidirectional"]
ConflictStrategyName = Literal["preserve-local", "interactive"]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BookStackConfig(BaseModel):
    """BookStack server connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="BookStack base URL"
    )
    token_id: str | None = Field(
        default=None, description="API token id"
    )
    token_secret: str | None = Field(
        default=None, description="API token secret"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    timeout: int = Field(
        default=60,
        ge=1,
        le=600,
        description="HTTP read timeout in seconds (1-600)",
    )

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Settings for the reconciliation engine.

    Attributes:
        folder: Local root folder holding one sub-folder per book.
        books: Ids of the books to synchronise, in traversal order.
        mode: ``pull-only``, ``push-only`` or ``bidirectional``.
        conflict_strategy: ``preserve-local`` or ``interactive``.
        buffer_seconds: Tolerance added to ``last_synced`` before a local
            modification time counts as a local change.
        create_chapters_from_folders: Treat local sub-folders without any
            chapter id in their files as new chapters.
        index_file: Name of the generated per-folder index file; empty
            string disables index files.
        ignore: Glob patterns for local names that are never synced.
        interval_minutes: Default interval for ``bookstack-sync sync --interval``.
    """

    folder: str = Field(default="BookStack")
    books: list[int] = Field(default_factory=list)
    mode: SyncModeName = Field(default="bidirectional")
    conflict_strategy: ConflictStrategyName = Field(
        default="preserve-local"
    )
    buffer_seconds: float = Field(default=1.0, ge=0)
    create_chapters_from_folders: bool = Field(default=True)
    index_file: str = Field(default="README.md")
    ignore: list[str] = Field(default_factory=lambda: [".*"])
    interval_minutes: int = Field(default=60, ge=1)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    bookstack: BookStackConfig = Field(default_factory=BookStackConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
