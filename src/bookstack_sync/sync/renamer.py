"""Keep local file and folder names aligned with remote names.

Renames go through ``Path.rename`` so the file content, and with it the
embedded identity, is never rewritten.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from bookstack_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)

_INVALID_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")

FALLBACK_NAME = "Untitled"


def sanitize_file_name(name: str) -> str:
    """Turn a remote name into a portable file or folder name."""
    cleaned = _INVALID_CHARS.sub("-", name or "")
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return cleaned or FALLBACK_NAME


def _same_entry(a: Path, b: Path) -> bool:
    # On case-insensitive file systems "Guide.md" and "guide.md" are one file.
    try:
        return a.samefile(b)
    except OSError:
        return False


class RenameReconciler:
    """Rename local entries whose name drifted from the remote name.

    Args:
        context: Run context whose identity caches are invalidated on rename.
    """

    def __init__(self, context: SyncContext | None = None) -> None:
        self.context = context

    def reconcile_name(
        self,
        local: Path | None,
        expected_name: str,
        container: Path,
        suffix: str = "",
    ) -> Path:
        """Return the path the entry should be used under.

        Args:
            local: Current location of the entry, or ``None`` if it has no
                local counterpart yet.
            expected_name: Remote name, sanitized here.
            container: Folder the entry lives in.
            suffix: File extension, including the dot; empty for folders.

        Returns:
            The expected path, or *local* unchanged when the rename could
            not be performed.  Nothing is created when *local* is ``None``.
        """
        expected = container / f"{sanitize_file_name(expected_name)}{suffix}"
        if local is None or local == expected:
            return expected

        if expected.exists() and not _same_entry(local, expected):
            logger.warning(
                "Not renaming %s to %s: target already exists",
                local,
                expected.name,
            )
            return local

        try:
            local.rename(expected)
        except OSError as exc:
            logger.warning("Failed to rename %s to %s: %s", local, expected.name, exc)
            return local

        logger.info("Renamed %s -> %s", local.name, expected.name)
        if self.context is not None:
            self.context.invalidate_under(local)
        return expected
