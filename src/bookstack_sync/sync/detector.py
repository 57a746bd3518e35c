"""Timestamp-based change detection and the per-page decision table.

There is no shared clock and no server-side change feed, so a page's state
is inferred from three timestamps: ``last_synced`` from the local metadata,
the local file modification time, and the remote ``updated_at``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import NamedTuple

from bookstack_sync.sync.models import SyncAction, SyncMode

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SECONDS = 1.0

_FRACTION = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z``, fractional seconds of any precision and
    naive values (taken as UTC).  Returns ``None`` for anything else.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat() before 3.11 only accepts 3 or 6 fractional digits.
    text = _FRACTION.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1
    )
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class ChangeSet(NamedTuple):
    has_local_changes: bool
    has_remote_changes: bool


class ChangeDetector:
    """Decide which sides of a tracked page changed since ``last_synced``.

    Args:
        buffer_seconds: Tolerance added to ``last_synced`` before a local
            modification time counts as a change.  Absorbs the gap between
            recording ``last_synced`` and the write that follows it.
    """

    def __init__(self, buffer_seconds: float = DEFAULT_BUFFER_SECONDS) -> None:
        self.buffer = timedelta(seconds=buffer_seconds)

    def detect(
        self,
        last_synced: str | None,
        local_mtime: datetime,
        remote_updated: str | None,
    ) -> ChangeSet:
        """Compare the three timestamps of one page.

        An unparseable ``last_synced`` counts as absent: the page has never
        been synced, so only the remote side is considered changed.  An
        unparseable ``remote_updated`` counts as changed.
        """
        synced = parse_timestamp(last_synced)
        if synced is None:
            return ChangeSet(has_local_changes=False, has_remote_changes=True)

        remote = parse_timestamp(remote_updated)
        return ChangeSet(
            has_local_changes=local_mtime > synced + self.buffer,
            has_remote_changes=remote is None or remote > synced,
        )


def decide_action(
    mode: SyncMode, changes: ChangeSet, local_exists: bool = True
) -> SyncAction:
    """Map a mode and a change set to the action for one page.

    A page with no local file is always pulled, whatever the mode.
    """
    if not local_exists:
        return SyncAction.PULL

    local, remote = changes
    if mode is SyncMode.PULL_ONLY:
        return SyncAction.PULL if remote else SyncAction.SKIP
    if mode is SyncMode.PUSH_ONLY:
        return SyncAction.PUSH if local else SyncAction.SKIP

    if local and remote:
        return SyncAction.CONFLICT
    if remote:
        return SyncAction.PULL
    if local:
        return SyncAction.PUSH
    return SyncAction.SKIP


def sync_moment(remote_updated: str | None = None) -> datetime:
    """The ``last_synced`` value to record after writing a page.

    Never earlier than the remote ``updated_at`` just observed, so a server
    clock running ahead of ours does not make the page look remotely
    changed on the next run.
    """
    now = utc_now()
    remote = parse_timestamp(remote_updated)
    if remote is not None and remote > now:
        return remote
    return now
