"""Reconciliation engine between a local Markdown tree and BookStack.

Architecture
------------
BookStack books map to local folders, chapters to sub-folders and pages to
``.md`` files.  Identity lives inside each file in a YAML metadata block
(``remote_id``, parent ids, ``last_synced``), so files can be renamed or
moved within their folder without losing track of their page.  Change
detection compares ``last_synced`` with the file modification time and the
remote ``updated_at``; no state is kept outside the tree.

Modules:

- ``engine``    -- ``SyncEngine``: orchestrates a full sync run.
- ``metadata``  -- parse/serialize the per-file metadata block.
- ``identity``  -- ``IdentityResolver``: remote id -> local path.
- ``context``   -- ``SyncContext``: per-run caches and results.
- ``renamer``   -- ``RenameReconciler``: keep local names aligned.
- ``detector``  -- ``ChangeDetector`` and the decision table.
- ``resolver``  -- conflict strategies (preserve-local, interactive).
- ``scanner``   -- ``LocalCreationScanner``: create untracked content.
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from bookstack_sync.config_schema import SyncSettings
    from bookstack_sync.sync import SyncEngine, format_sync_report

    settings = SyncSettings(books=[3, 7], mode="bidirectional")
    engine = SyncEngine(client, settings, Path("BookStack"))

    report = engine.run()
    print(format_sync_report(report))
"""

from .engine import SyncConfigurationError, SyncEngine, SyncInProgressError
from .metadata import PageMetadata, parse_metadata, serialize_metadata
from .models import (
    ConflictDecision,
    ConflictInfo,
    SyncAction,
    SyncMode,
    SyncReport,
    SyncResult,
)
from .reporter import format_conflict, format_sync_report, report_to_json
from .resolver import PendingDecision, create_resolver

__all__ = [
    "ConflictDecision",
    "ConflictInfo",
    "PageMetadata",
    "PendingDecision",
    "SyncAction",
    "SyncConfigurationError",
    "SyncEngine",
    "SyncInProgressError",
    "SyncMode",
    "SyncReport",
    "SyncResult",
    "create_resolver",
    "format_conflict",
    "format_sync_report",
    "parse_metadata",
    "report_to_json",
    "serialize_metadata",
]
