"""Course content reconciliation engine.

Public API for synchronising the course content tree of a Git repository
(courses, modules, markdown sections, attachment images) into a SQL
database, a partitioned document store and a blob container.

Architecture
------------
The engine is **checkpoint-based**: the last revision fully applied to
every destination is persisted, and each run applies the diff from that
revision to the latest one (or the whole tree when no checkpoint exists).
Every destination write is an upsert or a delete-if-exists, so a failed
run is simply retried from the same checkpoint on the next invocation.

Modules:

- ``engine``      -- ``SyncEngine``: orchestrates one run.
- ``fetcher``     -- ``SnapshotFetcher``: full tree or diff listing.
- ``classifier``  -- ``PathClassifier``: path to content kind and key.
- ``builder``     -- ``ChangeSetBuilder``: typed, validated ``ChangeSet``.
- ``relational``  -- ``RelationalApplier``: course/module rows.
- ``documents``   -- ``DocumentApplier``: rendered section documents.
- ``blobs``       -- ``BlobApplier``: attachment uploads and deletions.
- ``state``       -- ``ProgressTracker``, ``FileCheckpointStore``.
- ``models``      -- Records, ``ChangeSet``, ``SyncReport``.
- ``reporter``    -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from course_sync.config import load_config
    from course_sync.lifespan import build_engine, sync_session
    from course_sync.sync import format_sync_report

    config = load_config()
    with sync_session(config) as resources:
        engine = build_engine(resources, config)

        # Dry-run first to preview changes
        preview = engine.run(dry_run=True)
        print(format_sync_report(preview))

        report = engine.run()
        print(format_sync_report(report))
"""

from .blobs import BlobApplier
from .builder import ChangeSetBuilder
from .classifier import PathClassifier, classify
from .documents import DocumentApplier, document_key, render_section
from .engine import SyncEngine
from .fetcher import Snapshot, SnapshotFetcher
from .models import (
    AttachmentRecord,
    ChangeAction,
    ChangeSet,
    ContentKind,
    CourseRecord,
    ModuleRecord,
    RepositoryEntry,
    SectionDocument,
    SectionRecord,
    SyncReport,
)
from .relational import RelationalApplier
from .reporter import (
    format_dry_run_preview,
    format_sync_report,
    report_to_json,
)
from .state import FileCheckpointStore, ProgressTracker

__all__ = [
    "AttachmentRecord",
    "BlobApplier",
    "ChangeAction",
    "ChangeSet",
    "ChangeSetBuilder",
    "ContentKind",
    "CourseRecord",
    "DocumentApplier",
    "FileCheckpointStore",
    "ModuleRecord",
    "PathClassifier",
    "ProgressTracker",
    "RelationalApplier",
    "RepositoryEntry",
    "SectionDocument",
    "SectionRecord",
    "Snapshot",
    "SnapshotFetcher",
    "SyncEngine",
    "SyncReport",
    "classify",
    "document_key",
    "format_dry_run_preview",
    "format_sync_report",
    "render_section",
    "report_to_json",
]
