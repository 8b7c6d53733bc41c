"""Sync engine: one reconciliation run from checkpoint to latest revision.

The ``SyncEngine`` ties together the tracker, fetcher, builder and the
three destination appliers.  It:

1. Reads the stored checkpoint (ignored for ``full`` runs).
2. Lists the full tree or the diff up to the latest revision.
3. Classifies and validates every entry into a ``ChangeSet``.
4. Applies the change set: relational, then blobs, then documents.
5. Advances the checkpoint.
6. Builds and returns a ``SyncReport``.

Error handling is per-run: any error aborts the run before step 5, so the
next invocation retries the same revision range.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from course_sync.errors import SyncError
from course_sync.sync.builder import ChangeSetBuilder
from course_sync.sync.fetcher import SnapshotFetcher
from course_sync.sync.models import ChangeSet, SyncReport

if TYPE_CHECKING:
    from course_sync.core.client import DevOpsClient
    from course_sync.sync.blobs import BlobApplier
    from course_sync.sync.classifier import PathClassifier
    from course_sync.sync.documents import DocumentApplier
    from course_sync.sync.relational import RelationalApplier
    from course_sync.sync.state import ProgressTracker

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncEngine:
    """Run the reconciliation cycle against one repository.

    Args:
        source: Repository client (listing and content).
        tracker: Checkpoint reader/writer.
        relational: Course and module metadata applier.
        documents: Section document applier.
        blobs: Attachment applier.
        classifier: Path classifier (defaults to the built-in rules).
    """

    def __init__(
        self,
        source: DevOpsClient,
        tracker: ProgressTracker,
        relational: RelationalApplier,
        documents: DocumentApplier,
        blobs: BlobApplier,
        classifier: PathClassifier | None = None,
    ) -> None:
        self.source = source
        self.tracker = tracker
        self.relational = relational
        self.documents = documents
        self.blobs = blobs
        self.classifier = classifier
        self.fetcher = SnapshotFetcher(source)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, dry_run: bool = False, full: bool = False) -> SyncReport:
        """Execute one sync run.

        Args:
            dry_run: Fetch, classify and validate only; write nothing.
            full: Ignore the stored checkpoint and list the whole tree.
                The stored checkpoint is still replaced on success.

        Returns:
            A ``SyncReport`` describing what was (or would be) applied.

        Raises:
            SyncError: Transport, validation or apply failure.  The
                checkpoint is unchanged.
        """
        started_at = _now()

        try:
            stored = self.tracker.read()
            checkpoint = None if full else stored
            if full and stored:
                logger.info("Full import requested; ignoring checkpoint %s", stored)

            snapshot = self.fetcher.fetch(checkpoint)

            if snapshot.up_to_date:
                logger.info("Destinations are up to date at %s", snapshot.latest_revision)
                return SyncReport(
                    previous_revision=stored,
                    latest_revision=snapshot.latest_revision,
                    dry_run=dry_run,
                    up_to_date=True,
                    change_set=ChangeSet(
                        from_revision=stored,
                        to_revision=snapshot.latest_revision,
                    ),
                    started_at=started_at,
                    completed_at=_now(),
                )

            builder = ChangeSetBuilder(self.source, self.classifier)
            change_set = builder.build(snapshot)

            if dry_run:
                logger.info("Dry run: no destination was written")
            else:
                self._apply(change_set)
                self.tracker.commit(change_set.to_revision, previous=stored)
        except SyncError as exc:
            logger.error("Sync run failed: %s", exc)
            raise

        return SyncReport(
            previous_revision=stored,
            latest_revision=change_set.to_revision,
            full_import=snapshot.full_import,
            dry_run=dry_run,
            change_set=change_set,
            started_at=started_at,
            completed_at=_now(),
        )

    def _apply(self, change_set: ChangeSet) -> None:
        """Relational first: documents rely on module identity.

        File content is read at ``to_revision``, the commit the checkpoint
        will record.
        """
        revision = change_set.to_revision
        self.relational.apply(change_set.courses, change_set.modules)
        self.blobs.apply(change_set.attachments, revision=revision)
        self.documents.apply(change_set.sections, change_set.modules, revision=revision)
