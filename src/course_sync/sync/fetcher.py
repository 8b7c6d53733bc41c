"""Snapshot fetcher: list what changed since the checkpoint.

Without a checkpoint the whole tree at the latest revision is listed and
every entry is an ``add``; with one, the diff between the checkpoint and
the latest revision is listed with the reported actions.  Any failure of
the source repository aborts the run: a partial listing could turn
deletions into silent absences.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from course_sync.sync.classifier import CICD_MARKER
from course_sync.sync.models import ObjectKind, RepositoryEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class RepositorySource(Protocol):
    """Listing operations of the source repository."""

    def get_latest_revision(self) -> str: ...

    def list_full_tree(self, revision_id: str) -> list[RepositoryEntry]: ...

    def list_diff(
        self, base_revision: str, target_revision: str
    ) -> list[RepositoryEntry]: ...


@dataclass(frozen=True)
class Snapshot:
    """Listing returned by ``SnapshotFetcher.fetch``.

    Attributes:
        latest_revision: Revision the listing describes.
        base_revision: Checkpoint the diff started from (``None`` for a
            full tree listing).
        entries: Blob entries outside ``/cicd/``, in source order.
    """

    latest_revision: str
    base_revision: str | None = None
    entries: tuple[RepositoryEntry, ...] = field(default_factory=tuple)

    @property
    def full_import(self) -> bool:
        return self.base_revision is None

    @property
    def up_to_date(self) -> bool:
        return self.base_revision == self.latest_revision


class SnapshotFetcher:
    """List repository entries relative to a checkpoint.

    Args:
        source: Repository client.
    """

    def __init__(self, source: RepositorySource) -> None:
        self.source = source

    def fetch(self, checkpoint: str | None) -> Snapshot:
        """Return the entries to reconcile for *checkpoint*.

        Raises:
            TransportError: If any repository call fails.
        """
        latest = self.source.get_latest_revision()
        logger.info("Latest revision: %s", latest)

        if not checkpoint:
            logger.info("Listing full tree at %s", latest)
            raw = self.source.list_full_tree(latest)
            return Snapshot(latest, None, self._filter(raw))

        if checkpoint == latest:
            logger.info("Checkpoint %s is the latest revision", checkpoint)
            return Snapshot(latest, checkpoint, ())

        logger.info("Listing changes %s..%s", checkpoint, latest)
        raw = self.source.list_diff(checkpoint, latest)
        return Snapshot(latest, checkpoint, self._filter(raw))

    @staticmethod
    def _filter(entries: Iterable[RepositoryEntry]) -> tuple[RepositoryEntry, ...]:
        """Keep blobs outside ``/cicd/``."""
        kept = tuple(
            e
            for e in entries
            if e.object_kind is ObjectKind.BLOB and CICD_MARKER not in e.path
        )
        logger.debug("Kept %d blob entries", len(kept))
        return kept
