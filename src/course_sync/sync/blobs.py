"""Blob applier: attachment images in the blob container.

Deletions run before uploads.  Uploads stream straight from the source
repository into the container and always overwrite.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import IO, TYPE_CHECKING, Protocol

from course_sync.core.async_utils import run_bounded
from course_sync.errors import ApplyError, SyncError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from course_sync.backends.base import BlobStore
    from course_sync.sync.models import AttachmentRecord

logger = logging.getLogger(__name__)


class StreamSource(Protocol):
    """Streaming content lookup of the source repository."""

    def stream_content(
        self, path: str, version: str | None = None
    ) -> AbstractContextManager[IO[bytes]]: ...


class BlobApplier:
    """Apply attachment records to a ``BlobStore``.

    Args:
        source: Repository client able to stream file content.
        store: Destination blob store.
        max_parallel: Worker pool bound.
    """

    def __init__(
        self,
        source: StreamSource,
        store: BlobStore,
        max_parallel: int = 4,
    ) -> None:
        self.source = source
        self.store = store
        self.max_parallel = max_parallel

    def apply(
        self,
        attachments: Sequence[AttachmentRecord],
        revision: str | None = None,
    ) -> None:
        """Delete removed attachments, then upload the rest.

        Uploads stream the file content at *revision* (the branch tip if
        omitted).

        Raises:
            ApplyError: On the first failing blob operation.
        """
        deletes = [a for a in attachments if a.action.is_delete]
        uploads = [a for a in attachments if not a.action.is_delete]

        removed = run_bounded(
            lambda a: self._guard(self._delete, a), deletes, self.max_parallel
        )
        run_bounded(
            lambda a: self._guard(self._upload, a, revision),
            uploads,
            self.max_parallel,
        )
        logger.info(
            "Blobs: %d deleted (%d already absent), %d uploaded",
            len(deletes),
            removed.count(False),
            len(uploads),
        )

    def _delete(self, attachment: AttachmentRecord) -> bool:
        existed = self.store.delete_if_exists(attachment.path)
        if not existed:
            logger.debug("Blob %s already absent", attachment.path)
        return existed

    def _upload(self, attachment: AttachmentRecord, revision: str | None) -> None:
        with self.source.stream_content(attachment.path, version=revision) as stream:
            self.store.upload(attachment.path, stream)
        logger.debug("Uploaded blob %s", attachment.path)

    @staticmethod
    def _guard(func, attachment: AttachmentRecord, *args):
        try:
            return func(attachment, *args)
        except SyncError:
            raise
        except Exception as exc:
            logger.error("Blob write failed for %s: %s", attachment.path, exc)
            raise ApplyError("blob", attachment.path, exc) from exc
