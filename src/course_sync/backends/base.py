"""Interfaces the sync engine needs from its destinations."""

from __future__ import annotations

from typing import IO, Any, Protocol


class DocumentStore(Protocol):
    """Partitioned document store."""

    def upsert(self, document: dict[str, Any], partition_key: str) -> None:
        """Create or replace the document with ``document["id"]``."""

    def delete(self, key: str, partition_key: str) -> None:
        """Delete a document; a missing document is not an error."""


class BlobStore(Protocol):
    """Attachment container addressed by repository path."""

    def upload(self, path: str, stream: IO[bytes]) -> None:
        """Write *stream* to *path*, overwriting existing content."""

    def delete_if_exists(self, path: str) -> bool:
        """Delete *path*; return ``False`` if it did not exist."""


class CheckpointStore(Protocol):
    """Durable record of the last fully applied revision."""

    def read(self) -> str | None:
        """Return the stored revision, or ``None`` if absent."""

    def write(self, revision_id: str) -> None:
        """Record *revision_id*."""

    def delete(self, revision_id: str) -> None:
        """Remove the record of *revision_id* (no-op if absent)."""
