"""Checkpoint persistence and the progress tracker.

The checkpoint is the single persisted fact of the engine: the last
revision whose changes were applied to every destination.

Key design choices:

* **Atomic writes** -- ``FileCheckpointStore.write()`` writes to a temp file
  then calls ``os.replace()`` so readers never see partial data.
* **Delete, then write** -- ``ProgressTracker.commit()`` removes the old
  checkpoint before recording the new one.  A crash in between leaves no
  checkpoint, which makes the next run a full import; every apply is an
  idempotent upsert or delete-if-exists, so re-importing is always safe.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from course_sync.backends.base import CheckpointStore
from course_sync.errors import CheckpointError

logger = logging.getLogger(__name__)

CHECKPOINT_FILE = "checkpoint.json"


class FileCheckpointStore:
    """Checkpoint stored as a small JSON file.

    Args:
        state_dir: Directory holding ``checkpoint.json`` (created on first
            write).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def path(self) -> Path:
        return self._state_dir / CHECKPOINT_FILE

    def read(self) -> str | None:
        if not self.path.exists():
            return None
        with open(self.path, encoding="utf-8") as fh:
            data = json.load(fh)
        revision = data.get("revision_id")
        return str(revision) if revision else None

    def write(self, revision_id: str) -> None:
        """Persist *revision_id* atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state = {
            "version": 1,
            "revision_id": revision_id,
            "committed_at": datetime.now(timezone.utc).isoformat(),
        }

        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def delete(self, revision_id: str) -> None:
        """Remove the checkpoint file if it records *revision_id*."""
        if self.read() != revision_id:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class ProgressTracker:
    """Read and advance the checkpoint.

    Args:
        store: Backend holding the checkpoint.
    """

    def __init__(self, store: CheckpointStore) -> None:
        self._store = store

    def read(self) -> str | None:
        """Return the last applied revision, or ``None`` for a full import.

        Raises:
            CheckpointError: If the store cannot be read.
        """
        try:
            revision = self._store.read()
        except Exception as exc:
            raise CheckpointError("read checkpoint", exc) from exc
        if revision:
            logger.info("Stored checkpoint: %s", revision)
        else:
            logger.info("No stored checkpoint; a full import will run")
        return revision or None

    def commit(self, new_revision: str, previous: str | None = None) -> None:
        """Replace *previous* with *new_revision*.

        Must only be called after every destination applied the change set.

        Raises:
            CheckpointError: If the store cannot be updated.
        """
        if previous == new_revision:
            return
        try:
            if previous:
                self._store.delete(previous)
            self._store.write(new_revision)
        except Exception as exc:
            raise CheckpointError("commit checkpoint", exc) from exc
        logger.info("Checkpoint advanced to %s", new_revision)
