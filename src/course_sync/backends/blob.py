"""Attachment storage on any fsspec filesystem.

Production points ``blobs.url`` at ``az://<container>`` (served by adlfs);
tests use the local filesystem.
"""

from __future__ import annotations

import logging
import shutil
from typing import IO, Any

import fsspec
from fsspec import AbstractFileSystem

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4 * 1024 * 1024


class FsspecBlobStore:
    """Blob store rooted at a directory/container of an fsspec filesystem.

    Args:
        fs: Filesystem instance.
        root: Container root inside *fs*; repository paths are appended.
    """

    def __init__(self, fs: AbstractFileSystem, root: str) -> None:
        self.fs = fs
        self.root = root.rstrip("/")

    @classmethod
    def from_url(
        cls, url: str, storage_options: dict[str, Any] | None = None
    ) -> FsspecBlobStore:
        fs, root = fsspec.core.url_to_fs(url, **(storage_options or {}))
        return cls(fs, root)

    def _full_path(self, path: str) -> str:
        return f"{self.root}/{path.lstrip('/')}"

    def upload(self, path: str, stream: IO[bytes]) -> None:
        target = self._full_path(path)
        with self.fs.open(target, "wb") as dst:
            shutil.copyfileobj(stream, dst, _CHUNK_SIZE)
        logger.debug("Uploaded %s", target)

    def delete_if_exists(self, path: str) -> bool:
        target = self._full_path(path)
        try:
            self.fs.rm(target)
        except FileNotFoundError:
            return False
        return True
