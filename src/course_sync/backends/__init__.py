"""Destination backends: SQL Server, Cosmos DB, Azure Tables and fsspec.

The Cosmos, table and fsspec modules import their SDKs at import time, so
import them directly (``course_sync.backends.cosmos``) rather than through this
package.
"""

from .base import BlobStore, CheckpointStore, DocumentStore

__all__ = ["BlobStore", "CheckpointStore", "DocumentStore"]
