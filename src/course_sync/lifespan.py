"""Scoped acquisition of every connection a sync run needs."""

import logging
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .backends.base import BlobStore, CheckpointStore, DocumentStore
from .backends.blob import FsspecBlobStore
from .backends.cosmos import CosmosDocumentStore
from .backends.sql import SqlCheckpointStore, connect
from .backends.table import TableCheckpointStore
from .config_schema import UnifiedConfig
from .core.client import DevOpsClient
from .sync.blobs import BlobApplier
from .sync.classifier import PathClassifier
from .sync.documents import DocumentApplier
from .sync.engine import SyncEngine
from .sync.relational import RelationalApplier
from .sync.state import FileCheckpointStore, ProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class SyncResources:
    """Live connections for one run.

    Destination fields are ``None`` when the session was opened without
    destinations (dry runs and ``status``).
    """

    client: DevOpsClient
    checkpoint_store: CheckpointStore
    connection: Any = None
    document_store: DocumentStore | None = None
    blob_store: BlobStore | None = None


def _open_sql(stack: ExitStack, connection_string: str) -> Any:
    connection = connect(connection_string)
    stack.callback(connection.close)
    logger.info("Connected to SQL database")
    return connection


@contextmanager
def sync_session(
    config: UnifiedConfig, destinations: bool = True
) -> Iterator[SyncResources]:
    """Open the repository client, destinations and checkpoint store.

    On exit every opened connection is closed, in reverse order, whether
    the run succeeded or not.

    Args:
        config: Validated configuration.
        destinations: Also open the SQL, Cosmos and blob destinations.

    Yields:
        ``SyncResources`` for ``build_engine``.
    """
    with ExitStack() as stack:
        client = DevOpsClient(config.source)
        stack.callback(client.close)
        logger.info("Repository: %s", config.source.url)

        connection = None
        if destinations or config.checkpoint.backend == "sql":
            connection = _open_sql(stack, config.relational.connection_string)

        checkpoint_store: CheckpointStore
        if config.checkpoint.backend == "sql":
            checkpoint_store = SqlCheckpointStore(connection, config.checkpoint.table)
        elif config.checkpoint.backend == "table":
            checkpoint_store, table_client = TableCheckpointStore.from_config(
                config.checkpoint
            )
            stack.enter_context(table_client)
        else:
            checkpoint_store = FileCheckpointStore(
                Path(config.checkpoint.state_dir)
            )
        logger.info("Checkpoint backend: %s", config.checkpoint.backend)

        document_store = None
        blob_store = None
        if destinations:
            document_store, cosmos_client = CosmosDocumentStore.from_config(
                config.documents
            )
            stack.enter_context(cosmos_client)
            logger.info(
                "Document container: %s/%s",
                config.documents.database,
                config.documents.container,
            )

            blob_store = FsspecBlobStore.from_url(
                config.blobs.url, config.blobs.storage_options
            )
            logger.info("Blob container: %s", config.blobs.url)

        yield SyncResources(
            client=client,
            checkpoint_store=checkpoint_store,
            connection=connection,
            document_store=document_store,
            blob_store=blob_store,
        )
        logger.debug("Closing sync session")


def build_engine(resources: SyncResources, config: UnifiedConfig) -> SyncEngine:
    """Wire a ``SyncEngine`` from open resources and configuration."""
    max_parallel = config.sync.max_parallel
    return SyncEngine(
        source=resources.client,
        tracker=ProgressTracker(resources.checkpoint_store),
        relational=RelationalApplier.from_config(
            resources.connection, config.relational
        ),
        documents=DocumentApplier(
            resources.client,
            resources.document_store,
            config.blobs.public_base_url,
            max_parallel=max_parallel,
        ),
        blobs=BlobApplier(
            resources.client, resources.blob_store, max_parallel=max_parallel
        ),
        classifier=PathClassifier(config.source.exclude),
    )
