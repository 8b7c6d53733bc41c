"""Checkpoint kept in Azure Table storage.

One entity per recorded revision, all in the ``commitid`` partition::

    PartitionKey = "commitid"
    RowKey       = <revision id>
    CommittedAt  = <ISO-8601 UTC timestamp>

The table must exist before the first run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from azure.core.exceptions import ResourceNotFoundError
from azure.data.tables import TableClient, UpdateMode
from azure.identity import DefaultAzureCredential

from course_sync.config_schema import CheckpointConfig

logger = logging.getLogger(__name__)

CHECKPOINT_PARTITION = "commitid"


class TableCheckpointStore:
    """CheckpointStore backed by one Azure table.

    Args:
        client: Client of the checkpoint table.
    """

    def __init__(self, client: TableClient) -> None:
        self._client = client

    @classmethod
    def from_config(
        cls, config: CheckpointConfig
    ) -> tuple[TableCheckpointStore, TableClient]:
        """Build a store and the client that owns its connections.

        A connection string wins over an endpoint; an endpoint alone
        authenticates with ``DefaultAzureCredential``.  The caller closes
        the returned client when the run ends.
        """
        if config.table_connection_string:
            client = TableClient.from_connection_string(
                config.table_connection_string, table_name=config.table_name
            )
        else:
            client = TableClient(
                endpoint=config.table_endpoint,
                table_name=config.table_name,
                credential=DefaultAzureCredential(),
            )
        return cls(client), client

    def read(self) -> str | None:
        entities = list(
            self._client.query_entities(
                query_filter="PartitionKey eq @partition",
                parameters={"partition": CHECKPOINT_PARTITION},
            )
        )
        if not entities:
            return None
        if len(entities) > 1:
            logger.warning(
                "%d checkpoint entities found; using the most recent",
                len(entities),
            )
            entities.sort(key=lambda e: e.get("CommittedAt", ""), reverse=True)
        return str(entities[0]["RowKey"])

    def write(self, revision_id: str) -> None:
        self._client.upsert_entity(
            entity={
                "PartitionKey": CHECKPOINT_PARTITION,
                "RowKey": revision_id,
                "CommittedAt": datetime.now(timezone.utc).isoformat(),
            },
            mode=UpdateMode.REPLACE,
        )

    def delete(self, revision_id: str) -> None:
        try:
            self._client.delete_entity(
                partition_key=CHECKPOINT_PARTITION, row_key=revision_id
            )
        except ResourceNotFoundError:
            logger.debug("Checkpoint entity %s already absent", revision_id)
