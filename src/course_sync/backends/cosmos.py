"""Cosmos DB document store for rendered sections."""

from __future__ import annotations

import logging
from typing import Any

from azure.cosmos import ContainerProxy, CosmosClient
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from azure.identity import DefaultAzureCredential

from course_sync.config_schema import DocumentConfig

logger = logging.getLogger(__name__)


class CosmosDocumentStore:
    """Upsert and delete section documents in one Cosmos container.

    Args:
        container: Container proxy whose partition key path is the
            document's ``ModuleId``.
    """

    def __init__(self, container: ContainerProxy) -> None:
        self._container = container

    @classmethod
    def from_config(
        cls, config: DocumentConfig
    ) -> tuple[CosmosDocumentStore, CosmosClient]:
        """Build a store and the client that owns its connections.

        Without an account key the client authenticates with
        ``DefaultAzureCredential``.  The caller closes the returned client
        when the run ends.
        """
        if config.key:
            credential = config.key
        else:
            logger.info("No Cosmos key configured; using DefaultAzureCredential")
            credential = DefaultAzureCredential()
        client = CosmosClient(config.endpoint, credential=credential)
        container = client.get_database_client(
            config.database
        ).get_container_client(config.container)
        return cls(container), client

    def upsert(self, document: dict[str, Any], partition_key: str) -> None:
        # The partition value is read from the document body itself
        if document.get("ModuleId") != partition_key:
            raise ValueError(
                f"Document {document.get('id')!r} has ModuleId "
                f"{document.get('ModuleId')!r}, expected {partition_key!r}"
            )
        self._container.upsert_item(body=document)

    def delete(self, key: str, partition_key: str) -> None:
        try:
            self._container.delete_item(item=key, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            logger.debug(
                "Document %s (partition %s) already absent", key, partition_key
            )
