"""Runtime configuration for a sync run.

Reads settings from CLI overrides, environment variables, .env files and
YAML config files.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    DEVOPS_URL: Repository API URL (required)
    DEVOPS_TOKEN: Personal access token (required)
    DEVOPS_API_VERSION: REST API version (optional, default: 7.0)
    DEVOPS_BRANCH: Branch used for the latest commit (optional)
    SQL_CONNECTION_STRING: ODBC connection string (required)
    COSMOS_ENDPOINT, COSMOS_DATABASE, COSMOS_CONTAINER (required)
    COSMOS_KEY: Cosmos account key (optional, DefaultAzureCredential if unset)
    BLOB_URL: fsspec URL of the attachment container (required)
    STORAGE_ENDPOINT, STORAGE_CONTAINER: public blob host and container (required)
    CHECKPOINT_BACKEND: "file", "sql" or "table" (optional, default: file)
    CHECKPOINT_DIR: Checkpoint directory for the file backend (optional)
    CHECKPOINT_TABLE_NAME: Azure table of the table backend (optional)
    CHECKPOINT_TABLE_ENDPOINT: Table service URL (table backend)
    CHECKPOINT_TABLE_CONNECTION_STRING: Storage connection string (table backend)
    SYNC_MAX_PARALLEL: Concurrent per-item writes (optional, default: 4)
"""

import logging
import os
from typing import Any
from urllib.parse import urlparse

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

ENV_VARS: dict[str, tuple[str, str]] = {
    "DEVOPS_URL": ("source", "url"),
    "DEVOPS_TOKEN": ("source", "token"),
    "DEVOPS_API_VERSION": ("source", "api_version"),
    "DEVOPS_BRANCH": ("source", "branch"),
    "SQL_CONNECTION_STRING": ("relational", "connection_string"),
    "COSMOS_ENDPOINT": ("documents", "endpoint"),
    "COSMOS_KEY": ("documents", "key"),
    "COSMOS_DATABASE": ("documents", "database"),
    "COSMOS_CONTAINER": ("documents", "container"),
    "BLOB_URL": ("blobs", "url"),
    "STORAGE_ENDPOINT": ("blobs", "storage_endpoint"),
    "STORAGE_CONTAINER": ("blobs", "container"),
    "CHECKPOINT_BACKEND": ("checkpoint", "backend"),
    "CHECKPOINT_DIR": ("checkpoint", "state_dir"),
    "CHECKPOINT_TABLE_NAME": ("checkpoint", "table_name"),
    "CHECKPOINT_TABLE_ENDPOINT": ("checkpoint", "table_endpoint"),
    "CHECKPOINT_TABLE_CONNECTION_STRING": ("checkpoint", "table_connection_string"),
    "SYNC_MAX_PARALLEL": ("sync", "max_parallel"),
}


def _overlay(raw: dict[str, Any], section: str, key: str, value: Any) -> None:
    current = raw.get(section)
    merged = dict(current) if isinstance(current, dict) else {}
    merged[key] = value
    raw[section] = merged


def validate_config(
    config: UnifiedConfig, require_destinations: bool = True
) -> None:
    """Validate required values and raise ValueError if any is missing.

    Args:
        config: Config to validate.
        require_destinations: Also require the SQL, Cosmos and blob
            settings.  Dry runs only talk to the repository.

    Raises:
        ValueError: If the repository URL is malformed or a required
            setting is empty.
    """
    url = (config.source.url or "").strip()
    if not url:
        raise ValueError(
            "Repository URL not found. Set DEVOPS_URL environment variable "
            "or add 'source.url' to config.yml."
        )
    if not url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid repository URL '{url}': must start with http:// or https://"
        )
    if not urlparse(url).hostname:
        raise ValueError(
            f"Invalid repository URL '{url}': URL must include a hostname"
        )
    if not (config.source.token or "").strip():
        raise ValueError(
            "Repository token cannot be empty. Set DEVOPS_TOKEN environment variable."
        )

    needs_sql = require_destinations or config.checkpoint.backend == "sql"
    if needs_sql and not config.relational.connection_string:
        raise ValueError(
            "SQL connection string not found. Set SQL_CONNECTION_STRING "
            "or add 'relational.connection_string' to config.yml."
        )

    checkpoint = config.checkpoint
    if checkpoint.backend == "table" and not (
        checkpoint.table_endpoint or checkpoint.table_connection_string
    ):
        raise ValueError(
            "Checkpoint table not configured. Set CHECKPOINT_TABLE_ENDPOINT "
            "or CHECKPOINT_TABLE_CONNECTION_STRING."
        )

    if not require_destinations:
        return

    missing = [
        name
        for name, value in (
            ("COSMOS_ENDPOINT", config.documents.endpoint),
            ("COSMOS_DATABASE", config.documents.database),
            ("COSMOS_CONTAINER", config.documents.container),
            ("BLOB_URL", config.blobs.url),
            ("STORAGE_ENDPOINT", config.blobs.storage_endpoint),
            ("STORAGE_CONTAINER", config.blobs.container),
        )
        if not value
    ]
    if missing:
        raise ValueError(
            "Missing destination settings: " + ", ".join(missing)
        )


def load_config(
    config_path: str | None = None,
    cli_overrides: dict[str, dict[str, Any]] | None = None,
    require_destinations: bool = True,
) -> UnifiedConfig:
    """Load configuration with unified precedence.

    The caller is responsible for calling ``load_dotenv()`` first so that
    .env values are visible through ``os.environ``.

    Args:
        config_path: Explicit YAML config file (``--config``).
        cli_overrides: ``{section: {field: value}}`` from CLI flags; ``None``
            values are ignored.
        require_destinations: Forwarded to ``validate_config``.

    Returns:
        Validated ``UnifiedConfig``.

    Raises:
        ValueError: If a value is invalid or required config is missing.
    """
    raw = load_hierarchical_config(config_path)

    for env_name, (section, key) in ENV_VARS.items():
        value = os.getenv(env_name)
        if value is not None and value != "":
            _overlay(raw, section, key, value)

    for section, values in (cli_overrides or {}).items():
        for key, value in values.items():
            if value is not None:
                _overlay(raw, section, key, value)

    config = build_config(raw)
    validate_config(config, require_destinations=require_destinations)

    if config.source.url and config.source.url.startswith("http://"):
        logger.warning(
            "WARNING: repository URL uses plain http; the token is sent unencrypted."
        )

    return config
