"""Unified configuration schema for course_sync.

Defines Pydantic models for each config section: the source repository,
the three destinations, the checkpoint store, run tuning and logging.

Usage:
    from course_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

# Optional schema prefix, e.g. "dbo.Courses"
_SQL_IDENTIFIER = r"^([A-Za-z_][A-Za-z0-9_]{0,127}\.)?[A-Za-z_][A-Za-z0-9_]{0,127}$"
_TABLE_NAME = r"^[A-Za-z][A-Za-z0-9]{2,62}$"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SourceConfig(BaseModel):
    """Azure DevOps Git repository settings.

    ``url`` is the repository API root, e.g.
    ``https://dev.azure.com/org/project/_apis/git/repositories/content``.
    """

    url: str | None = Field(default=None, description="Repository API URL")
    token: str | None = Field(
        default=None, description="Personal access token"
    )
    api_version: str = Field(default="7.0", description="REST API version")
    branch: str | None = Field(
        default=None,
        description="Branch used to resolve the latest commit (default branch if unset)",
    )
    page_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description="Changes requested per diff page",
    )
    timeout: float = Field(
        default=60.0, gt=0, description="Read timeout in seconds"
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Extra fnmatch patterns of repository paths to ignore",
    )

    model_config = {"frozen": True}


class RelationalConfig(BaseModel):
    """SQL database holding course and module metadata."""

    connection_string: str | None = Field(
        default=None, description="ODBC connection string"
    )
    courses_table: str = Field(default="dbo.Courses", pattern=_SQL_IDENTIFIER)
    modules_table: str = Field(default="dbo.Modules", pattern=_SQL_IDENTIFIER)
    course_modules_table: str = Field(
        default="dbo.CoursesModules", pattern=_SQL_IDENTIFIER
    )

    model_config = {"frozen": True}


class DocumentConfig(BaseModel):
    """Cosmos DB container receiving rendered sections."""

    endpoint: str | None = Field(default=None, description="Cosmos account URL")
    key: str | None = Field(
        default=None,
        description="Cosmos account key (DefaultAzureCredential if unset)",
    )
    database: str | None = Field(default=None)
    container: str | None = Field(default=None)

    model_config = {"frozen": True}


class BlobConfig(BaseModel):
    """Attachment storage.

    ``url`` is an fsspec URL for the container root (``az://content`` in
    production).  ``storage_endpoint`` and ``container`` build the public
    URL that section bodies link to.
    """

    url: str | None = Field(default=None, description="fsspec container URL")
    storage_options: dict[str, Any] = Field(default_factory=dict)
    storage_endpoint: str | None = Field(
        default=None,
        description="Public blob host, e.g. account.blob.core.windows.net",
    )
    container: str | None = Field(default=None)

    model_config = {"frozen": True}

    @property
    def public_base_url(self) -> str:
        """Absolute URL of the container, without a trailing slash."""
        return f"https://{self.storage_endpoint}/{self.container}"


class CheckpointConfig(BaseModel):
    """Where the last applied revision is recorded."""

    backend: Literal["file", "sql", "table"] = Field(default="file")
    state_dir: str = Field(
        default=".course_sync",
        description="Directory of the checkpoint file (file backend)",
    )
    table: str = Field(default="dbo.SyncCheckpoint", pattern=_SQL_IDENTIFIER)
    table_name: str = Field(
        default="SyncCheckpoint",
        pattern=_TABLE_NAME,
        description="Azure table name (table backend)",
    )
    table_endpoint: str | None = Field(
        default=None,
        description="Table service URL, e.g. https://account.table.core.windows.net",
    )
    table_connection_string: str | None = Field(
        default=None,
        description="Storage connection string; overrides table_endpoint",
    )

    model_config = {"frozen": True}


class RunConfig(BaseModel):
    """Tuning for a single run."""

    max_parallel: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Concurrent per-item writes in the document and blob appliers (1-64)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(default="text")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults so ``UnifiedConfig()`` is always
    constructible; required connection values are checked separately by
    ``course_sync.config.validate_config``.
    """

    source: SourceConfig = Field(default_factory=SourceConfig)
    relational: RelationalConfig = Field(default_factory=RelationalConfig)
    documents: DocumentConfig = Field(default_factory=DocumentConfig)
    blobs: BlobConfig = Field(default_factory=BlobConfig)
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig)
    sync: RunConfig = Field(default_factory=RunConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from a merged raw dict.

    Handles missing sections gracefully -- anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
