"""Sync course content from an Azure DevOps repository into SQL, Cosmos and blob storage."""

__version__ = "1.0.0"
