"""SQL Server access through pyodbc.

The relational applier and ``SqlCheckpointStore`` only use the DB-API
surface (``cursor``, ``execute`` with qmark parameters, ``rowcount``,
``commit``, ``rollback``), so any qmark DB-API connection works in tests.

Expected checkpoint table::

    CREATE TABLE dbo.SyncCheckpoint (
        Scope       NVARCHAR(64)  NOT NULL,
        RevisionId  NVARCHAR(64)  NOT NULL,
        CommittedAt NVARCHAR(40)  NOT NULL,
        PRIMARY KEY (Scope, RevisionId)
    );
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

CHECKPOINT_SCOPE = "commitid"


def connect(connection_string: str) -> Any:
    """Open a pyodbc connection with explicit transactions."""
    import pyodbc

    logger.debug("Opening ODBC connection")
    return pyodbc.connect(connection_string, autocommit=False)


class SqlCheckpointStore:
    """Checkpoint kept as a single row of a SQL table.

    Each call commits on its own so the checkpoint never shares a
    transaction with destination writes.

    Args:
        connection: DB-API connection (qmark parameters).
        table: Validated table name, e.g. ``dbo.SyncCheckpoint``.
    """

    def __init__(self, connection: Any, table: str) -> None:
        self._connection = connection
        self._table = table

    def read(self) -> str | None:
        cursor = self._connection.cursor()
        try:
            cursor.execute(
                f"SELECT RevisionId FROM {self._table} WHERE Scope = ? "
                "ORDER BY CommittedAt DESC",
                (CHECKPOINT_SCOPE,),
            )
            row = cursor.fetchone()
        finally:
            cursor.close()
        return None if row is None else str(row[0])

    def write(self, revision_id: str) -> None:
        self._execute(
            f"INSERT INTO {self._table} (Scope, RevisionId, CommittedAt) "
            "VALUES (?, ?, ?)",
            (
                CHECKPOINT_SCOPE,
                revision_id,
                datetime.now(timezone.utc).isoformat(),
            ),
        )

    def delete(self, revision_id: str) -> None:
        self._execute(
            f"DELETE FROM {self._table} WHERE Scope = ? AND RevisionId = ?",
            (CHECKPOINT_SCOPE, revision_id),
        )

    def _execute(self, sql: str, params: tuple) -> None:
        cursor = self._connection.cursor()
        try:
            cursor.execute(sql, params)
            self._connection.commit()
        except BaseException:
            self._connection.rollback()
            raise
        finally:
            cursor.close()
