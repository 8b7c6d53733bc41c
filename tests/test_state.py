"""Tests for checkpoint persistence and the progress tracker.

Covers:
- FileCheckpointStore read/write/delete, atomic replace, directory creation
- SqlCheckpointStore against SQLite
- ProgressTracker delete-then-write ordering and no-op commits
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import MemoryCheckpointStore
from course_sync.backends.sql import SqlCheckpointStore
from course_sync.errors import CheckpointError
from course_sync.sync.state import FileCheckpointStore, ProgressTracker

# ---------------------------------------------------------------------------
# File store
# ---------------------------------------------------------------------------


class TestFileCheckpointStore:
    def test_read_missing_returns_none(self, tmp_path: Path):
        assert FileCheckpointStore(tmp_path / "none").read() is None

    def test_write_then_read(self, tmp_path: Path):
        store = FileCheckpointStore(tmp_path)
        store.write("abc123")
        assert store.read() == "abc123"

    def test_write_creates_state_dir(self, tmp_path: Path):
        state_dir = tmp_path / "nested" / ".course_sync"
        FileCheckpointStore(state_dir).write("r1")
        assert (state_dir / "checkpoint.json").is_file()

    def test_file_format(self, tmp_path: Path):
        FileCheckpointStore(tmp_path).write("r1")
        data = json.loads((tmp_path / "checkpoint.json").read_text())
        assert data["version"] == 1
        assert data["revision_id"] == "r1"
        assert "T" in data["committed_at"]

    def test_no_temp_files_left(self, tmp_path: Path):
        store = FileCheckpointStore(tmp_path)
        store.write("r1")
        store.write("r2")
        assert [p.name for p in tmp_path.iterdir()] == ["checkpoint.json"]

    def test_failed_write_keeps_previous_value(self, tmp_path: Path):
        store = FileCheckpointStore(tmp_path)
        store.write("r1")
        with patch("course_sync.sync.state.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store.write("r2")
        assert store.read() == "r1"
        assert [p.name for p in tmp_path.iterdir()] == ["checkpoint.json"]

    def test_delete_matching_revision(self, tmp_path: Path):
        store = FileCheckpointStore(tmp_path)
        store.write("r1")
        store.delete("r1")
        assert store.read() is None

    def test_delete_other_revision_is_noop(self, tmp_path: Path):
        store = FileCheckpointStore(tmp_path)
        store.write("r1")
        store.delete("r0")
        assert store.read() == "r1"


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------


class TestSqlCheckpointStore:
    def test_round_trip(self, db):
        store = SqlCheckpointStore(db, "SyncCheckpoint")
        assert store.read() is None
        store.write("r1")
        assert store.read() == "r1"
        store.delete("r1")
        assert store.read() is None

    def test_rows_use_commitid_scope(self, db):
        SqlCheckpointStore(db, "SyncCheckpoint").write("r1")
        assert db.execute("SELECT Scope, RevisionId FROM SyncCheckpoint").fetchall() == [
            ("commitid", "r1")
        ]

    def test_failed_write_rolls_back(self, db):
        store = SqlCheckpointStore(db, "NoSuchTable")
        with pytest.raises(sqlite3.OperationalError):
            store.write("r1")


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class TestProgressTracker:
    def test_read_empty(self):
        assert ProgressTracker(MemoryCheckpointStore()).read() is None

    def test_read_blank_value_is_none(self):
        assert ProgressTracker(MemoryCheckpointStore("")).read() is None

    def test_commit_deletes_then_writes(self):
        store = MemoryCheckpointStore("r1")
        ProgressTracker(store).commit("r2", previous="r1")
        assert store.operations == [("delete", "r1"), ("write", "r2")]
        assert store.revision == "r2"

    def test_first_commit_only_writes(self):
        store = MemoryCheckpointStore()
        ProgressTracker(store).commit("r1")
        assert store.operations == [("write", "r1")]

    def test_commit_same_revision_is_noop(self):
        store = MemoryCheckpointStore("r1")
        ProgressTracker(store).commit("r1", previous="r1")
        assert store.operations == []

    def test_crash_between_delete_and_write_means_full_import(self):
        store = MemoryCheckpointStore("r1")

        def _fail(revision_id):
            raise OSError("crash")

        store.write = _fail
        with pytest.raises(CheckpointError) as exc_info:
            ProgressTracker(store).commit("r2", previous="r1")
        assert exc_info.value.operation == "commit checkpoint"
        assert isinstance(exc_info.value.__cause__, OSError)
        assert ProgressTracker(store).read() is None

    def test_corrupt_checkpoint_file(self, tmp_path: Path):
        (tmp_path / "checkpoint.json").write_text("{not json")
        with pytest.raises(CheckpointError, match="read checkpoint"):
            ProgressTracker(FileCheckpointStore(tmp_path)).read()

    def test_sql_read_failure(self):
        connection = sqlite3.connect(":memory:")
        tracker = ProgressTracker(SqlCheckpointStore(connection, "Missing"))
        with pytest.raises(CheckpointError) as exc_info:
            tracker.read()
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
        connection.close()

    def test_file_store_commit(self, tmp_path: Path):
        store = FileCheckpointStore(tmp_path)
        tracker = ProgressTracker(store)
        tracker.commit("r1")
        tracker.commit("r2", previous="r1")
        assert tracker.read() == "r2"
