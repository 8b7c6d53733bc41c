"""Shared pytest fixtures for course-sync tests."""

from __future__ import annotations

import io
import json
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytest

from course_sync.errors import NotFoundError
from course_sync.sync.models import ChangeAction, ObjectKind, RepositoryEntry


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Azure DevOps repository",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Azure DevOps repository"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


def entry(
    path: str,
    action: ChangeAction = ChangeAction.ADD,
    kind: ObjectKind = ObjectKind.BLOB,
    revision_id: str = "rev1",
) -> RepositoryEntry:
    """Build a RepositoryEntry with test defaults."""
    return RepositoryEntry(
        path=path, object_kind=kind, action=action, revision_id=revision_id
    )


def course_json(name: str, modules: List[str], **extra: Any) -> str:
    data = {
        "Name": name,
        "Description": f"{name} description",
        "Category": "General",
        "Length": 3,
        "Modules": modules,
    }
    data.update(extra)
    return json.dumps(data)


def module_json(name: str, version: int = 1) -> str:
    return json.dumps(
        {"Name": name, "Description": f"{name} description", "Version": version}
    )


class FakeSource:
    """In-memory repository replacement.

    ``files`` holds content at the latest revision; ``previous`` holds
    content at ``base`` (read for deleted files) and for ``previous=True``
    reads.  ``tree`` and ``diffs`` are returned verbatim by the listing
    calls.  Content calls are logged with the requested version.
    """

    def __init__(
        self,
        latest: str = "rev1",
        files: Optional[Dict[str, Any]] = None,
        previous: Optional[Dict[str, Any]] = None,
        tree: Optional[List[RepositoryEntry]] = None,
        diffs: Optional[Dict[Tuple[str, str], List[RepositoryEntry]]] = None,
        base: Optional[str] = None,
    ) -> None:
        self.latest = latest
        self.base = base
        self.files: Dict[str, Any] = files or {}
        self.previous: Dict[str, Any] = previous or {}
        self.tree: List[RepositoryEntry] = tree or []
        self.diffs = diffs or {}
        self.calls: List[tuple] = []

    def get_latest_revision(self) -> str:
        self.calls.append(("latest",))
        return self.latest

    def list_full_tree(self, revision_id: str) -> List[RepositoryEntry]:
        self.calls.append(("tree", revision_id))
        return list(self.tree)

    def list_diff(self, base: str, target: str) -> List[RepositoryEntry]:
        self.calls.append(("diff", base, target))
        return list(self.diffs.get((base, target), []))

    def get_content(
        self, path: str, previous: bool = False, version: Optional[str] = None
    ) -> str:
        self.calls.append(("content", path, "previous" if previous else version))
        old = previous or (version is not None and version == self.base)
        store = self.previous if old else self.files
        if path not in store:
            raise NotFoundError(path)
        value = store[path]
        return value.decode("utf-8") if isinstance(value, bytes) else value

    @contextmanager
    def stream_content(
        self, path: str, version: Optional[str] = None
    ) -> Iterator[io.BytesIO]:
        self.calls.append(("stream", path, version))
        if path not in self.files:
            raise NotFoundError(path)
        value = self.files[path]
        if isinstance(value, str):
            value = value.encode("utf-8")
        yield io.BytesIO(value)


class FakeDocumentStore:
    """Dict-backed DocumentStore keyed by (partition, id)."""

    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.fail_on = fail_on
        self.operations: List[tuple] = []

    def upsert(self, document: Dict[str, Any], partition_key: str) -> None:
        if self.fail_on and document["id"] == self.fail_on:
            raise RuntimeError("document store unavailable")
        self.operations.append(("upsert", document["id"], partition_key))
        self.documents[(partition_key, document["id"])] = dict(document)

    def delete(self, key: str, partition_key: str) -> None:
        self.operations.append(("delete", key, partition_key))
        self.documents.pop((partition_key, key), None)


class FakeBlobStore:
    """Dict-backed BlobStore."""

    def __init__(self, fail_on: Optional[str] = None) -> None:
        self.blobs: Dict[str, bytes] = {}
        self.fail_on = fail_on
        self.operations: List[tuple] = []

    def upload(self, path: str, stream) -> None:
        if self.fail_on == path:
            raise OSError("blob container unavailable")
        self.operations.append(("upload", path))
        self.blobs[path] = stream.read()

    def delete_if_exists(self, path: str) -> bool:
        self.operations.append(("delete", path))
        return self.blobs.pop(path, None) is not None


class MemoryCheckpointStore:
    """CheckpointStore holding one value in memory."""

    def __init__(self, revision: Optional[str] = None) -> None:
        self.revision = revision
        self.operations: List[tuple] = []

    def read(self) -> Optional[str]:
        return self.revision

    def write(self, revision_id: str) -> None:
        self.operations.append(("write", revision_id))
        self.revision = revision_id

    def delete(self, revision_id: str) -> None:
        self.operations.append(("delete", revision_id))
        if self.revision == revision_id:
            self.revision = None


# ---------------------------------------------------------------------------
# Relational fixtures
# ---------------------------------------------------------------------------

SCHEMA = """
CREATE TABLE Courses (
    CourseId TEXT PRIMARY KEY,
    CourseName TEXT,
    Description TEXT,
    CourseLength INTEGER,
    Category TEXT
);
CREATE TABLE Modules (
    ModuleId TEXT PRIMARY KEY,
    ModuleName TEXT,
    ModuleVersion INTEGER,
    Description TEXT
);
CREATE TABLE CoursesModules (
    CoursesCourseId TEXT NOT NULL,
    ModulesModuleId TEXT NOT NULL,
    ModulesOrder INTEGER NOT NULL,
    PRIMARY KEY (CoursesCourseId, ModulesModuleId)
);
CREATE TABLE SyncCheckpoint (
    Scope TEXT NOT NULL,
    RevisionId TEXT NOT NULL,
    CommittedAt TEXT NOT NULL,
    PRIMARY KEY (Scope, RevisionId)
);
"""

TABLES = {
    "courses_table": "Courses",
    "modules_table": "Modules",
    "course_modules_table": "CoursesModules",
}


@pytest.fixture
def db():
    """In-memory SQLite database with the destination tables."""
    connection = sqlite3.connect(":memory:")
    connection.executescript(SCHEMA)
    yield connection
    connection.close()


def rows(connection, sql: str) -> List[tuple]:
    return sorted(connection.execute(sql).fetchall())


@pytest.fixture
def fake_documents():
    return FakeDocumentStore()


@pytest.fixture
def fake_blobs():
    return FakeBlobStore()
