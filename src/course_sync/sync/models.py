"""Pydantic models for the content sync engine.

Defines the data contracts shared by all sync modules:

- ``ChangeAction``: lifecycle action of a changed path.
- ``ObjectKind``: git object type of a repository entry.
- ``ContentKind``: what a repository path holds.
- ``RepositoryEntry``: one path from a tree or diff listing.
- ``CourseRecord``, ``ModuleRecord``, ``SectionRecord``,
  ``AttachmentRecord``: typed records derived from paths.
- ``ChangeSet``: validated unit of work for one run.
- ``SectionDocument``: the document stored for a section.
- ``SyncReport``: outcome of a run.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChangeAction(str, Enum):
    """What happened to a path between two revisions."""

    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    RENAME = "rename"

    @classmethod
    def parse(cls, change_type: str | None) -> ChangeAction:
        """Parse a change type such as ``"edit, rename"``.

        A change type may combine several flags.  The strongest one wins:
        delete, then add, then rename, then edit.  An empty value means
        ``add`` (full tree listings carry no change type).

        Raises:
            ValueError: If no known flag is present.
        """
        if not change_type:
            return cls.ADD
        flags = {
            part.strip().lower() for part in change_type.split(",")
        }
        for action in (cls.DELETE, cls.ADD, cls.RENAME, cls.EDIT):
            if action.value in flags:
                return action
        raise ValueError(f"Unknown change type: {change_type!r}")

    @property
    def is_delete(self) -> bool:
        return self is ChangeAction.DELETE


class ObjectKind(str, Enum):
    """Git object type of a listed item."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"
    TAG = "tag"


class ContentKind(str, Enum):
    """Content type of a repository path."""

    COURSE = "course"
    MODULE = "module"
    SECTION = "section"
    ATTACHMENT = "attachment"
    IGNORED = "ignored"


class RepositoryEntry(BaseModel):
    """One path from a full-tree or diff listing.

    Attributes:
        path: Repository-absolute path (``/Modules/intro/module.json``).
        object_kind: Git object type.
        action: Change action (``add`` for full-tree listings).
        revision_id: Commit in which the item was last modified.
    """

    path: str
    object_kind: ObjectKind
    action: ChangeAction = ChangeAction.ADD
    revision_id: str | None = None

    model_config = {"frozen": True}


class CourseRecord(BaseModel):
    """A course descriptor (``/Courses/<id>/course.json``).

    Attributes:
        course_id: Directory name of the course.
        module_refs: Module ids in display order.
    """

    course_id: str
    path: str
    name: str | None = None
    description: str | None = None
    category: str | None = None
    length: int | None = None
    module_refs: tuple[str, ...] = ()
    action: ChangeAction
    revision_id: str | None = None

    model_config = {"frozen": True}


class ModuleRecord(BaseModel):
    """A module descriptor (``/Modules/<id>/module.json``)."""

    module_id: str
    path: str
    name: str | None = None
    description: str | None = None
    version: int | None = None
    action: ChangeAction
    revision_id: str | None = None

    model_config = {"frozen": True}

    @property
    def directory(self) -> str:
        """Module folder with a trailing slash (``/Modules/<id>/``)."""
        return self.path.rsplit("/", 1)[0] + "/"


class SectionRecord(BaseModel):
    """A markdown section (``/Modules/<module>/<order>-<name>.md``).

    Attributes:
        section_key: Lowercase ``<module>-<name>``.
        module_id: Module segment of the path.
        order_index: Integer value of the ``<order>`` segment.
    """

    section_key: str
    path: str
    module_id: str
    order_index: int
    action: ChangeAction
    revision_id: str | None = None

    model_config = {"frozen": True}


class AttachmentRecord(BaseModel):
    """A binary attachment (``.png``, ``.jpg``, ``.jpeg``)."""

    path: str
    action: ChangeAction
    revision_id: str | None = None

    model_config = {"frozen": True}


class ChangeSet(BaseModel):
    """Validated batch of records produced by one fetch cycle.

    Attributes:
        from_revision: Checkpoint the diff started from (``None`` for a
            full import).
        to_revision: Revision the change set brings destinations to.
    """

    from_revision: str | None = None
    to_revision: str
    courses: tuple[CourseRecord, ...] = ()
    modules: tuple[ModuleRecord, ...] = ()
    sections: tuple[SectionRecord, ...] = ()
    attachments: tuple[AttachmentRecord, ...] = ()

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not (
            self.courses or self.modules or self.sections or self.attachments
        )

    def counts(self) -> dict[str, dict[str, int]]:
        """Number of records per kind and action."""
        result: dict[str, dict[str, int]] = {}
        for kind, records in (
            ("courses", self.courses),
            ("modules", self.modules),
            ("sections", self.sections),
            ("attachments", self.attachments),
        ):
            per_action = {action.value: 0 for action in ChangeAction}
            for record in records:
                per_action[record.action.value] += 1
            result[kind] = per_action
        return result


class SectionDocument(BaseModel):
    """Document stored for one section.

    Serialised with the field names the reading application queries
    (``model_dump(by_alias=True)``).
    """

    id: str
    module_id: str = Field(alias="ModuleId")
    order_index: int = Field(alias="OrderPost")
    title: str = Field(alias="SectionName")
    body: str = Field(alias="MdContent")
    revision_id: str | None = Field(default=None, alias="CommitId")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class SyncReport(BaseModel):
    """Outcome of one engine run.

    Attributes:
        previous_revision: Checkpoint read at the start of the run.
        latest_revision: Revision the run brought destinations to.
        full_import: True when the whole tree was listed.
        dry_run: True when nothing was written.
        up_to_date: True when the checkpoint already equalled the latest
            revision.
        change_set: What was (or would be) applied.
    """

    previous_revision: str | None = None
    latest_revision: str
    full_import: bool = False
    dry_run: bool = False
    up_to_date: bool = False
    change_set: ChangeSet
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def checkpoint_advanced(self) -> bool:
        return not self.dry_run and not self.up_to_date

    def summary(self) -> str:
        """One line per record kind with counts by action."""
        lines = []
        for kind, per_action in self.change_set.counts().items():
            parts = ", ".join(
                f"{count} {action}"
                for action, count in per_action.items()
                if count
            )
            lines.append(f"  {kind.capitalize():<12} {parts or 'none'}")
        return "\n".join(lines)
