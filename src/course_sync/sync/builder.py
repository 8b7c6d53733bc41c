"""Change set builder: turn a snapshot into validated, typed records.

Steps:

1. Classify every entry; naming errors are collected, not raised.
2. Course descriptors: read the content at the latest revision (at the
   base revision for deletions) and check that every referenced module
   has a ``module.json`` at the latest revision.
3. Module descriptors: same latest/base read, no reference check.
4. Sections and attachments: records straight from classification.
5. If anything was collected, log every problem and raise one
   ``ValidationError`` before any destination is touched.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from course_sync.errors import NamingError, NotFoundError, ValidationError
from course_sync.sync.classifier import ClassifiedPath, PathClassifier
from course_sync.sync.fetcher import Snapshot
from course_sync.sync.models import (
    AttachmentRecord,
    ChangeSet,
    ContentKind,
    CourseRecord,
    ModuleRecord,
    RepositoryEntry,
    SectionRecord,
)

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    """Content lookup of the source repository."""

    def get_content(
        self, path: str, previous: bool = False, version: str | None = None
    ) -> str: ...


class CourseDescriptor(BaseModel):
    """Schema of ``course.json``."""

    name: str | None = Field(default=None, alias="Name")
    description: str | None = Field(default=None, alias="Description")
    category: str | None = Field(default=None, alias="Category")
    length: int | None = Field(default=None, alias="Length")
    modules: list[str] = Field(default_factory=list, alias="Modules")


class ModuleDescriptor(BaseModel):
    """Schema of ``module.json``."""

    name: str | None = Field(default=None, alias="Name")
    description: str | None = Field(default=None, alias="Description")
    version: int | None = Field(default=None, alias="Version")


def module_descriptor_path(module_id: str) -> str:
    return f"/Modules/{module_id}/module.json"


class ChangeSetBuilder:
    """Build a ``ChangeSet`` or fail with every problem found.

    Args:
        content: Repository content lookup.
        classifier: Path classifier (defaults to the built-in rules).
    """

    def __init__(
        self,
        content: ContentSource,
        classifier: PathClassifier | None = None,
    ) -> None:
        self.content = content
        self.classifier = classifier or PathClassifier()
        self._module_exists: dict[str, bool] = {}
        self._latest: str | None = None
        self._base: str | None = None

    def build(self, snapshot: Snapshot) -> ChangeSet:
        """Classify, load and validate *snapshot*.

        Raises:
            ValidationError: Naming, whitespace, reference or descriptor
                problems (all of them, in one error).
            TransportError: If reading repository content fails.
        """
        self._latest = snapshot.latest_revision
        self._base = snapshot.base_revision
        problems: list[str] = []
        classified: dict[ContentKind, list[tuple[RepositoryEntry, ClassifiedPath]]] = {
            kind: [] for kind in ContentKind
        }

        for entry in snapshot.entries:
            try:
                result = self.classifier.classify(entry.path)
            except NamingError as exc:
                problems.extend(exc.problems)
                continue
            classified[result.kind].append((entry, result))

        courses = []
        for entry, result in classified[ContentKind.COURSE]:
            record = self._load_course(entry, result, problems)
            if record is not None:
                courses.append(record)

        modules = []
        for entry, result in classified[ContentKind.MODULE]:
            record = self._load_module(entry, result, problems)
            if record is not None:
                modules.append(record)

        sections = [
            SectionRecord(
                section_key=result.key,
                path=entry.path,
                module_id=result.module_id,
                order_index=result.order_index,
                action=entry.action,
                revision_id=entry.revision_id,
            )
            for entry, result in classified[ContentKind.SECTION]
        ]

        attachments = [
            AttachmentRecord(
                path=entry.path,
                action=entry.action,
                revision_id=entry.revision_id,
            )
            for entry, _ in classified[ContentKind.ATTACHMENT]
        ]

        if problems:
            logger.error(
                "Found %d problem(s); nothing will be written. "
                "Please fix these paths and references:",
                len(problems),
            )
            for problem in problems:
                logger.error(" L %s", problem)
            raise ValidationError(problems)

        change_set = ChangeSet(
            from_revision=snapshot.base_revision,
            to_revision=snapshot.latest_revision,
            courses=tuple(courses),
            modules=tuple(modules),
            sections=tuple(sections),
            attachments=tuple(attachments),
        )
        noun = "" if snapshot.full_import else " alterations"
        logger.info("Found %d course%s in Git.", len(courses), noun)
        logger.info("Found %d module%s in Git.", len(modules), noun)
        logger.info("Found %d section%s in Git.", len(sections), noun)
        logger.info("Found %d attachment%s in Git.", len(attachments), noun)
        return change_set

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    def _read_descriptor(
        self,
        entry: RepositoryEntry,
        schema: type[BaseModel],
        problems: list[str],
    ) -> BaseModel | None:
        if not entry.action.is_delete:
            raw = self.content.get_content(entry.path, version=self._latest)
        elif self._base:
            # Deleted between base and latest, so present at base
            raw = self.content.get_content(entry.path, version=self._base)
        else:
            raw = self.content.get_content(entry.path, previous=True)
        try:
            return schema.model_validate_json(raw)
        except SchemaError as exc:
            problems.append(
                f"{entry.path}: invalid descriptor "
                f"({exc.error_count()} error(s): {exc.errors()[0]['msg']})"
            )
            return None

    def _load_course(
        self,
        entry: RepositoryEntry,
        result: ClassifiedPath,
        problems: list[str],
    ) -> CourseRecord | None:
        descriptor = self._read_descriptor(entry, CourseDescriptor, problems)
        if descriptor is None:
            return None

        if not entry.action.is_delete:
            for module_id in descriptor.modules:
                if not self._module_is_present(module_id):
                    logger.critical(
                        "Course: %s // Module '%s' not found.",
                        descriptor.name,
                        module_id,
                    )
                    problems.append(
                        f"{entry.path}: course '{descriptor.name}' references "
                        f"module '{module_id}' which has no "
                        f"{module_descriptor_path(module_id)}"
                    )

        return CourseRecord(
            course_id=result.key,
            path=entry.path,
            name=descriptor.name,
            description=descriptor.description,
            category=descriptor.category,
            length=descriptor.length,
            module_refs=tuple(descriptor.modules),
            action=entry.action,
            revision_id=entry.revision_id,
        )

    def _load_module(
        self,
        entry: RepositoryEntry,
        result: ClassifiedPath,
        problems: list[str],
    ) -> ModuleRecord | None:
        descriptor = self._read_descriptor(entry, ModuleDescriptor, problems)
        if descriptor is None:
            return None
        return ModuleRecord(
            module_id=result.key,
            path=entry.path,
            name=descriptor.name,
            description=descriptor.description,
            version=descriptor.version,
            action=entry.action,
            revision_id=entry.revision_id,
        )

    def _module_is_present(self, module_id: str) -> bool:
        """Look up ``/Modules/<id>/module.json`` once per run."""
        if module_id not in self._module_exists:
            try:
                self.content.get_content(
                    module_descriptor_path(module_id), version=self._latest
                )
                self._module_exists[module_id] = True
            except NotFoundError:
                self._module_exists[module_id] = False
        return self._module_exists[module_id]
