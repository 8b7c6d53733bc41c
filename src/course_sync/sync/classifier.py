"""Path classifier for repository content.

Maps a repository path to the kind of content it holds and the natural key
derived from it.  Classification is pure: no I/O, same answer for the same
path.

Path conventions:

1. **Exclusions** -- anything under ``/cicd/``, any ``README`` path and any
   configured exclude glob is ignored.
2. **Course descriptor** -- ``/Courses/<course>/course.json``.
3. **Module descriptor** -- ``/Modules/<module>/module.json``.
4. **Section** -- ``/Modules/<module>/<order>-<name>.md``.  Every other
   ``.md`` path is a naming error, never silently skipped.
5. **Attachment** -- ``.png``, ``.jpg`` or ``.jpeg`` (any case).
6. Everything else is ignored.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable
from dataclasses import dataclass

from course_sync.errors import NamingError
from course_sync.sync.models import ContentKind
from course_sync.validators import (
    validate_attachment_path,
    validate_identifier_segment,
)

CICD_MARKER = "/cicd/"
README_MARKER = "README"
COURSE_FILE = "course.json"
MODULE_FILE = "module.json"
ATTACHMENT_SUFFIXES = (".png", ".jpg", ".jpeg")

_COURSE_PATTERN = re.compile(r"^/Courses/(?P<course>[^/]+)/course\.json$")
_MODULE_PATTERN = re.compile(r"^/Modules/(?P<module>[^/]+)/module\.json$")
_SECTION_PATTERN = re.compile(
    r"^/Modules/(?P<module>[\w']+)/(?P<order>\d+)-(?P<name>[\w']+)\.md$"
)


@dataclass(frozen=True)
class ClassifiedPath:
    """Result of classifying one path.

    Attributes:
        kind: Content kind.
        path: The classified path.
        key: Course id, module id, section key, or the path itself for
            attachments; ``None`` when ignored.
        module_id: Owning module for sections.
        order_index: Section position within its module.
    """

    kind: ContentKind
    path: str
    key: str | None = None
    module_id: str | None = None
    order_index: int | None = None


def is_excluded(path: str) -> bool:
    """Return ``True`` for paths that are never synchronised."""
    return CICD_MARKER in path or README_MARKER in path


def classify(path: str) -> ClassifiedPath:
    """Classify *path*.

    Raises:
        NamingError: If the file name says course/module/section/attachment
            but the path does not follow the convention for it.
    """
    if is_excluded(path):
        return ClassifiedPath(ContentKind.IGNORED, path)

    name = path.rsplit("/", 1)[-1]

    if name == COURSE_FILE:
        return _classify_descriptor(
            path, _COURSE_PATTERN, "course", ContentKind.COURSE,
            "/Courses/<course>/course.json",
        )

    if name == MODULE_FILE:
        return _classify_descriptor(
            path, _MODULE_PATTERN, "module", ContentKind.MODULE,
            "/Modules/<module>/module.json",
        )

    if name.endswith(".md"):
        return _classify_section(path)

    if name.lower().endswith(ATTACHMENT_SUFFIXES):
        ok, reason = validate_attachment_path(path)
        if not ok:
            raise NamingError(path, reason)
        return ClassifiedPath(ContentKind.ATTACHMENT, path, key=path)

    return ClassifiedPath(ContentKind.IGNORED, path)


class PathClassifier:
    """``classify`` plus user-configured exclude globs.

    Args:
        exclude: fnmatch patterns matched against the full path.
    """

    def __init__(self, exclude: Iterable[str] = ()) -> None:
        self._exclude = tuple(exclude)

    def classify(self, path: str) -> ClassifiedPath:
        for pattern in self._exclude:
            if fnmatch.fnmatch(path, pattern):
                return ClassifiedPath(ContentKind.IGNORED, path)
        return classify(path)


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _classify_descriptor(
    path: str,
    pattern: re.Pattern,
    group: str,
    kind: ContentKind,
    expected: str,
) -> ClassifiedPath:
    match = pattern.match(path)
    if match is None:
        raise NamingError(path, f"descriptor must be located at {expected}")
    key = match.group(group)
    ok, reason = validate_identifier_segment(group.capitalize(), key)
    if not ok:
        raise NamingError(path, reason)
    return ClassifiedPath(kind, path, key=key)


def _classify_section(path: str) -> ClassifiedPath:
    match = _SECTION_PATTERN.match(path)
    if match is None:
        raise NamingError(
            path,
            "markdown must be named /Modules/<module>/<order>-<name>.md "
            "(order digits, module and name letters, digits or '_')",
        )
    module = match.group("module")
    return ClassifiedPath(
        ContentKind.SECTION,
        path,
        key=f"{module}-{match.group('name')}".lower(),
        module_id=module,
        order_index=int(match.group("order")),
    )
