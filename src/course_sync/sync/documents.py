"""Document applier: rendered markdown sections in the document store.

One document per section, keyed by a path-derived id and partitioned by
module id.  Upserts run before deletes; both are independently
idempotent and run on a bounded worker pool.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from course_sync.core.async_utils import run_bounded
from course_sync.errors import ApplyError, SyncError
from course_sync.sync.models import SectionDocument

if TYPE_CHECKING:
    from collections.abc import Sequence

    from course_sync.backends.base import DocumentStore
    from course_sync.sync.builder import ContentSource
    from course_sync.sync.models import ModuleRecord, SectionRecord

logger = logging.getLogger(__name__)

ATTACHMENT_MARKER = "./.attachments/"


def document_key(path: str) -> str:
    """Derive the document id of a section path.

    ``/Modules/intro/01-welcome.md`` becomes ``Modules-intro-01-welcome``.

    Raises:
        ValueError: If *path* is not repository-absolute or not markdown.
    """
    if not path.startswith("/") or not path.endswith(".md"):
        raise ValueError(f"Not a repository markdown path: {path!r}")
    key = path[: -len(".md")].replace("/", "-").replace(" ", "_")
    return key[1:]


def attachment_base_url(public_base_url: str, module_id: str) -> str:
    return f"{public_base_url.rstrip('/')}/Modules/{module_id}/.attachments/"


def render_section(
    content: str, module_id: str, public_base_url: str
) -> tuple[str, str]:
    """Split markdown *content* into ``(title, body)``.

    The title is the first line, kept verbatim.  The body is everything
    after the first blank line, with relative attachment links pointing at
    the public blob container of *module_id*.  Without a blank line the
    body is empty.
    """
    text = content.replace("\r\n", "\n")
    title = text.split("\n", 1)[0]
    _, sep, body = text.partition("\n\n")
    if not sep:
        return title, ""
    body = body.replace(
        ATTACHMENT_MARKER, attachment_base_url(public_base_url, module_id)
    )
    return title, body


class DocumentApplier:
    """Apply section records to a ``DocumentStore``.

    Args:
        content: Repository content lookup.
        store: Destination document store.
        public_base_url: ``https://<storage endpoint>/<container>``.
        max_parallel: Worker pool bound.
    """

    def __init__(
        self,
        content: ContentSource,
        store: DocumentStore,
        public_base_url: str,
        max_parallel: int = 4,
    ) -> None:
        self.content = content
        self.store = store
        self.public_base_url = public_base_url
        self.max_parallel = max_parallel

    def apply(
        self,
        sections: Sequence[SectionRecord],
        modules: Sequence[ModuleRecord] = (),
        revision: str | None = None,
    ) -> None:
        """Upsert changed sections, then delete removed ones.

        Section markdown is read at *revision* (the branch tip if omitted).

        Raises:
            ApplyError: On the first failing document operation.
        """
        module_dirs = {
            m.directory: m.module_id for m in modules if not m.action.is_delete
        }
        upserts = [s for s in sections if not s.action.is_delete]
        deletes = [s for s in sections if s.action.is_delete]

        run_bounded(
            lambda s: self._guard(self._upsert, s, module_dirs, revision),
            upserts,
            self.max_parallel,
        )
        run_bounded(
            lambda s: self._guard(self._delete, s, module_dirs),
            deletes,
            self.max_parallel,
        )
        logger.info(
            "Documents: %d upserted, %d deleted", len(upserts), len(deletes)
        )

    @staticmethod
    def resolve_module_id(
        section: SectionRecord, module_dirs: dict[str, str]
    ) -> str:
        """Module id from this run's module records, else from the path."""
        for directory, module_id in module_dirs.items():
            if section.path.startswith(directory):
                return module_id
        return section.module_id

    def build_document(
        self,
        section: SectionRecord,
        module_id: str,
        revision: str | None = None,
    ) -> SectionDocument:
        raw = self.content.get_content(section.path, version=revision)
        title, body = render_section(raw, module_id, self.public_base_url)
        return SectionDocument(
            id=document_key(section.path),
            module_id=module_id,
            order_index=section.order_index,
            title=title,
            body=body,
            revision_id=section.revision_id,
        )

    def _upsert(
        self,
        section: SectionRecord,
        module_dirs: dict[str, str],
        revision: str | None,
    ) -> None:
        module_id = self.resolve_module_id(section, module_dirs)
        document = self.build_document(section, module_id, revision)
        self.store.upsert(document.model_dump(by_alias=True), module_id)
        logger.debug("Upserted document %s", document.id)

    def _delete(self, section: SectionRecord, module_dirs: dict[str, str]) -> None:
        module_id = self.resolve_module_id(section, module_dirs)
        key = document_key(section.path)
        self.store.delete(key, module_id)
        logger.debug("Deleted document %s", key)

    @staticmethod
    def _guard(func, section: SectionRecord, *args) -> None:
        try:
            func(section, *args)
        except SyncError:
            raise
        except Exception as exc:
            logger.error("Document write failed for %s: %s", section.path, exc)
            raise ApplyError("document", section.path, exc) from exc
