"""Relational applier: course and module metadata plus course ordering.

Every write is update-then-insert-if-absent (or delete by key), so the
same change set can be replayed any number of times.  All statements of
one run share a single transaction: either every course and module row is
written or none is.

Expected tables (names configurable)::

    Courses        (CourseId, CourseName, Description, CourseLength, Category)
    Modules        (ModuleId, ModuleName, ModuleVersion, Description)
    CoursesModules (CoursesCourseId, ModulesModuleId, ModulesOrder)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from course_sync.errors import ApplyError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from course_sync.config_schema import RelationalConfig
    from course_sync.sync.models import CourseRecord, ModuleRecord

logger = logging.getLogger(__name__)


class RelationalApplier:
    """Apply course and module records to a DB-API connection.

    Args:
        connection: DB-API connection using qmark parameters.
        courses_table: Course metadata table.
        modules_table: Module metadata table.
        course_modules_table: Course-to-module ordering table.
    """

    def __init__(
        self,
        connection: Any,
        courses_table: str = "dbo.Courses",
        modules_table: str = "dbo.Modules",
        course_modules_table: str = "dbo.CoursesModules",
    ) -> None:
        self.connection = connection
        self.courses_table = courses_table
        self.modules_table = modules_table
        self.course_modules_table = course_modules_table

    @classmethod
    def from_config(cls, connection: Any, config: RelationalConfig) -> RelationalApplier:
        return cls(
            connection,
            courses_table=config.courses_table,
            modules_table=config.modules_table,
            course_modules_table=config.course_modules_table,
        )

    def apply(
        self,
        courses: Sequence[CourseRecord],
        modules: Sequence[ModuleRecord],
    ) -> None:
        """Write *courses* then *modules* in one transaction.

        Raises:
            ApplyError: On the first failing statement; the transaction is
                rolled back.
        """
        if not courses and not modules:
            logger.info("Relational: nothing to apply")
            return

        cursor = self.connection.cursor()
        key = "<begin>"
        try:
            for course in courses:
                key = course.path
                if course.action.is_delete:
                    self._delete_course(cursor, course)
                else:
                    self._upsert_course(cursor, course)
            for module in modules:
                key = module.path
                if module.action.is_delete:
                    self._delete_module(cursor, module)
                else:
                    self._upsert_module(cursor, module)
            key = "<commit>"
            self.connection.commit()
        except Exception as exc:
            self.connection.rollback()
            logger.error("Relational apply failed at %s: %s", key, exc)
            raise ApplyError("relational", key, exc) from exc
        finally:
            cursor.close()

        logger.info(
            "Relational: applied %d course(s), %d module(s)",
            len(courses),
            len(modules),
        )

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------

    def _upsert_course(self, cursor: Any, course: CourseRecord) -> None:
        cursor.execute(
            f"UPDATE {self.courses_table} SET CourseName = ?, Description = ?, "
            "CourseLength = ?, Category = ? WHERE CourseId = ?",
            (
                course.name,
                course.description,
                course.length,
                course.category,
                course.course_id,
            ),
        )
        if cursor.rowcount < 1:
            cursor.execute(
                f"INSERT INTO {self.courses_table} "
                "(CourseId, CourseName, Description, CourseLength, Category) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    course.course_id,
                    course.name,
                    course.description,
                    course.length,
                    course.category,
                ),
            )
            logger.debug("Inserted course %s", course.course_id)
        else:
            logger.debug("Updated course %s", course.course_id)

        for order, module_id in enumerate(course.module_refs):
            self._upsert_link(cursor, course.course_id, module_id, order)
        self._prune_links(cursor, course.course_id, course.module_refs)

    def _delete_course(self, cursor: Any, course: CourseRecord) -> None:
        cursor.execute(
            f"DELETE FROM {self.course_modules_table} WHERE CoursesCourseId = ?",
            (course.course_id,),
        )
        cursor.execute(
            f"DELETE FROM {self.courses_table} WHERE CourseId = ?",
            (course.course_id,),
        )
        logger.debug("Deleted course %s", course.course_id)

    def _upsert_link(
        self, cursor: Any, course_id: str, module_id: str, order: int
    ) -> None:
        cursor.execute(
            f"UPDATE {self.course_modules_table} SET ModulesOrder = ? "
            "WHERE CoursesCourseId = ? AND ModulesModuleId = ?",
            (order, course_id, module_id),
        )
        if cursor.rowcount < 1:
            cursor.execute(
                f"INSERT INTO {self.course_modules_table} "
                "(CoursesCourseId, ModulesModuleId, ModulesOrder) "
                "VALUES (?, ?, ?)",
                (course_id, module_id, order),
            )

    def _prune_links(
        self, cursor: Any, course_id: str, module_refs: Sequence[str]
    ) -> None:
        """Drop association rows for modules no longer listed by the course."""
        if not module_refs:
            cursor.execute(
                f"DELETE FROM {self.course_modules_table} WHERE CoursesCourseId = ?",
                (course_id,),
            )
            return
        placeholders = ", ".join("?" for _ in module_refs)
        cursor.execute(
            f"DELETE FROM {self.course_modules_table} WHERE CoursesCourseId = ? "
            f"AND ModulesModuleId NOT IN ({placeholders})",
            (course_id, *module_refs),
        )

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def _upsert_module(self, cursor: Any, module: ModuleRecord) -> None:
        cursor.execute(
            f"UPDATE {self.modules_table} SET ModuleName = ?, ModuleVersion = ?, "
            "Description = ? WHERE ModuleId = ?",
            (module.name, module.version, module.description, module.module_id),
        )
        if cursor.rowcount < 1:
            cursor.execute(
                f"INSERT INTO {self.modules_table} "
                "(ModuleId, ModuleName, ModuleVersion, Description) "
                "VALUES (?, ?, ?, ?)",
                (module.module_id, module.name, module.version, module.description),
            )
            logger.debug("Inserted module %s", module.module_id)
        else:
            logger.debug("Updated module %s", module.module_id)

    def _delete_module(self, cursor: Any, module: ModuleRecord) -> None:
        cursor.execute(
            f"DELETE FROM {self.course_modules_table} WHERE ModulesModuleId = ?",
            (module.module_id,),
        )
        cursor.execute(
            f"DELETE FROM {self.modules_table} WHERE ModuleId = ?",
            (module.module_id,),
        )
        logger.debug("Deleted module %s", module.module_id)
