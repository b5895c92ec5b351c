"""
Student reconciler.

Students are matched on their canonical (uppercase) code. Students the cloud
no longer lists are deactivated, never deleted; long-inactive rows are
purged separately by ``StudentService.cleanup_inactive_students``.

``updated_at`` is refreshed through the column's ``onupdate``, so it moves
only for students whose stored fields actually changed. Re-applying an
unchanged roster leaves every row, timestamps included, as it was.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from edge_hub.core.config import settings
from edge_hub.models.student import LocalStudent, StudentStatus
from edge_hub.services.students import StudentService
from edge_hub.services.sync.conflicts import detect_recent_activity, log_conflicts
from edge_hub.services.sync.data_validator import validate_students_data
from edge_hub.services.sync.errors import PersistenceError
from edge_hub.services.sync.records import StudentRecord
from edge_hub.services.sync.results import EntitySyncResult

logger = logging.getLogger(__name__)


class StudentReconciler:
    """Merges a cloud student batch into the local student table."""

    def __init__(self, session_factory, conflict_window_hours: Optional[float] = None):
        self.session_factory = session_factory
        self.conflict_window_hours = conflict_window_hours or settings.SYNC_CONFLICT_WINDOW_HOURS

    async def reconcile(self, students: Any) -> EntitySyncResult:
        validation = validate_students_data(students)
        if not validation.is_valid:
            logger.warning(f"Student data validation failed: {validation.errors}")
            return EntitySyncResult.failed(*validation.errors)

        if not students:
            logger.info("No students to sync")
            return EntitySyncResult(success=True, count=0)

        records = [StudentRecord.from_payload(item) for item in students]

        try:
            applied = await self._upsert(records)
        except PersistenceError as e:
            logger.error(f"Student upsert failed: {e}")
            return EntitySyncResult.failed(str(e))

        errors = []
        try:
            await self._deactivate_removed(records)
        except PersistenceError as e:
            logger.error(f"Student cleanup failed: {e}")
            errors.append(str(e))

        logger.info(f"Synced {applied} students from cloud")
        return EntitySyncResult(success=not errors, count=applied, errors=errors)

    async def _upsert(self, records: List[StudentRecord]) -> int:
        async with self.session_factory() as db:
            try:
                result = await db.execute(
                    select(LocalStudent).where(
                        LocalStudent.student_code.in_([r.student_code for r in records])
                    )
                )
                by_code: Dict[str, LocalStudent] = {s.student_code: s for s in result.scalars().all()}

                for record in records:
                    student = by_code.get(record.student_code)
                    if student is None:
                        student = LocalStudent(student_code=record.student_code, synced=True)
                        db.add(student)
                        by_code[record.student_code] = student

                    student.first_name = record.first_name
                    student.last_name = record.last_name
                    student.grade = record.grade
                    student.age = record.age
                    student.student_metadata = record.metadata
                    student.status = record.status
                    student.synced = True

                # updated_at is refreshed by the column's onupdate whenever a row changes
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Failed to save students: {e}") from e

        return len(records)

    async def _deactivate_removed(self, records: List[StudentRecord]) -> int:
        cloud_codes = {r.student_code for r in records}

        async with self.session_factory() as db:
            service = StudentService(db)
            try:
                removed = [
                    s for s in await service.find_students_not_in_list(cloud_codes)
                    if s.status != StudentStatus.INACTIVE
                ]
                if not removed:
                    return 0

                conflicts = detect_recent_activity(
                    "student", removed, "student_code", "updated_at", self.conflict_window_hours
                )
                log_conflicts(conflicts, "students", "last updated")

                count = await service.deactivate_students([s.id for s in removed])
                logger.info(f"Deactivated {count} students no longer in cloud")
                return count
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Student cleanup failed: {e}") from e
