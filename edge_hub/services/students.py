"""
Student Service

Persistence for hub students. Student codes are canonicalised to uppercase
on every lookup.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from edge_hub.models.student import LocalStudent, StudentStatus
from edge_hub.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


def normalize_student_code(student_code: str) -> str:
    return student_code.strip().upper()


class StudentService:
    """Store for LocalStudent rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_student_by_code(
        self,
        student_code: str,
        active_only: bool = True
    ) -> Optional[LocalStudent]:
        query = select(LocalStudent).where(
            LocalStudent.student_code == normalize_student_code(student_code)
        )
        if active_only:
            query = query.where(LocalStudent.status == StudentStatus.ACTIVE)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_students_not_in_list(self, student_codes: Iterable[str]) -> List[LocalStudent]:
        """Students whose code is absent from ``student_codes``."""
        codes = [normalize_student_code(code) for code in student_codes]
        query = select(LocalStudent)
        if codes:
            query = query.where(LocalStudent.student_code.not_in(codes))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def deactivate_students(self, student_ids: List[str]) -> int:
        if not student_ids:
            return 0
        result = await self.db.execute(
            update(LocalStudent)
            .where(LocalStudent.id.in_(student_ids))
            .values(status=StudentStatus.INACTIVE, synced=True, updated_at=utcnow())
        )
        await self.db.commit()
        return result.rowcount

    async def cleanup_inactive_students(self, days_old: int = 30) -> int:
        """Hard-delete students that have been inactive for ``days_old`` days."""
        cutoff = utcnow() - timedelta(days=days_old)
        result = await self.db.execute(
            delete(LocalStudent).where(
                and_(
                    LocalStudent.status == StudentStatus.INACTIVE,
                    LocalStudent.updated_at < cutoff
                )
            )
        )
        await self.db.commit()
        logger.info(f"Cleaned up {result.rowcount} inactive students older than {days_old} days")
        return result.rowcount

    async def get_student_count(self) -> int:
        result = await self.db.execute(select(func.count(LocalStudent.id)))
        return result.scalar_one()

    async def get_student_stats(self) -> Dict[str, Any]:
        total = await self.get_student_count()

        result = await self.db.execute(
            select(LocalStudent.status, func.count(LocalStudent.id)).group_by(LocalStudent.status)
        )
        by_status = {status: count for status, count in result.all()}

        result = await self.db.execute(
            select(func.count(LocalStudent.id)).where(LocalStudent.synced.is_(True))
        )
        synced = result.scalar_one()

        return {
            'total': total,
            'active': by_status.get(StudentStatus.ACTIVE, 0),
            'inactive': by_status.get(StudentStatus.INACTIVE, 0),
            'synced': synced,
        }
