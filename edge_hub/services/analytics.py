"""
Hub Analytics Service

Append-only activity log and local engagement summaries.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func, case, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from edge_hub.models.activity import LocalActivity
from edge_hub.models.device import LocalDevice
from edge_hub.models.student import LocalStudent

logger = logging.getLogger(__name__)


def decode_event_data(event_data: Any) -> Any:
    """Structured form of a stored event payload; JSON strings are parsed."""
    if isinstance(event_data, str):
        try:
            return json.loads(event_data)
        except ValueError:
            return event_data
    return event_data


class HubAnalyticsService:
    """Store for LocalActivity rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_activity(
        self,
        session_id: str,
        content_id: str,
        time_spent: int = 0,
        device_id: Optional[str] = None,
        student_id: Optional[str] = None,
        event_type: Optional[str] = None,
        event_data: Any = None,
        quiz_score: Optional[int] = None,
        module_completed: bool = False
    ) -> LocalActivity:
        activity = LocalActivity(
            session_id=session_id,
            content_id=content_id,
            device_id=device_id,
            student_id=student_id,
            event_type=event_type,
            event_data=decode_event_data(event_data),
            time_spent=time_spent,
            quiz_score=quiz_score,
            module_completed=module_completed,
            synced=False
        )
        self.db.add(activity)
        await self.db.commit()
        await self.db.refresh(activity)
        return activity

    async def get_unsynced_activities(self) -> List[LocalActivity]:
        """Activities not yet delivered to the cloud, oldest first."""
        result = await self.db.execute(
            select(LocalActivity)
            .where(LocalActivity.synced.is_(False))
            .order_by(LocalActivity.timestamp.asc())
        )
        return list(result.scalars().all())

    async def mark_as_synced(self, activity_ids: List[str]) -> int:
        """Flip ``synced`` for every id in a single statement."""
        if not activity_ids:
            return 0
        result = await self.db.execute(
            update(LocalActivity)
            .where(LocalActivity.id.in_(activity_ids))
            .values(synced=True)
        )
        await self.db.commit()
        return result.rowcount

    async def find_orphaned_activities(self) -> List[LocalActivity]:
        """Activities whose device or student reference no longer resolves."""
        device_ids = select(LocalDevice.id)
        student_ids = select(LocalStudent.id)
        result = await self.db.execute(
            select(LocalActivity).where(
                or_(
                    and_(
                        LocalActivity.device_id.is_not(None),
                        LocalActivity.device_id.not_in(device_ids)
                    ),
                    and_(
                        LocalActivity.student_id.is_not(None),
                        LocalActivity.student_id.not_in(student_ids)
                    )
                )
            )
        )
        return list(result.scalars().all())

    async def get_local_engagement(self) -> Dict[str, Any]:
        result = await self.db.execute(
            select(
                func.count(LocalActivity.id),
                func.sum(case((LocalActivity.module_completed.is_(True), 1), else_=0)),
                func.avg(LocalActivity.time_spent)
            )
        )
        total, completed, avg_time = result.one()
        total = total or 0
        completed = int(completed or 0)

        return {
            'total_sessions': total,
            'completed_sessions': completed,
            'completion_rate': (completed / total) * 100 if total > 0 else 0.0,
            'avg_time_spent': float(avg_time or 0),
        }

    async def get_content_usage(self) -> List[Dict[str, Any]]:
        unique_users = func.count(func.distinct(LocalActivity.session_id))
        result = await self.db.execute(
            select(
                LocalActivity.content_id,
                unique_users.label('unique_users'),
                func.count(LocalActivity.id).label('total_sessions'),
                func.avg(LocalActivity.time_spent).label('avg_time_spent'),
                func.sum(case((LocalActivity.module_completed.is_(True), 1), else_=0)).label('completions')
            )
            .group_by(LocalActivity.content_id)
            .order_by(unique_users.desc())
        )
        return [
            {
                'content_id': row.content_id,
                'unique_users': row.unique_users,
                'total_sessions': row.total_sessions,
                'avg_time_spent': float(row.avg_time_spent or 0),
                'completions': int(row.completions or 0),
            }
            for row in result.all()
        ]
