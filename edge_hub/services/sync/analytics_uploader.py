"""
Analytics uploader.

Pushes every unsynced activity row to the cloud in a single request. Rows are
marked synced only after the cloud accepted the whole batch; a failed push
leaves all of them for the next run.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from edge_hub.models.activity import LocalActivity
from edge_hub.services.analytics import HubAnalyticsService, decode_event_data
from edge_hub.services.sync.errors import SyncError
from edge_hub.services.sync.results import EntitySyncResult
from edge_hub.utils.timestamps import to_iso_z

logger = logging.getLogger(__name__)


def serialize_activity(activity: LocalActivity) -> Dict[str, Any]:
    """Wire representation of an activity for the cloud collection endpoint."""
    return {
        'id': activity.id,
        'sessionId': activity.session_id,
        'contentId': activity.content_id,
        'deviceId': activity.device_id,
        'studentId': activity.student_id,
        'eventType': activity.event_type,
        'eventData': decode_event_data(activity.event_data),
        'timeSpent': activity.time_spent,
        'quizScore': activity.quiz_score,
        'moduleCompleted': activity.module_completed,
        'timestamp': to_iso_z(activity.timestamp),
    }


class AnalyticsUploader:
    """Drains unsynced activity to the cloud."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def upload(self, client) -> EntitySyncResult:
        """
        Upload pending activity through ``client`` (a CloudClient).

        Returns:
            EntitySyncResult with the number of rows delivered and marked
        """
        async with self.session_factory() as db:
            service = HubAnalyticsService(db)

            try:
                pending = await service.get_unsynced_activities()
            except SQLAlchemyError as e:
                logger.error(f"Failed to read unsynced analytics: {e}")
                return EntitySyncResult.failed(f"Failed to read unsynced analytics: {e}")

            if not pending:
                logger.info("No analytics to sync")
                return EntitySyncResult(success=True, count=0)

            payload: List[Dict[str, Any]] = [serialize_activity(a) for a in pending]
            activity_ids = [a.id for a in pending]

            try:
                await client.push_analytics(payload)
            except SyncError as e:
                logger.error(f"Analytics upload failed: {e}")
                return EntitySyncResult.failed(str(e))

            try:
                await service.mark_as_synced(activity_ids)
            except SQLAlchemyError as e:
                # Delivered but not marked: the rows are re-sent on the next run
                await db.rollback()
                logger.error(f"Failed to mark {len(activity_ids)} analytics records as synced: {e}")
                return EntitySyncResult.failed(f"Failed to mark analytics as synced: {e}")

        logger.info(f"Synced {len(activity_ids)} analytics records to cloud")
        return EntitySyncResult(success=True, count=len(activity_ids))
