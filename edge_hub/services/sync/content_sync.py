"""
Content reconciler.

Applies the cloud's content batch to the local mirror. Items are written in
fixed-size batches; items inside a batch run concurrently, each in its own
session, and a failing item never aborts its siblings.

Cleanup of content the cloud no longer lists is guarded: it never runs for an
empty batch, and it is aborted when the batch looks truncated (more than half
of the local rows would go while the cloud sends under 80% of the local count).
"""

import asyncio
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from edge_hub.core.config import settings
from edge_hub.models.content import LocalContent
from edge_hub.services.content import ContentService
from edge_hub.services.sync.conflicts import detect_recent_activity, log_conflicts
from edge_hub.services.sync.data_validator import validate_content_data
from edge_hub.services.sync.errors import PersistenceError, SafetyGateViolation
from edge_hub.services.sync.records import ContentRecord
from edge_hub.services.sync.results import EntitySyncResult
from edge_hub.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

MAX_REMOVAL_PERCENTAGE = 50.0
MIN_CLOUD_TO_LOCAL_RATIO = 0.8

CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"


def check_removal_safety(removal_count: int, local_count: int, cloud_count: int) -> None:
    """
    Raise SafetyGateViolation if removing ``removal_count`` of ``local_count``
    rows looks like the result of a truncated cloud response.
    """
    if local_count <= 0 or removal_count <= 0:
        return
    removal_percentage = (removal_count / local_count) * 100
    if removal_percentage > MAX_REMOVAL_PERCENTAGE and cloud_count < local_count * MIN_CLOUD_TO_LOCAL_RATIO:
        raise SafetyGateViolation(removal_count, local_count, cloud_count)


class ContentReconciler:
    """Merges a cloud content batch into the local content table."""

    def __init__(
        self,
        session_factory,
        batch_size: Optional[int] = None,
        conflict_window_hours: Optional[float] = None
    ):
        self.session_factory = session_factory
        self.batch_size = batch_size or settings.CONTENT_BATCH_SIZE
        self.conflict_window_hours = conflict_window_hours or settings.CONTENT_CONFLICT_WINDOW_HOURS

    async def reconcile(self, content: Any) -> EntitySyncResult:
        validation = validate_content_data(content)
        if not validation.is_valid:
            logger.warning(f"Content data validation failed: {validation.errors}")
            return EntitySyncResult.failed(*validation.errors)

        if not content:
            logger.info("No content to sync; skipping cleanup")
            return EntitySyncResult(success=True, count=0)

        records = [ContentRecord.from_payload(item) for item in content]
        processed = 0
        created = updated = skipped = 0
        errors: List[str] = []

        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self._apply_item(record) for record in batch),
                return_exceptions=True
            )
            for record, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    message = f"Failed to sync content {record.cloud_id}: {outcome}"
                    logger.error(message)
                    errors.append(message)
                    continue
                processed += 1
                if outcome == CREATED:
                    created += 1
                elif outcome == UPDATED:
                    updated += 1
                else:
                    skipped += 1

        logger.info(
            f"Content sync processed {processed}/{len(records)} items "
            f"(created: {created}, updated: {updated}, unchanged: {skipped})"
        )

        if processed > 0:
            try:
                await self._cleanup_removed(records)
            except SafetyGateViolation as e:
                logger.error(f"SAFETY CHECK FAILED: {e}. Skipping cleanup to prevent data loss.")
            except PersistenceError as e:
                logger.error(f"Content cleanup failed: {e}")
                errors.append(str(e))

        return EntitySyncResult(success=processed > 0, count=processed, errors=errors)

    async def _apply_item(self, record: ContentRecord) -> str:
        async with self.session_factory() as db:
            try:
                existing = await ContentService(db).find_by_cloud_id(record.cloud_id)
                remote_ts = record.remote_timestamp

                if existing is None:
                    db.add(LocalContent(
                        cloud_id=record.cloud_id,
                        updated_at=remote_ts or utcnow(),
                        **record.column_values()
                    ))
                    await db.commit()
                    logger.debug(f"Created content {record.cloud_id}")
                    return CREATED

                local_ts = existing.updated_at or existing.cached_at
                if remote_ts is not None and local_ts is not None and remote_ts <= local_ts:
                    return SKIPPED

                for column, value in record.column_values().items():
                    setattr(existing, column, value)
                existing.updated_at = remote_ts or existing.updated_at or utcnow()
                await db.commit()
                logger.debug(f"Updated content {record.cloud_id}")
                return UPDATED
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(str(e)) from e

    async def _cleanup_removed(self, records: List[ContentRecord]) -> int:
        cloud_ids = {r.cloud_id for r in records}

        async with self.session_factory() as db:
            service = ContentService(db)
            try:
                local_rows = await service.list_sync_index()
                # Rows without a cloud id were never linked and are kept
                removed = [
                    row for row in local_rows
                    if row.cloud_id and row.cloud_id not in cloud_ids
                ]
                if not removed:
                    return 0

                conflicts = detect_recent_activity(
                    "content", removed, "cloud_id", "updated_at", self.conflict_window_hours
                )
                log_conflicts(conflicts, "content items", "last updated")

                check_removal_safety(len(removed), len(local_rows), len(records))

                count = await service.delete_by_ids([row.id for row in removed])
                logger.info(f"Removed {count} content items no longer in cloud")
                return count
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(f"Content cleanup failed: {e}") from e
