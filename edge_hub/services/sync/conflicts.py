"""
Sync conflict detection.

A sync conflict is a local record the cloud no longer lists that was active
on this hub very recently. Conflicts are reported for operators; they never
block the removal.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional

from edge_hub.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SyncConflict:
    entity_type: str
    local_id: Any
    code: str
    last_activity: datetime


def detect_recent_activity(
    entity_type: str,
    records: Iterable[Any],
    code_attr: str,
    activity_attr: str,
    window_hours: float,
    now: Optional[datetime] = None
) -> List[SyncConflict]:
    """Return a conflict for every record whose ``activity_attr`` falls inside the window."""
    cutoff = (now or utcnow()) - timedelta(hours=window_hours)
    conflicts = []
    for record in records:
        last_activity = getattr(record, activity_attr, None)
        if last_activity is not None and last_activity > cutoff:
            conflicts.append(SyncConflict(
                entity_type=entity_type,
                local_id=record.id,
                code=str(getattr(record, code_attr)),
                last_activity=last_activity
            ))
    return conflicts


def log_conflicts(conflicts: List[SyncConflict], noun: str, activity_label: str) -> None:
    if not conflicts:
        return
    logger.warning(
        f"Found {len(conflicts)} recently active {noun} that were removed from cloud. "
        f"This may indicate a sync conflict."
    )
    for conflict in conflicts:
        logger.warning(
            f"Recently active removed {conflict.entity_type}: {conflict.code} "
            f"({activity_label}: {conflict.last_activity.isoformat()})"
        )
