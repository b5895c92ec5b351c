"""
Integrity checks over the local store.

``check`` runs at startup and on demand; a hub with no content at all needs a
forced full resync. ``validate_completeness`` is the deeper post-sync check
(orphaned activity, invalid or duplicated content).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from edge_hub.services.analytics import HubAnalyticsService
from edge_hub.services.content import ContentService
from edge_hub.services.devices import DeviceService
from edge_hub.services.students import StudentService
from edge_hub.services.sync.errors import IntegrityWarning

logger = logging.getLogger(__name__)

# Share of content rows allowed to lack a cloud id before the store is flagged
MAX_UNLINKED_CONTENT_RATIO = 0.1


@dataclass
class IntegrityReport:
    is_healthy: bool
    issues: List[IntegrityWarning] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def needs_full_resync(self) -> bool:
        return not self.is_healthy and self.stats.get('content', {}).get('total') == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_healthy': self.is_healthy,
            'issues': [str(issue) for issue in self.issues],
            'stats': self.stats,
            'needs_full_resync': self.needs_full_resync,
        }


class IntegrityChecker:
    """Validates local state against the store's cross-entity invariants."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def check(self) -> IntegrityReport:
        logger.info("Performing database integrity check...")
        issues: List[IntegrityWarning] = []

        async with self.session_factory() as db:
            try:
                content_service = ContentService(db)
                content_total = await content_service.count()
                unlinked = await content_service.count_missing_cloud_id()
                device_stats = await DeviceService(db).get_device_stats()
                student_total = await StudentService(db).get_student_count()
            except SQLAlchemyError as e:
                logger.error(f"Database integrity check failed: {e}")
                return IntegrityReport(
                    is_healthy=False,
                    issues=[IntegrityWarning('check_failed', f"Integrity check failed: {e}")]
                )

        stats = {
            'content': {
                'total': content_total,
                'with_cloud_id': content_total - unlinked,
                'orphaned': unlinked,
            },
            'devices': device_stats,
            'students': {'total': student_total},
        }

        if content_total == 0:
            issues.append(IntegrityWarning(
                'no_content',
                "No content found in database - this may indicate data loss or first startup"
            ))
        if unlinked > content_total * MAX_UNLINKED_CONTENT_RATIO:
            issues.append(IntegrityWarning(
                'missing_cloud_id',
                f"{unlinked} content items missing cloud id - this may indicate data corruption",
                {'count': unlinked, 'total': content_total}
            ))

        report = IntegrityReport(is_healthy=not issues, issues=issues, stats=stats)
        if report.is_healthy:
            logger.info(f"Database integrity check passed. Stats: {stats}")
        else:
            logger.warning(
                f"Database integrity check found issues: {', '.join(str(i) for i in issues)}"
            )
        return report

    async def validate_completeness(self) -> Dict[str, Any]:
        """Post-sync check; returns ``{'is_complete': bool, 'issues': [str]}``."""
        issues: List[str] = []

        async with self.session_factory() as db:
            try:
                content_service = ContentService(db)
                if await content_service.count() == 0:
                    issues.append("No content found in local database after sync")

                orphaned = await HubAnalyticsService(db).find_orphaned_activities()
                if orphaned:
                    issues.append(f"Found {len(orphaned)} orphaned analytics records")

                invalid = await content_service.count_invalid()
                if invalid:
                    issues.append(f"Found {invalid} content items with missing required fields")

                duplicates = await content_service.find_duplicate_cloud_ids()
                if duplicates:
                    issues.append(f"Found {len(duplicates)} duplicate content cloud IDs")
            except SQLAlchemyError as e:
                logger.error(f"Failed to validate sync completeness: {e}")
                return {'is_complete': False, 'issues': [f"Validation failed: {e}"]}

        return {'is_complete': not issues, 'issues': issues}
