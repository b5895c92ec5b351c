"""
Sync Orchestrator

Top-level sync run:
- Fetches the unified payload from the cloud (incremental after a success)
- Runs the content, device and student reconcilers and the analytics upload
  concurrently, waiting for all four regardless of individual failures
- Classifies the run as success, partial or failure and keeps running
  statistics plus a bounded history of results
- Derives a three-level health status for operators

At most one run is in flight per orchestrator; a second trigger returns
immediately.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Dict, List, Optional

from edge_hub.core.config import settings
from edge_hub.core.database import AsyncSessionLocal
from edge_hub.services.content import ContentService
from edge_hub.services.sync.analytics_uploader import AnalyticsUploader
from edge_hub.services.sync.cloud_client import CloudClient
from edge_hub.services.sync.content_sync import ContentReconciler
from edge_hub.services.sync.device_sync import DeviceReconciler
from edge_hub.services.sync.integrity import IntegrityChecker
from edge_hub.services.sync.results import (
    EntitySyncResult, HealthLevel, HealthStatus, SyncDetails, SyncOutcome, SyncResult, SyncStatus
)
from edge_hub.services.sync.student_sync import StudentReconciler
from edge_hub.utils.timestamps import to_iso_z, utcnow

logger = logging.getLogger(__name__)

CRITICAL_CONSECUTIVE_FAILURES = 5
WARNING_CONSECUTIVE_FAILURES = 2
WARNING_SUCCESS_RATE = 80.0

SYNC_IN_PROGRESS = "Sync already in progress"

_LABELS = {
    'content': "Content",
    'devices': "Devices",
    'students': "Students",
    'analytics': "Analytics",
}


def classify_run(details: SyncDetails) -> SyncOutcome:
    """Success if every sub-result succeeded, partial if some did, failure if none did."""
    outcomes = [result.success for _, result in details.items()]
    if all(outcomes):
        return SyncOutcome.SUCCESS
    if any(outcomes):
        return SyncOutcome.PARTIAL
    return SyncOutcome.FAILURE


class SyncOrchestrator:
    """Owns the sync state machine and its statistics."""

    def __init__(
        self,
        session_factory=None,
        client_factory=None,
        history_size: Optional[int] = None,
        content_reconciler: Optional[ContentReconciler] = None,
        device_reconciler: Optional[DeviceReconciler] = None,
        student_reconciler: Optional[StudentReconciler] = None,
        analytics_uploader: Optional[AnalyticsUploader] = None
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self.client_factory = client_factory or CloudClient

        self.content_reconciler = content_reconciler or ContentReconciler(self.session_factory)
        self.device_reconciler = device_reconciler or DeviceReconciler(self.session_factory)
        self.student_reconciler = student_reconciler or StudentReconciler(self.session_factory)
        self.analytics_uploader = analytics_uploader or AnalyticsUploader(self.session_factory)
        self.integrity_checker = IntegrityChecker(self.session_factory)

        self._is_running = False
        self._last_sync = None
        self._last_successful_sync = None
        self._history: deque = deque(maxlen=history_size or settings.SYNC_HISTORY_SIZE)
        self._reset_counters()

    def _reset_counters(self):
        self._consecutive_failures = 0
        self._total_syncs = 0
        self._successful_syncs = 0
        self._failed_syncs = 0
        self._partial_syncs = 0
        self._total_duration = 0.0
        self._last_sync_result: Optional[SyncResult] = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def perform_sync(self, force_full: bool = False) -> SyncResult:
        """
        Run one sync.

        Args:
            force_full: Fetch everything instead of changes since the last success

        Returns:
            SyncResult for this run. Never raises for sub-operation failures.
        """
        if self._is_running:
            logger.info("Sync already in progress, skipping")
            return SyncResult(success=False, synced=0, errors=[SYNC_IN_PROGRESS])

        # Set before the first await so concurrent callers see it
        self._is_running = True
        started_at = utcnow()
        start = time.monotonic()
        self._total_syncs += 1
        result = SyncResult(started_at=started_at)

        try:
            since = None
            if not force_full and self._last_successful_sync is not None:
                since = to_iso_z(self._last_successful_sync)

            logger.info(f"Starting {'incremental' if since else 'full'} sync")

            try:
                async with self.client_factory() as client:
                    payload = await client.fetch_sync_payload(since=since)
                    details = await self._run_sub_syncs(client, payload)
            except Exception as e:
                logger.error(f"Sync failed: {e}")
                result.errors.append(str(e))
                self._finish_run(result, SyncOutcome.FAILURE, start)
                return result

            outcome = classify_run(details)
            result.sync_details = details
            result.synced = details.content.count + details.devices.count + details.students.count
            result.partial_sync = outcome != SyncOutcome.SUCCESS
            result.success = outcome == SyncOutcome.SUCCESS
            result.errors.extend(self._collect_errors(details))

            self._finish_run(result, outcome, start)
            return result
        finally:
            self._is_running = False

    async def force_sync_now(self) -> SyncResult:
        logger.info("Forcing immediate full sync")
        return await self.perform_sync(force_full=True)

    async def force_full_sync(self) -> SyncResult:
        return await self.force_sync_now()

    async def _run_sub_syncs(self, client, payload: Dict[str, Any]) -> SyncDetails:
        content = payload.get('content')
        devices = payload.get('devices')
        students = payload.get('students')

        outcomes = await asyncio.gather(
            self.content_reconciler.reconcile([] if content is None else content),
            self.device_reconciler.reconcile([] if devices is None else devices),
            self.student_reconciler.reconcile([] if students is None else students),
            self.analytics_uploader.upload(client),
            return_exceptions=True
        )

        details = SyncDetails()
        for (name, _), outcome in zip(details.items(), outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"{_LABELS[name]} sync raised: {outcome}")
                outcome = EntitySyncResult.failed(str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            setattr(details, name, outcome)
        return details

    def _collect_errors(self, details: SyncDetails) -> List[str]:
        errors = []
        for name, entity_result in details.items():
            label = _LABELS[name]
            if not entity_result.success and not entity_result.errors:
                errors.append(f"{label} sync failed")
            for error in entity_result.errors:
                if entity_result.success:
                    errors.append(f"{label} sync warning: {error}")
                else:
                    errors.append(f"{label} sync failed: {error}")
        return errors

    def _finish_run(self, result: SyncResult, outcome: SyncOutcome, start: float):
        result.duration = (time.monotonic() - start) * 1000
        self._total_duration += result.duration
        self._last_sync = result.started_at

        if outcome == SyncOutcome.SUCCESS:
            self._successful_syncs += 1
            self._consecutive_failures = 0
            # Start time, so changes made while this run was in flight are fetched next time
            self._last_successful_sync = result.started_at
            logger.info(f"Sync completed successfully: {result.synced} items in {result.duration:.0f}ms")
        elif outcome == SyncOutcome.PARTIAL:
            self._partial_syncs += 1
            self._consecutive_failures += 1
            logger.warning(
                f"Sync partially completed: {result.synced} items in {result.duration:.0f}ms, "
                f"errors: {result.errors}"
            )
        else:
            self._failed_syncs += 1
            self._consecutive_failures += 1
            logger.error(
                f"Sync failed ({self._consecutive_failures} consecutive): {result.errors}"
            )

        self._history.append(result)
        self._last_sync_result = result

    # Status reporting

    @property
    def average_duration(self) -> float:
        if self._total_syncs == 0:
            return 0.0
        return self._total_duration / self._total_syncs

    @property
    def success_rate(self) -> float:
        if self._total_syncs == 0:
            return 0.0
        return (self._successful_syncs / self._total_syncs) * 100

    def get_sync_status(self) -> SyncStatus:
        return SyncStatus(
            is_running=self._is_running,
            last_sync=self._last_sync,
            last_successful_sync=self._last_successful_sync,
            consecutive_failures=self._consecutive_failures,
            total_syncs=self._total_syncs,
            successful_syncs=self._successful_syncs,
            failed_syncs=self._failed_syncs,
            partial_syncs=self._partial_syncs,
            average_duration=self.average_duration,
            last_sync_result=self._last_sync_result
        )

    def get_sync_stats(self) -> Dict[str, Any]:
        stats = self.get_sync_status().to_dict()
        stats['success_rate'] = self.success_rate
        stats['history_size'] = len(self._history)
        return stats

    def get_sync_history(self) -> List[SyncResult]:
        return list(self._history)

    def get_health_status(self) -> HealthStatus:
        details = {
            'consecutive_failures': self._consecutive_failures,
            'success_rate': self.success_rate,
            'total_syncs': self._total_syncs,
            'is_running': self._is_running,
            'last_sync': to_iso_z(self._last_sync),
            'last_successful_sync': to_iso_z(self._last_successful_sync),
            'last_error': self._last_error(),
        }

        if self._consecutive_failures >= CRITICAL_CONSECUTIVE_FAILURES:
            return HealthStatus(
                status=HealthLevel.CRITICAL,
                message=f"Sync has failed {self._consecutive_failures} consecutive times",
                details=details
            )
        if self._consecutive_failures >= WARNING_CONSECUTIVE_FAILURES:
            return HealthStatus(
                status=HealthLevel.WARNING,
                message=f"Sync has failed {self._consecutive_failures} consecutive times",
                details=details
            )
        if self._total_syncs > 0 and self.success_rate < WARNING_SUCCESS_RATE:
            return HealthStatus(
                status=HealthLevel.WARNING,
                message=f"Sync success rate is {self.success_rate:.1f}%",
                details=details
            )
        return HealthStatus(status=HealthLevel.HEALTHY, message="Sync is healthy", details=details)

    def _last_error(self) -> Optional[str]:
        if self._last_sync_result and self._last_sync_result.errors:
            return self._last_sync_result.errors[0]
        return None

    def reset_sync_stats(self):
        self._reset_counters()
        self._history.clear()
        logger.info("Sync statistics reset")

    async def get_storage_stats(self) -> Dict[str, int]:
        async with self.session_factory() as db:
            return await ContentService(db).get_storage_stats()

    async def validate_sync_completeness(self) -> Dict[str, Any]:
        return await self.integrity_checker.validate_completeness()
