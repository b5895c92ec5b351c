"""
Background tasks for cloud synchronization.

Runs the periodic sync loop and the startup bootstrap (integrity check plus a
delayed forced resync for an empty store).
"""

import asyncio
import logging
import uuid
from typing import Dict, Optional

from edge_hub.core.config import settings
from edge_hub.services.sync.integrity import IntegrityChecker, IntegrityReport
from edge_hub.services.sync.orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Runs ``perform_sync`` on a fixed interval until stopped.
    """

    def __init__(self, orchestrator: SyncOrchestrator, interval_seconds: Optional[float] = None):
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds or settings.SYNC_INTERVAL_SECONDS
        self._running_tasks: Dict[str, asyncio.Task] = {}
        self._shutdown_event = asyncio.Event()

    @property
    def is_started(self) -> bool:
        task = self._running_tasks.get('scheduler')
        return task is not None and not task.done()

    async def start(self) -> None:
        """Start the periodic sync loop."""
        logger.info(f"Starting sync scheduler (every {self.interval_seconds}s)")
        self._shutdown_event.clear()
        self._running_tasks['scheduler'] = asyncio.create_task(self._scheduler_loop())

    async def stop(self) -> None:
        """Stop the loop and cancel any pending one-off sync."""
        logger.info("Stopping sync scheduler")
        self._shutdown_event.set()

        for task_name, task in self._running_tasks.items():
            if not task.done():
                logger.info(f"Cancelling task: {task_name}")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._running_tasks.clear()
        logger.info("Sync scheduler stopped")

    async def _scheduler_loop(self) -> None:
        logger.info("Started sync scheduler loop")

        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.interval_seconds)
                break  # Shutdown event was set
            except asyncio.TimeoutError:
                pass

            await self.run_scheduled_sync()

        logger.info("Sync scheduler loop stopped")

    async def run_scheduled_sync(self) -> None:
        """One scheduled tick; skipped while a run is already in flight."""
        if self.orchestrator.is_running:
            logger.debug("Scheduled sync skipped - sync already in progress")
            return
        try:
            await self.orchestrator.perform_sync()
        except Exception as e:
            logger.error(f"Error in scheduled sync: {e}")

    def schedule_full_resync(self, delay_seconds: Optional[float] = None) -> asyncio.Task:
        """Fire a single forced full sync after ``delay_seconds``."""
        delay = settings.STARTUP_RESYNC_DELAY_SECONDS if delay_seconds is None else delay_seconds
        task_name = f"full_resync_{uuid.uuid4().hex[:8]}"
        task = asyncio.create_task(self._delayed_full_sync(delay))
        self._running_tasks[task_name] = task
        logger.info(f"Scheduled forced full sync in {delay}s")
        return task

    async def _delayed_full_sync(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
            return  # Shut down before the delay elapsed
        except asyncio.TimeoutError:
            pass

        try:
            result = await self.orchestrator.force_full_sync()
            logger.info(f"Forced full sync completed: success={result.success}, synced={result.synced}")
        except Exception as e:
            logger.error(f"Forced full sync failed: {e}")


async def bootstrap_hub(
    orchestrator: SyncOrchestrator,
    checker: Optional[IntegrityChecker] = None,
    scheduler: Optional[SyncScheduler] = None,
    resync_delay_seconds: Optional[float] = None
) -> IntegrityReport:
    """
    Startup routine: check the local store and, when it holds no content at
    all, schedule a forced full sync once the process has finished starting.
    """
    checker = checker or orchestrator.integrity_checker
    report = await checker.check()

    if report.needs_full_resync:
        if scheduler is None:
            logger.warning("Database appears empty and the sync scheduler is disabled; trigger a full sync manually")
        else:
            logger.warning("Database appears empty - scheduling forced full sync")
            scheduler.schedule_full_resync(resync_delay_seconds)
    elif not report.is_healthy:
        logger.warning(f"Integrity issues found on startup: {[str(i) for i in report.issues]}")

    return report
