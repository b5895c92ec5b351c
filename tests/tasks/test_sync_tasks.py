"""
Tests for the sync scheduler and the startup bootstrap.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from edge_hub.models.content import LocalContent
from edge_hub.services.sync.integrity import IntegrityChecker
from edge_hub.services.sync.results import SyncResult
from edge_hub.tasks.sync_tasks import SyncScheduler, bootstrap_hub


@pytest.fixture
def mock_orchestrator():
    orchestrator = Mock()
    orchestrator.is_running = False
    orchestrator.perform_sync = AsyncMock(return_value=SyncResult(success=True))
    orchestrator.force_full_sync = AsyncMock(return_value=SyncResult(success=True))
    return orchestrator


class TestSyncScheduler:

    @pytest.mark.asyncio
    async def test_runs_periodically_until_stopped(self, mock_orchestrator):
        scheduler = SyncScheduler(mock_orchestrator, interval_seconds=0.01)

        await scheduler.start()
        assert scheduler.is_started
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert mock_orchestrator.perform_sync.await_count >= 2
        assert not scheduler.is_started

    @pytest.mark.asyncio
    async def test_tick_skipped_while_sync_running(self, mock_orchestrator):
        mock_orchestrator.is_running = True
        scheduler = SyncScheduler(mock_orchestrator, interval_seconds=60)

        await scheduler.run_scheduled_sync()

        mock_orchestrator.perform_sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tick_survives_errors(self, mock_orchestrator):
        mock_orchestrator.perform_sync.side_effect = RuntimeError("boom")
        scheduler = SyncScheduler(mock_orchestrator, interval_seconds=60)

        await scheduler.run_scheduled_sync()

        mock_orchestrator.perform_sync.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_full_resync_fires_after_delay(self, mock_orchestrator):
        scheduler = SyncScheduler(mock_orchestrator, interval_seconds=60)

        task = scheduler.schedule_full_resync(delay_seconds=0.01)
        await task

        mock_orchestrator.force_full_sync.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_resync(self, mock_orchestrator):
        scheduler = SyncScheduler(mock_orchestrator, interval_seconds=60)

        scheduler.schedule_full_resync(delay_seconds=30)
        await scheduler.stop()

        mock_orchestrator.force_full_sync.assert_not_awaited()


class TestBootstrapHub:

    @pytest.mark.asyncio
    async def test_empty_store_schedules_full_resync(self, mock_orchestrator, session_factory):
        scheduler = Mock()

        report = await bootstrap_hub(
            mock_orchestrator, IntegrityChecker(session_factory), scheduler, resync_delay_seconds=5
        )

        assert report.needs_full_resync
        scheduler.schedule_full_resync.assert_called_once_with(5)

    @pytest.mark.asyncio
    async def test_populated_store_does_not_resync(self, mock_orchestrator, session_factory):
        async with session_factory() as db:
            db.add(LocalContent(cloud_id="c-1", title="Story", html_content="<p>x</p>"))
            await db.commit()
        scheduler = Mock()

        report = await bootstrap_hub(mock_orchestrator, IntegrityChecker(session_factory), scheduler)

        assert report.is_healthy
        scheduler.schedule_full_resync.assert_not_called()

    @pytest.mark.asyncio
    async def test_uses_orchestrator_checker_by_default(self, mock_orchestrator):
        mock_orchestrator.integrity_checker.check = AsyncMock(return_value=Mock(needs_full_resync=False, is_healthy=True))

        await bootstrap_hub(mock_orchestrator)

        mock_orchestrator.integrity_checker.check.assert_awaited_once()
