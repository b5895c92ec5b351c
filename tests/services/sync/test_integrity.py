"""
Tests for the startup / on-demand integrity check.
"""

import pytest

from edge_hub.models.activity import LocalActivity
from edge_hub.models.content import LocalContent
from edge_hub.models.device import LocalDevice, DeviceStatus
from edge_hub.services.sync.integrity import IntegrityChecker


async def _add_content(session_factory, linked, unlinked=0):
    async with session_factory() as db:
        for i in range(linked):
            db.add(LocalContent(cloud_id=f"c-{i}", title="Story", html_content="<p>x</p>"))
        for i in range(unlinked):
            db.add(LocalContent(cloud_id=None, title="Legacy", html_content="<p>x</p>"))
        await db.commit()


class TestIntegrityChecker:

    @pytest.mark.asyncio
    async def test_empty_store_needs_full_resync(self, session_factory):
        report = await IntegrityChecker(session_factory).check()

        assert not report.is_healthy
        assert report.needs_full_resync
        assert report.issues[0].code == "no_content"
        assert report.stats["content"]["total"] == 0

    @pytest.mark.asyncio
    async def test_linked_content_is_healthy(self, session_factory):
        await _add_content(session_factory, linked=10)
        async with session_factory() as db:
            db.add(LocalDevice(device_code="ABC123", status=DeviceStatus.ACTIVE))
            await db.commit()

        report = await IntegrityChecker(session_factory).check()

        assert report.is_healthy
        assert not report.needs_full_resync
        assert report.stats["devices"]["total_devices"] == 1
        assert report.stats["students"]["total"] == 0

    @pytest.mark.asyncio
    async def test_ten_percent_unlinked_is_tolerated(self, session_factory):
        await _add_content(session_factory, linked=9, unlinked=1)

        report = await IntegrityChecker(session_factory).check()

        assert report.is_healthy

    @pytest.mark.asyncio
    async def test_too_much_unlinked_content_is_flagged_without_resync(self, session_factory):
        await _add_content(session_factory, linked=8, unlinked=2)

        report = await IntegrityChecker(session_factory).check()

        assert not report.is_healthy
        assert not report.needs_full_resync
        assert [issue.code for issue in report.issues] == ["missing_cloud_id"]
        assert report.stats["content"]["orphaned"] == 2
        assert report.to_dict()["issues"] == [
            "2 content items missing cloud id - this may indicate data corruption"
        ]

    @pytest.mark.asyncio
    async def test_completeness_reports_orphaned_activity(self, session_factory):
        await _add_content(session_factory, linked=1)
        async with session_factory() as db:
            db.add(LocalActivity(session_id="s-1", content_id="c-0", device_id="missing-device"))
            db.add(LocalActivity(session_id="s-2", content_id="c-0"))
            await db.commit()

        completeness = await IntegrityChecker(session_factory).validate_completeness()

        assert completeness == {
            "is_complete": False,
            "issues": ["Found 1 orphaned analytics records"],
        }

    @pytest.mark.asyncio
    async def test_completeness_on_empty_store(self, session_factory):
        completeness = await IntegrityChecker(session_factory).validate_completeness()

        assert completeness["issues"] == ["No content found in local database after sync"]
