"""
Tests for the analytics uploader.
"""

import aiohttp
import pytest
from aioresponses import aioresponses
from sqlalchemy import select

from edge_hub.models.activity import LocalActivity
from edge_hub.services.analytics import HubAnalyticsService
from edge_hub.services.sync.analytics_uploader import AnalyticsUploader
from edge_hub.services.sync.cloud_client import CloudClient

CLOUD_URL = "http://cloud.test"
COLLECT_URL = f"{CLOUD_URL}/analytics/hubs/HUB-TEST/collect"


async def _record_three(session_factory):
    async with session_factory() as db:
        service = HubAnalyticsService(db)
        await service.record_activity("s-1", "c-1", time_spent=30, event_type="reading")
        await service.record_activity("s-1", "c-1", time_spent=10, event_type="quiz",
                                      event_data='{"answers": [1, 2]}', quiz_score=80)
        await service.record_activity("s-2", "c-2", time_spent=5, module_completed=True)


async def _synced_flags(session_factory):
    async with session_factory() as db:
        result = await db.execute(select(LocalActivity.synced))
        return list(result.scalars().all())


@pytest.fixture
def client():
    return CloudClient(base_url=CLOUD_URL, hub_id="HUB-TEST", upload_timeout=5)


class TestAnalyticsUploader:

    @pytest.mark.asyncio
    async def test_successful_push_marks_every_row(self, session_factory, client):
        await _record_three(session_factory)
        uploader = AnalyticsUploader(session_factory)

        with aioresponses() as m:
            m.post(COLLECT_URL, payload={"received": 3}, status=201)
            async with client:
                result = await uploader.upload(client)

            request = list(m.requests.values())[0][0]
            sent = request.kwargs["json"]["analyticsData"]

        assert result.success
        assert result.count == 3
        assert await _synced_flags(session_factory) == [True, True, True]
        assert len(sent) == 3
        quiz = next(item for item in sent if item["eventType"] == "quiz")
        assert quiz["eventData"] == {"answers": [1, 2]}
        assert quiz["quizScore"] == 80
        assert quiz["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_failed_push_marks_nothing(self, session_factory, client):
        await _record_three(session_factory)
        uploader = AnalyticsUploader(session_factory)

        with aioresponses() as m:
            m.post(COLLECT_URL, status=503)
            async with client:
                result = await uploader.upload(client)

        assert not result.success
        assert result.count == 0
        assert "HTTP 503" in result.errors[0]
        assert await _synced_flags(session_factory) == [False, False, False]

    @pytest.mark.asyncio
    async def test_network_error_marks_nothing(self, session_factory, client):
        await _record_three(session_factory)
        uploader = AnalyticsUploader(session_factory)

        with aioresponses() as m:
            m.post(COLLECT_URL, exception=aiohttp.ClientConnectionError("connection reset"))
            async with client:
                result = await uploader.upload(client)

        assert not result.success
        assert await _synced_flags(session_factory) == [False, False, False]

    @pytest.mark.asyncio
    async def test_nothing_pending_skips_request(self, session_factory, client):
        uploader = AnalyticsUploader(session_factory)

        with aioresponses() as m:
            async with client:
                result = await uploader.upload(client)

            assert not m.requests

        assert result.success
        assert result.count == 0

    @pytest.mark.asyncio
    async def test_already_synced_rows_are_not_resent(self, session_factory, client):
        await _record_three(session_factory)
        uploader = AnalyticsUploader(session_factory)

        with aioresponses() as m:
            m.post(COLLECT_URL, payload={}, status=200)
            async with client:
                await uploader.upload(client)
                second = await uploader.upload(client)

            assert len(list(m.requests.values())[0]) == 1

        assert second.success
        assert second.count == 0
