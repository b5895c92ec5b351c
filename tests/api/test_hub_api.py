"""
Tests for the HTTP surface (hub, devices, analytics routers).
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from edge_hub.core.database import get_db, init_db
from edge_hub.main import create_app
from edge_hub.models.device import LocalDevice
from edge_hub.services.sync import SyncOrchestrator


class StubCloudClient:
    """Cloud client returning a fixed payload."""

    payload = {
        "content": [{
            "id": "c-1",
            "title": "Story",
            "htmlContent": "<p>Once</p>",
            "updatedAt": "2024-01-10T12:00:00.000Z",
        }],
        "devices": [{"id": "d-1", "deviceCode": "ABC123", "hubId": "HUB-TEST"}],
        "students": [],
    }

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def fetch_sync_payload(self, since=None):
        return self.payload

    async def push_analytics(self, analytics_data):
        return {}


@pytest.fixture
def session_factory(tmp_path):
    # NullPool: the TestClient runs the app on its own event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    asyncio.run(init_db(bind=engine))
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def client(session_factory):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.orchestrator = SyncOrchestrator(
        session_factory=session_factory,
        client_factory=StubCloudClient
    )
    return TestClient(app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestHubRoutes:

    def test_manual_sync_then_status(self, client):
        response = client.post("/api/hub/sync")

        assert response.status_code == 200
        result = response.json()
        assert result["success"] is True
        assert result["synced"] == 2
        assert result["sync_details"]["devices"] == {"success": True, "count": 1, "errors": None}

        status = client.get("/api/hub/sync/status").json()
        assert status["total_syncs"] == 1
        assert status["successful_syncs"] == 1
        assert status["last_successful_sync"].endswith("Z")

        history = client.get("/api/hub/sync/history").json()
        assert len(history) == 1

        stats = client.get("/api/hub/sync/stats").json()
        assert stats["success_rate"] == 100.0

        health = client.get("/api/hub/sync/health").json()
        assert health["status"] == "healthy"

    def test_hub_status(self, client):
        client.post("/api/hub/sync")

        response = client.get("/api/hub/status")

        assert response.status_code == 200
        data = response.json()
        assert data["storage"]["total_content"] == 1
        assert data["engagement"]["total_sessions"] == 0
        assert data["sync"]["total_syncs"] == 1

    def test_integrity_on_empty_store(self, client):
        response = client.post("/api/hub/integrity")

        assert response.status_code == 200
        data = response.json()
        assert data["is_healthy"] is False
        assert data["needs_full_resync"] is True
        assert data["completeness"]["is_complete"] is False


class TestDeviceRoutes:

    @pytest.fixture
    def provisioned(self, session_factory):
        async def add_device():
            async with session_factory() as db:
                db.add(LocalDevice(device_code="ABC123"))
                await db.commit()
        asyncio.run(add_device())

    def test_register(self, client, provisioned):
        response = client.post("/api/devices/register", json={"device_code": "abc123", "device_info": {"os": "android"}})

        # Codes are matched exactly as provisioned
        assert response.status_code == 404

        response = client.post("/api/devices/register", json={"device_code": "ABC123"})

        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["registered_at"] is not None

    def test_register_rejects_malformed_code(self, client):
        response = client.post("/api/devices/register", json={"device_code": "AB-12!"})

        assert response.status_code == 422

    def test_auto_register_and_heartbeat(self, client, provisioned):
        response = client.post("/api/devices/auto-register", json={})

        assert response.status_code == 200
        assert response.json()["device_code"] == "ABC123"

        assert client.post("/api/devices/ABC123/heartbeat").status_code == 200
        assert client.post("/api/devices/NOPE99/heartbeat").status_code == 404

        # No pending codes left
        assert client.post("/api/devices/auto-register", json={}).status_code == 404

        stats = client.get("/api/devices/stats").json()
        assert stats["registered_devices"] == 1


class TestAnalyticsRoutes:

    def test_record_and_engagement(self, client):
        response = client.post("/api/analytics/activities", json={
            "session_id": "s-1",
            "content_id": "c-1",
            "time_spent": 40,
            "module_completed": True,
            "event_data": {"page": 4},
        })

        assert response.status_code == 201
        assert response.json()["synced"] is False
        assert response.json()["event_data"] == {"page": 4}

        engagement = client.get("/api/analytics/engagement").json()
        assert engagement == {
            "total_sessions": 1,
            "completed_sessions": 1,
            "completion_rate": 100.0,
            "avg_time_spent": 40.0,
        }

    def test_quiz_score_out_of_range(self, client):
        response = client.post("/api/analytics/activities", json={
            "session_id": "s-1", "content_id": "c-1", "quiz_score": 120
        })

        assert response.status_code == 422
